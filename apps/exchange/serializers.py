"""
Serializers for spreadsheet uploads and JSON backups.

Backup serializers carry explicit ``id`` fields so rows keep their UUIDs
on restore. SMTP passwords are never part of a backup.
"""
from rest_framework import serializers

from apps.catalog.models import Category, UnitOfMeasure, Product
from apps.orders.models import Order, OrderItem
from apps.tenants.models import SiteSettings, SliderImage


class FileUploadSerializer(serializers.Serializer):
    file = serializers.FileField()


class ImportResultSerializer(serializers.Serializer):
    imported = serializers.DictField()
    errors = serializers.ListField(child=serializers.DictField())


class BackupCategorySerializer(serializers.ModelSerializer):
    id = serializers.UUIDField(required=False)

    class Meta:
        model = Category
        fields = ['id', 'name', 'description', 'image_url', 'created_at']
        read_only_fields = ['created_at']


class BackupUnitSerializer(serializers.ModelSerializer):
    id = serializers.UUIDField(required=False)

    class Meta:
        model = UnitOfMeasure
        fields = ['id', 'name', 'abbreviation', 'is_active', 'created_at']
        read_only_fields = ['created_at']
        # (store, abbreviation) uniqueness is handled by replacing the store's units
        validators = []


class BackupProductSerializer(serializers.ModelSerializer):
    id = serializers.UUIDField(required=False)
    category_id = serializers.UUIDField(required=False, allow_null=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'description', 'image_url', 'sku', 'price', 'category_id',
            'product_type', 'rental_period', 'rental_price', 'stock', 'unit_of_measure',
            'is_active', 'is_featured', 'rating', 'review_count', 'created_at',
        ]
        read_only_fields = ['created_at']


class BackupSliderImageSerializer(serializers.ModelSerializer):
    id = serializers.UUIDField(required=False)

    class Meta:
        model = SliderImage
        fields = ['id', 'image_url', 'title', 'description', 'is_active', 'sort_order', 'created_at']
        read_only_fields = ['created_at']


class BackupSiteSettingsSerializer(serializers.ModelSerializer):
    quick_links = serializers.ListField(child=serializers.DictField(), required=False)
    services_links = serializers.ListField(child=serializers.DictField(), required=False)

    class Meta:
        model = SiteSettings
        exclude = ['id', 'store', 'smtp_password', 'created_at', 'updated_at', 'deleted_at']


class BackupOrderSerializer(serializers.ModelSerializer):
    user_email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = Order
        exclude = ['store', 'user', 'admin_approved_by', 'deleted_at']


class BackupOrderItemSerializer(serializers.ModelSerializer):

    class Meta:
        model = OrderItem
        exclude = ['deleted_at']
