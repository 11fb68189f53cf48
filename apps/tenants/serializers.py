"""
Serializers for store settings, themes, slider images and uploads.

The SMTP password is write-only; reads expose ``smtp_password_set`` instead.
"""
from rest_framework import serializers
from apps.tenants.models import Store, SiteSettings, SliderImage


class StoreSerializer(serializers.ModelSerializer):

    class Meta:
        model = Store
        fields = ['id', 'name', 'slug', 'status', 'currency', 'tax_rate', 'contact_email']
        read_only_fields = fields


class SiteSettingsSerializer(serializers.ModelSerializer):
    """Read serializer; never includes the SMTP password."""

    smtp_password_set = serializers.BooleanField(read_only=True)

    class Meta:
        model = SiteSettings
        exclude = ['store', 'smtp_password', 'deleted_at']
        read_only_fields = ['id', 'created_at', 'updated_at']


class SiteSettingsUpdateSerializer(serializers.ModelSerializer):
    """Partial update payload. Every field is optional."""

    smtp_password = serializers.CharField(
        required=False,
        allow_blank=True,
        allow_null=True,
        write_only=True,
        max_length=255,
    )
    quick_links = serializers.ListField(child=serializers.DictField(), required=False)
    services_links = serializers.ListField(child=serializers.DictField(), required=False)

    class Meta:
        model = SiteSettings
        exclude = ['id', 'store', 'theme', 'created_at', 'updated_at', 'deleted_at']


class ThemeSerializer(serializers.Serializer):
    key = serializers.CharField()
    name = serializers.CharField()
    description = serializers.CharField()
    primary = serializers.CharField()
    secondary = serializers.CharField()
    accent = serializers.CharField()
    background = serializers.CharField()
    text = serializers.CharField()


class ApplyThemeSerializer(serializers.Serializer):
    theme = serializers.CharField(max_length=50)


class SliderImageSerializer(serializers.ModelSerializer):

    class Meta:
        model = SliderImage
        fields = [
            'id', 'image_url', 'title', 'description', 'is_active',
            'sort_order', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class TestEmailSerializer(serializers.Serializer):
    to = serializers.EmailField()


class ImageUploadSerializer(serializers.Serializer):
    image = serializers.FileField(required=False)
