"""
Serializers for catalog API endpoints.
"""
from rest_framework import serializers
from apps.catalog.models import Product, Category, UnitOfMeasure


class CategorySerializer(serializers.ModelSerializer):
    """Serializer for Category."""

    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = [
            'id', 'name', 'description', 'image_url', 'product_count',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_product_count(self, obj):
        return obj.products.filter(is_active=True).count()


class CategoryWriteSerializer(serializers.Serializer):
    """Input for creating and updating categories."""

    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True)
    image_url = serializers.CharField(max_length=500, required=False, allow_blank=True)


class UnitOfMeasureSerializer(serializers.ModelSerializer):

    class Meta:
        model = UnitOfMeasure
        fields = ['id', 'name', 'abbreviation', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']


class UnitOfMeasureWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    abbreviation = serializers.CharField(max_length=20)
    is_active = serializers.BooleanField(required=False, default=True)


class ProductSerializer(serializers.ModelSerializer):
    """Serializer for Product list and detail views."""

    category_id = serializers.UUIDField(read_only=True, allow_null=True)
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)
    is_in_stock = serializers.BooleanField(read_only=True)
    is_rental = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'description', 'price', 'stock', 'sku', 'image_url',
            'category_id', 'category_name', 'is_active', 'is_featured',
            'rating', 'review_count', 'product_type', 'rental_period',
            'rental_price', 'unit_of_measure', 'is_in_stock', 'is_rental',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class ProductWriteSerializer(serializers.Serializer):
    """
    Input for creating (full) and updating (partial=True) products.

    Business rules (price >= 0, rental products need a rental price) are
    enforced by CatalogService so imports follow the same rules.
    """

    name = serializers.CharField(max_length=500)
    description = serializers.CharField(required=False, allow_blank=True)
    price = serializers.DecimalField(max_digits=10, decimal_places=2)
    stock = serializers.IntegerField(required=False, min_value=0)
    sku = serializers.CharField(max_length=255, required=False, allow_blank=True)
    image_url = serializers.CharField(max_length=500, required=False, allow_blank=True)
    category_id = serializers.UUIDField(required=False, allow_null=True)
    is_active = serializers.BooleanField(required=False)
    is_featured = serializers.BooleanField(required=False)
    rating = serializers.DecimalField(max_digits=2, decimal_places=1, required=False, min_value=0, max_value=5)
    review_count = serializers.IntegerField(required=False, min_value=0)
    product_type = serializers.ChoiceField(choices=Product.PRODUCT_TYPE_CHOICES, required=False)
    rental_period = serializers.ChoiceField(
        choices=Product.RENTAL_PERIOD_CHOICES, required=False, allow_blank=True
    )
    rental_price = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    unit_of_measure = serializers.CharField(max_length=20, required=False)

    def validate_price(self, value):
        if value < 0:
            raise serializers.ValidationError('Price must be greater than or equal to 0')
        return value


class ProductSearchSerializer(serializers.Serializer):
    """Query parameters accepted by the product list."""

    search = serializers.CharField(required=False, allow_blank=True)
    category = serializers.UUIDField(required=False)
    featured = serializers.BooleanField(required=False, allow_null=True, default=None)
    active = serializers.BooleanField(required=False, allow_null=True, default=None)
