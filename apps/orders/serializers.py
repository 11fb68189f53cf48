"""
Serializers for cart, wishlist and order API endpoints.
"""
from rest_framework import serializers
from apps.catalog.serializers import ProductSerializer
from apps.orders.models import CartItem, WishlistItem, Order, OrderItem


class CartItemSerializer(serializers.ModelSerializer):
    """Cart line with its product."""

    product = ProductSerializer(read_only=True)
    product_id = serializers.UUIDField(read_only=True)
    rental_days = serializers.IntegerField(read_only=True)

    class Meta:
        model = CartItem
        fields = [
            'id', 'product_id', 'product', 'quantity', 'rental_start_date',
            'rental_end_date', 'rental_days', 'unit_price', 'total_price',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class CartSummarySerializer(serializers.Serializer):
    item_count = serializers.IntegerField()
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    tax = serializers.DecimalField(max_digits=12, decimal_places=2)
    shipping = serializers.DecimalField(max_digits=12, decimal_places=2)
    total = serializers.DecimalField(max_digits=12, decimal_places=2)


class AddToCartSerializer(serializers.Serializer):
    """Input for adding a product to the cart."""

    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, default=1)
    rental_start_date = serializers.DateField(required=False, allow_null=True)
    rental_end_date = serializers.DateField(required=False, allow_null=True)

    def validate(self, data):
        start = data.get('rental_start_date')
        end = data.get('rental_end_date')
        if bool(start) != bool(end):
            raise serializers.ValidationError(
                'rental_start_date and rental_end_date must be given together'
            )
        return data


class UpdateCartItemSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(help_text="0 or less removes the line")


class WishlistItemSerializer(serializers.ModelSerializer):
    product = ProductSerializer(read_only=True)
    product_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = WishlistItem
        fields = ['id', 'product_id', 'product', 'created_at']
        read_only_fields = fields


class AddToWishlistSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()


class OrderItemSerializer(serializers.ModelSerializer):
    """Order line as captured at checkout."""

    product_id = serializers.UUIDField(read_only=True, allow_null=True)
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            'id', 'product_id', 'product_name', 'quantity', 'price', 'line_total',
            'rental_start_date', 'rental_end_date'
        ]
        read_only_fields = fields


class OrderCustomerSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    email = serializers.EmailField()
    full_name = serializers.CharField(source='get_full_name')


class OrderSerializer(serializers.ModelSerializer):
    """Serializer for Order list and detail views."""

    order_number = serializers.CharField(read_only=True)
    customer = OrderCustomerSerializer(source='user', read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    item_count = serializers.IntegerField(read_only=True)
    admin_approved_by = serializers.EmailField(source='admin_approved_by.email', read_only=True, default=None)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'customer', 'subtotal', 'tax', 'shipping', 'total',
            'status', 'payment_method', 'payment_status', 'payment_reference',
            'shipping_address', 'billing_address', 'order_notes',
            'admin_approval_status', 'admin_approved_by', 'admin_approved_at',
            'admin_remarks', 'paid_at', 'completed_at', 'items', 'item_count',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class OrderCreateSerializer(serializers.Serializer):
    """Checkout input; the cart provides the lines."""

    shipping_address = serializers.JSONField(required=False, default=dict)
    billing_address = serializers.JSONField(required=False, default=dict)
    payment_method = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    order_notes = serializers.CharField(required=False, allow_blank=True, default='')


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES)


class OrderPaymentSerializer(serializers.Serializer):
    payment_method = serializers.CharField(max_length=50)
    payment_reference = serializers.CharField(max_length=255, required=False, allow_blank=True)
    payment_status = serializers.ChoiceField(
        choices=[('completed', 'Completed'), ('failed', 'Failed')],
        default='completed'
    )


class ApproveOrderSerializer(serializers.Serializer):
    remarks = serializers.CharField(required=False, allow_blank=True, default='')


class RejectOrderSerializer(serializers.Serializer):
    remarks = serializers.CharField(
        required=False, allow_blank=True, default='',
        help_text="Reason shown to the customer (required)"
    )
