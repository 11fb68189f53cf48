"""
Serializers for payment endpoints.

Amount and required-field checks live in the services so every gateway
reports them the same way.
"""
from rest_framework import serializers
from apps.integrations.models import PaymentTransaction


class PaymentTransactionSerializer(serializers.ModelSerializer):
    order_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = PaymentTransaction
        fields = [
            'transaction_id', 'provider', 'status', 'amount', 'currency',
            'payment_url', 'expires_at', 'order_id', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class PaymentIntentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    currency = serializers.CharField(max_length=3, required=False, allow_blank=True)
    order_id = serializers.UUIDField(required=False, allow_null=True)


class GatewayPaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    currency = serializers.CharField(max_length=3, required=False, allow_blank=True)
    order_id = serializers.UUIDField(required=False, allow_null=True)
    customer_info = serializers.DictField(required=False, allow_empty=True)


class CashOnDeliverySerializer(serializers.Serializer):
    order_id = serializers.UUIDField(required=False, allow_null=True)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    shipping_address = serializers.JSONField(required=False)
