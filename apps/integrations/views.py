"""
Payment API views.

Stripe payment intents, Benefit Pay / Credimax payment sessions and their
webhooks, and cash on delivery. Webhooks are public and resolve the store
from the transaction rather than the request.
"""
import logging
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema
from drf_spectacular.types import OpenApiTypes

from apps.core.permissions import requires_scopes, HasStoreScopes
from apps.integrations.services import (
    PaymentService, StripePaymentService, GatewayStubService, CashOnDeliveryService,
)
from apps.integrations.serializers import (
    PaymentTransactionSerializer, PaymentIntentSerializer,
    GatewayPaymentSerializer, CashOnDeliverySerializer,
)

logger = logging.getLogger(__name__)


class StripePaymentIntentView(APIView):
    """POST /v1/payments/stripe/payment-intent"""

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Payments'],
        summary='Create Stripe payment intent',
        description='Returns the client secret for Stripe.js. Fails with 400 when Stripe keys are not set.',
        request=PaymentIntentSerializer,
        responses={200: OpenApiTypes.OBJECT},
    )
    @requires_scopes('payments:stripe')
    def post(self, request):
        serializer = PaymentIntentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = None
        if data.get('order_id'):
            order = PaymentService.resolve_order(
                request.store, request.user, request.scopes, data['order_id']
            )

        result = StripePaymentService.create_payment_intent(
            request.store,
            data.get('amount'),
            currency=data.get('currency') or None,
            order=order,
            user=request.user,
        )
        return Response(result)


class GatewayPaymentCreateView(APIView):
    """
    POST /v1/payments/benefit-pay/create  (payments:benefit)
    POST /v1/payments/credimax/create     (payments:credimax)
    """

    permission_classes = [HasStoreScopes]

    def check_permissions(self, request):
        """Required scope depends on the gateway in the URL."""
        self.required_scopes = {GatewayStubService.get_gateway(self.kwargs['provider'])['scope']}
        super().check_permissions(request)

    @extend_schema(
        tags=['Payments'],
        summary='Create gateway payment session',
        description='Opens a pending payment session that expires after 15 minutes.',
        request=GatewayPaymentSerializer,
        responses={201: PaymentTransactionSerializer},
    )
    def post(self, request, provider):
        serializer = GatewayPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        payment = GatewayStubService.create_payment(
            provider,
            request.store,
            request.user,
            request.scopes,
            amount=data.get('amount'),
            order_id=data.get('order_id'),
            customer_info=data.get('customer_info'),
            currency=data.get('currency') or None,
        )
        return Response(PaymentTransactionSerializer(payment).data, status=status.HTTP_201_CREATED)


class GatewayPaymentVerifyView(APIView):
    """GET /v1/payments/{provider}/verify/{transaction_id}  (payments:view)"""

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Payments'],
        summary='Verify payment session',
        responses={200: PaymentTransactionSerializer},
    )
    @requires_scopes('payments:view')
    def get(self, request, provider, transaction_id):
        payment = GatewayStubService.verify_payment(provider, request.store, transaction_id)
        return Response(PaymentTransactionSerializer(payment).data)


class GatewayWebhookView(APIView):
    """
    POST /v1/payments/{provider}/webhook

    Public callback from the gateway with
    ``{transactionId, status, amount, orderId}``.
    """

    authentication_classes = []
    permission_classes = []

    @extend_schema(
        tags=['Payments'],
        summary='Gateway webhook',
        request=OpenApiTypes.OBJECT,
        responses={200: OpenApiTypes.OBJECT},
    )
    def post(self, request, provider):
        payload = request.data.dict() if hasattr(request.data, 'dict') else dict(request.data)
        GatewayStubService.handle_webhook(provider, payload)
        return Response({'received': True})


class CashOnDeliveryView(APIView):
    """POST /v1/payments/cash-on-delivery  (payments:cod)"""

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Payments'],
        summary='Pay cash on delivery',
        request=CashOnDeliverySerializer,
        responses={200: OpenApiTypes.OBJECT},
    )
    @requires_scopes('payments:cod')
    def post(self, request):
        serializer = CashOnDeliverySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = CashOnDeliveryService.create(
            request.store,
            request.user,
            request.scopes,
            order_id=data.get('order_id'),
            amount=data.get('amount'),
            shipping_address=data.get('shipping_address'),
            request=request,
        )
        return Response(result)
