"""
Payment gateway services.
"""
from .payment_service import PaymentService
from .stripe_service import StripePaymentService
from .gateway_service import GatewayStubService, GATEWAYS
from .cod_service import CashOnDeliveryService

__all__ = [
    'PaymentService',
    'StripePaymentService',
    'GatewayStubService',
    'GATEWAYS',
    'CashOnDeliveryService',
]
