"""
Stripe payment intents.

Thin wrapper over the Stripe SDK. The secret key comes from
``STRIPE_SECRET_KEY``; without it every call fails with
PaymentProviderNotConfigured.
"""
import logging
from typing import Dict, Optional

import stripe
from django.conf import settings

from apps.core.exceptions import PaymentProviderNotConfigured, StorefrontException
from apps.integrations.models import PaymentTransaction
from apps.integrations.services.payment_service import PaymentService

logger = logging.getLogger(__name__)


class StripePaymentError(StorefrontException):
    """Raised when Stripe rejects a request."""
    status_code = 502
    default_code = 'PAYMENT_PROVIDER_ERROR'


class StripePaymentService:
    """Create Stripe payment intents for checkout."""

    @staticmethod
    def is_configured() -> bool:
        return bool(getattr(settings, 'STRIPE_SECRET_KEY', None))

    @classmethod
    def create_payment_intent(cls, store, amount, currency: Optional[str] = None,
                              order=None, user=None) -> Dict[str, str]:
        """
        Create a payment intent and return its client secret.

        Args:
            store: Store taking the payment
            amount: Major-unit amount (e.g. 12.50)
            currency: ISO currency code, defaults to STRIPE_DEFAULT_CURRENCY
            order: Optional order the intent pays for

        Returns:
            dict: ``{'client_secret': ...}``

        Raises:
            PaymentProviderNotConfigured: STRIPE_SECRET_KEY is unset
            ValidationError: amount is not positive
            StripePaymentError: Stripe refused the request
        """
        if not cls.is_configured():
            raise PaymentProviderNotConfigured('Stripe not configured')

        amount = PaymentService.parse_amount(amount)
        currency = (currency or settings.STRIPE_DEFAULT_CURRENCY).lower()

        stripe.api_key = settings.STRIPE_SECRET_KEY
        metadata = {'store_id': str(store.id)}
        if order is not None:
            metadata['order_id'] = str(order.id)
        if user is not None:
            metadata['user_id'] = str(user.id)

        try:
            intent = stripe.PaymentIntent.create(
                amount=PaymentService.minor_units(amount),
                currency=currency,
                automatic_payment_methods={'enabled': True},
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error(
                "Stripe payment intent creation failed",
                extra={'store_id': str(store.id), 'error': str(e)},
                exc_info=True
            )
            raise StripePaymentError('Failed to create payment intent', details={'error': str(e)})

        PaymentTransaction.objects.create(
            store=store,
            order=order,
            provider=PaymentTransaction.PROVIDER_STRIPE,
            transaction_id=intent['id'],
            amount=amount,
            currency=currency.upper(),
            customer_info={'user_id': str(user.id)} if user is not None else {},
        )

        logger.info(
            "Stripe payment intent created",
            extra={'store_id': str(store.id), 'intent_id': intent['id'], 'amount': str(amount)}
        )
        return {'client_secret': intent['client_secret']}
