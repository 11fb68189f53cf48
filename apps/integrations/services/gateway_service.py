"""
Benefit Pay and Credimax payment sessions.

Both gateways share one stub engine: a pending transaction with a hosted
payment URL that expires after PAYMENT_SESSION_TTL_MINUTES, settled later
by the provider's webhook.
"""
import logging
import secrets
import string
import time
from datetime import timedelta
from typing import Dict, Optional
from urllib.parse import urlencode

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import ValidationError, NotFoundError, PaymentNotAllowed
from apps.core.sentry_utils import add_breadcrumb
from apps.integrations.models import PaymentTransaction
from apps.integrations.services.payment_service import PaymentService
from apps.orders.services import OrderService

logger = logging.getLogger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_lowercase

# URL slug -> gateway configuration
GATEWAYS = {
    'benefit-pay': {
        'provider': PaymentTransaction.PROVIDER_BENEFIT_PAY,
        'prefix': 'BEN',
        'url_setting': 'BENEFIT_PAY_URL',
        'default_currency': 'USD',
        'scope': 'payments:benefit',
    },
    'credimax': {
        'provider': PaymentTransaction.PROVIDER_CREDIMAX,
        'prefix': 'CREDIMAX',
        'url_setting': 'CREDIMAX_URL',
        'default_currency': 'BHD',
        'scope': 'payments:credimax',
    },
}

WEBHOOK_STATUSES = ('pending', 'completed', 'failed', 'expired')


class GatewayStubService:
    """Payment sessions for the hosted-page gateways."""

    @staticmethod
    def get_gateway(slug: str) -> dict:
        gateway = GATEWAYS.get(slug)
        if gateway is None:
            raise NotFoundError('Unknown payment provider', details={'provider': slug})
        return gateway

    @staticmethod
    def generate_transaction_id(prefix: str) -> str:
        """``<PREFIX>_<epoch ms>_<9 random base36 chars>``"""
        suffix = ''.join(secrets.choice(BASE36_ALPHABET) for _ in range(9))
        return f"{prefix}_{int(time.time() * 1000)}_{suffix}"

    @staticmethod
    def build_payment_url(gateway: dict, order_id, amount) -> str:
        base_url = getattr(settings, gateway['url_setting'])
        return f"{base_url}?{urlencode({'transaction': str(order_id), 'amount': str(amount)})}"

    @classmethod
    def create_payment(cls, slug: str, store, user, scopes, amount, order_id=None,
                       customer_info=None, currency: Optional[str] = None) -> PaymentTransaction:
        """
        Open a payment session for an order.

        Raises:
            ValidationError: invalid amount or missing order/customer details
            NotFoundError: unknown provider or order
            PermissionDeniedError: order belongs to another customer
        """
        gateway = cls.get_gateway(slug)
        amount = PaymentService.parse_amount(amount)
        if not order_id or not customer_info:
            raise ValidationError(
                'Missing required fields',
                details={'required': ['order_id', 'customer_info']}
            )

        order = PaymentService.resolve_order(store, user, scopes, order_id)
        payment = PaymentTransaction.objects.create(
            store=store,
            order=order,
            provider=gateway['provider'],
            transaction_id=cls.generate_transaction_id(gateway['prefix']),
            amount=amount,
            currency=(currency or gateway['default_currency']).upper(),
            status='pending',
            payment_url=cls.build_payment_url(gateway, order.id, amount),
            expires_at=timezone.now() + timedelta(minutes=settings.PAYMENT_SESSION_TTL_MINUTES),
            customer_info=customer_info,
        )

        logger.info(
            f"{payment.get_provider_display()} payment session created",
            extra={
                'store_id': str(store.id),
                'order_id': str(order.id),
                'transaction_id': payment.transaction_id,
                'amount': str(amount),
            }
        )
        return payment

    @classmethod
    def verify_payment(cls, slug: str, store, transaction_id: str) -> PaymentTransaction:
        """
        Current state of a payment session.

        A pending session past its expiry is reported (and stored) as expired.
        """
        gateway = cls.get_gateway(slug)
        payment = PaymentTransaction.objects.for_store(store).filter(
            provider=gateway['provider'],
            transaction_id=transaction_id,
        ).first()
        if payment is None:
            raise NotFoundError('Transaction not found', details={'transaction_id': transaction_id})

        if payment.status == 'pending' and payment.is_expired:
            payment.status = 'expired'
            payment.save(update_fields=['status', 'updated_at'])
        return payment

    @classmethod
    @transaction.atomic
    def handle_webhook(cls, slug: str, payload: Dict) -> PaymentTransaction:
        """
        Apply a gateway callback to its transaction.

        A ``completed`` status records payment on the linked order. Orders
        that can no longer take payment are logged and left untouched.

        Raises:
            ValidationError: missing transactionId or unknown status
            NotFoundError: unknown transaction
        """
        gateway = cls.get_gateway(slug)
        transaction_id = payload.get('transactionId')
        new_status = payload.get('status')
        if not transaction_id or new_status not in WEBHOOK_STATUSES:
            raise ValidationError(
                'Invalid webhook payload',
                details={'transactionId': transaction_id, 'status': new_status}
            )

        payment = PaymentTransaction.objects.select_for_update().filter(
            provider=gateway['provider'],
            transaction_id=transaction_id,
        ).first()
        if payment is None:
            raise NotFoundError('Transaction not found', details={'transaction_id': transaction_id})

        previous_status = payment.status
        payment.status = new_status
        payment.raw_payload = payload
        payment.save(update_fields=['status', 'raw_payload', 'updated_at'])

        logger.info(
            f"{payment.get_provider_display()} webhook received",
            extra={
                'transaction_id': transaction_id,
                'old_status': previous_status,
                'new_status': new_status,
                'amount': payload.get('amount'),
                'order_id': payload.get('orderId'),
            }
        )
        add_breadcrumb(
            'payment',
            f"Webhook moved {transaction_id} to {new_status}",
            data={'provider': payment.provider, 'old_status': previous_status},
        )

        if new_status in ('completed', 'failed') and previous_status != new_status and payment.order_id:
            try:
                with transaction.atomic():
                    OrderService.record_payment(
                        payment.order,
                        payment_method=gateway['provider'],
                        payment_reference=payment.transaction_id,
                        payment_status=new_status,
                    )
            except PaymentNotAllowed as e:
                logger.warning(
                    "Gateway payment received for an order that cannot take payment",
                    extra={
                        'transaction_id': transaction_id,
                        'order_id': str(payment.order_id),
                        'error': e.message,
                    }
                )
        return payment

    @staticmethod
    def expire_stale(now=None) -> int:
        """Mark pending sessions past their expiry as expired."""
        return PaymentTransaction.objects.expired_pending(now).filter(
            provider__in=[g['provider'] for g in GATEWAYS.values()]
        ).update(status='expired', updated_at=timezone.now())
