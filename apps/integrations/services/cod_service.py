"""
Cash on delivery.

No gateway involved: the order is flagged for payment on delivery and a
pending COD transaction is kept for reconciliation.
"""
import logging
from typing import Dict

from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import ValidationError
from apps.integrations.models import PaymentTransaction
from apps.integrations.services.payment_service import PaymentService
from apps.rbac.models import AuditLog

logger = logging.getLogger(__name__)


class CashOnDeliveryService:

    @classmethod
    @transaction.atomic
    def create(cls, store, user, scopes, order_id, amount, shipping_address, request=None) -> Dict:
        """
        Switch an order to cash on delivery.

        Raises:
            ValidationError: a field is missing or the amount is invalid
            NotFoundError: unknown order
            PermissionDeniedError: order belongs to another customer
        """
        if not order_id or amount in (None, '') or not shipping_address:
            raise ValidationError(
                'Missing required fields',
                details={'required': ['order_id', 'amount', 'shipping_address']}
            )
        amount = PaymentService.parse_amount(amount)
        order = PaymentService.resolve_order(store, user, scopes, order_id)

        previous_method = order.payment_method
        order.payment_method = PaymentTransaction.PROVIDER_COD
        order.payment_status = 'pending'
        order.shipping_address = shipping_address
        order.save(update_fields=['payment_method', 'payment_status', 'shipping_address', 'updated_at'])

        payment = PaymentTransaction.objects.create(
            store=store,
            order=order,
            provider=PaymentTransaction.PROVIDER_COD,
            transaction_id=f"COD_{order.order_number}_{int(timezone.now().timestamp() * 1000)}",
            amount=amount,
            currency=store.currency,
            status='pending',
            customer_info={'user_id': str(user.id), 'email': user.email},
        )

        AuditLog.log_action(
            action='cash_on_delivery_selected',
            user=user,
            store=store,
            target_type='Order',
            target_id=order.id,
            diff={'payment_method': {'old': previous_method, 'new': order.payment_method}},
            metadata={'order_number': order.order_number, 'transaction_id': payment.transaction_id},
            request=request,
        )
        logger.info(
            f"Cash on delivery selected for order {order.order_number}",
            extra={'order_id': str(order.id), 'amount': str(amount)}
        )

        return {
            'success': True,
            'order': {
                'order_id': str(order.id),
                'status': 'pending_payment',
                'payment_method': order.payment_method,
                'amount': str(amount),
                'shipping_address': shipping_address,
            },
            'message': 'Cash on delivery order created successfully',
        }
