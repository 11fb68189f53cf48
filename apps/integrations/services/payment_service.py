"""
Shared helpers for payment gateway services.

Resolves the order a payment is for and converts amounts, so every
provider applies the same ownership and money rules.
"""
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from apps.core.exceptions import ValidationError, PermissionDeniedError
from apps.orders.services import OrderService

logger = logging.getLogger(__name__)


class PaymentService:
    """Order lookup and amount handling shared by the gateways."""

    @staticmethod
    def parse_amount(value) -> Decimal:
        """
        Parse a positive payment amount.

        Raises:
            ValidationError: amount missing, not numeric or not above zero
        """
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError('Invalid amount', details={'amount': value})
        if not amount.is_finite() or amount <= 0:
            raise ValidationError('Invalid amount', details={'amount': str(value)})
        return amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

    @staticmethod
    def minor_units(amount: Decimal) -> int:
        """Amount in cents, rounded half up."""
        return int((Decimal(amount) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))

    @staticmethod
    def resolve_order(store, user, scopes, order_id):
        """
        Load an order the caller may pay for.

        Customers may only pay for their own orders; staff with
        ``orders:view`` may act on any order in the store.

        Raises:
            NotFoundError: order does not exist in this store
            PermissionDeniedError: order belongs to another customer
        """
        order = OrderService.get_order(store, order_id)
        if not OrderService.can_view(order, user, scopes):
            logger.warning(
                "Payment attempted for another customer's order",
                extra={'order_id': str(order.id), 'user_id': str(getattr(user, 'id', ''))}
            )
            raise PermissionDeniedError('You do not have access to this order')
        return order
