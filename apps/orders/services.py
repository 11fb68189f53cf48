"""
Cart, wishlist and order services.

Implements:
- CartService: cart lines with sale merging and rental pricing
- WishlistService: saved products
- OrderService: checkout and the admin approval state machine
- OrderNotificationService: queues order emails after commit
"""
import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Dict, Any

from django.db import transaction
from django.utils import timezone

from apps.catalog.models import Product
from apps.catalog.services import CatalogService
from apps.core.exceptions import (
    ValidationError, NotFoundError, InvalidStateTransition, PaymentNotAllowed,
)
from apps.orders.models import CartItem, WishlistItem, Order, OrderItem
from apps.rbac.models import AuditLog

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')


def money(value) -> Decimal:
    """Round to cents, half up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class CartService:
    """Service for a user's cart within one store."""

    @staticmethod
    def get_items(store, user):
        return (
            CartItem.objects.for_user(store, user)
            .filter(product__deleted_at__isnull=True)
            .select_related('product', 'product__category')
        )

    @staticmethod
    def rental_days(start: date, end: date) -> int:
        """Inclusive day count of a rental period."""
        if start is None or end is None:
            raise ValidationError('Rental products require rental_start_date and rental_end_date')
        if end < start:
            raise ValidationError('Rental end date must be on or after the start date')
        return (end - start).days + 1

    @classmethod
    def unit_price(cls, product: Product, rental_start_date=None, rental_end_date=None) -> Decimal:
        if not product.is_rental:
            return money(product.price)
        per_day = product.rental_price if product.rental_price is not None else product.price
        return money(per_day * cls.rental_days(rental_start_date, rental_end_date))

    @staticmethod
    def _check_stock(product: Product, quantity: int):
        if quantity > product.stock:
            raise ValidationError(
                'Requested quantity exceeds available stock',
                details={'product_id': str(product.id), 'available': product.stock, 'requested': quantity}
            )

    @classmethod
    @transaction.atomic
    def add_item(cls, store, user, product: Product, quantity: int = 1,
                 rental_start_date=None, rental_end_date=None) -> CartItem:
        """
        Add a product to the cart.

        Sale products merge into the existing line; rental products always
        get a new line for their period.

        Raises:
            ValidationError: inactive product, bad quantity, rental dates
                missing or reversed, or not enough stock
        """
        if product.store_id != store.id:
            raise NotFoundError('Product not found', details={'product_id': str(product.id)})
        if not product.is_active:
            raise ValidationError('Product is not available', details={'product_id': str(product.id)})
        if quantity < 1:
            raise ValidationError('Quantity must be at least 1')

        if product.is_rental:
            unit_price = cls.unit_price(product, rental_start_date, rental_end_date)
            cls._check_stock(product, quantity)
            item = CartItem(
                store=store,
                user=user,
                product=product,
                quantity=quantity,
                rental_start_date=rental_start_date,
                rental_end_date=rental_end_date,
                unit_price=unit_price,
            )
            item.recalculate()
            item.save()
            return item

        item = (
            CartItem.objects.for_user(store, user)
            .filter(product=product, rental_start_date__isnull=True)
            .first()
        )
        new_quantity = quantity + (item.quantity if item else 0)
        cls._check_stock(product, new_quantity)

        if item is None:
            item = CartItem(store=store, user=user, product=product)
        item.quantity = new_quantity
        item.unit_price = cls.unit_price(product)
        item.recalculate()
        item.save()
        return item

    @classmethod
    @transaction.atomic
    def update_quantity(cls, store, user, product_id, quantity: int) -> Optional[CartItem]:
        """
        Set the quantity of a product's cart line.

        Returns:
            The updated line, or None when quantity <= 0 removed it.
        """
        item = cls.get_items(store, user).filter(product_id=product_id).first()
        if item is None:
            raise NotFoundError('Product is not in the cart', details={'product_id': str(product_id)})

        if quantity <= 0:
            item.hard_delete()
            return None

        cls._check_stock(item.product, quantity)
        item.quantity = quantity
        item.recalculate()
        item.save(update_fields=['quantity', 'total_price', 'updated_at'])
        return item

    @staticmethod
    def remove_item(store, user, product_id) -> int:
        """Remove every cart line for the product."""
        lines = CartItem.objects.for_user(store, user).filter(product_id=product_id)
        removed = lines.count()
        if not removed:
            raise NotFoundError('Product is not in the cart', details={'product_id': str(product_id)})
        lines.hard_delete()
        return removed

    @staticmethod
    def clear(store, user) -> int:
        lines = CartItem.objects.for_user(store, user)
        count = lines.count()
        lines.hard_delete()
        return count

    @staticmethod
    def tax_rate(store) -> Decimal:
        return Decimal(store.tax_rate)

    @classmethod
    def summary(cls, store, user, items=None) -> Dict[str, Any]:
        """Cart totals using the store tax rate; shipping is free."""
        if items is None:
            items = cls.get_items(store, user)
        items = list(items)

        subtotal = money(sum((item.total_price for item in items), Decimal('0')))
        tax = money(subtotal * cls.tax_rate(store))
        shipping = money(0)

        return {
            'item_count': sum(item.quantity for item in items),
            'subtotal': subtotal,
            'tax': tax,
            'shipping': shipping,
            'total': money(subtotal + tax + shipping),
        }


class WishlistService:
    """Service for a user's wishlist."""

    @staticmethod
    def list_items(store, user):
        return (
            WishlistItem.objects.filter(store=store, user=user, product__deleted_at__isnull=True)
            .select_related('product', 'product__category')
        )

    @staticmethod
    def add(store, user, product: Product) -> WishlistItem:
        """Add a product; adding it twice returns the existing entry."""
        if product.store_id != store.id:
            raise NotFoundError('Product not found', details={'product_id': str(product.id)})
        item, _ = WishlistItem.objects.get_or_create(store=store, user=user, product=product)
        return item

    @staticmethod
    def remove(store, user, product_id) -> bool:
        deleted, _ = WishlistItem.objects.filter(store=store, user=user, product_id=product_id).delete()
        return deleted > 0


class OrderNotificationService:
    """
    Queue order emails once the current transaction commits.

    Sending happens in Celery; failures there are logged and retried and
    never roll back the order change that triggered them.
    """

    @staticmethod
    def _queue(task, *args):
        transaction.on_commit(lambda: task.delay(*args), robust=True)

    @classmethod
    def order_submitted(cls, order: Order):
        from apps.orders.tasks import send_order_email, send_admin_order_notification

        cls._queue(send_order_email, str(order.id), 'order_submitted')
        cls._queue(send_admin_order_notification, str(order.id))

    @classmethod
    def order_approved(cls, order: Order):
        from apps.orders.tasks import send_order_email

        cls._queue(send_order_email, str(order.id), 'order_approved')

    @classmethod
    def order_rejected(cls, order: Order):
        from apps.orders.tasks import send_order_email

        reason = order.admin_remarks or 'No specific reason provided'
        cls._queue(send_order_email, str(order.id), 'order_rejected', reason)

    @classmethod
    def payment_confirmed(cls, order: Order):
        from apps.orders.tasks import send_order_email

        cls._queue(send_order_email, str(order.id), 'payment_confirmation')


class OrderService:
    """
    Checkout and the order approval workflow.

    awaiting_approval --approve--> payment_pending --record_payment--> confirmed
    awaiting_approval --reject--> cancelled (stock restored)
    confirmed/processing/shipped --complete--> delivered
    """

    STATUSES = {choice for choice, _ in Order.STATUS_CHOICES}
    PAYABLE_STATUSES = ('awaiting_approval', 'payment_pending')
    COMPLETABLE_STATUSES = ('confirmed', 'processing', 'shipped')
    APPROVABLE_STATUSES = ('pending', 'awaiting_approval')

    @staticmethod
    def get_order(store, order_id) -> Order:
        order = (
            Order.objects.for_store(store)
            .select_related('user', 'admin_approved_by', 'store')
            .prefetch_related('items')
            .filter(id=order_id)
            .first()
        )
        if order is None:
            raise NotFoundError('Order not found', details={'order_id': str(order_id)})
        return order

    @staticmethod
    def can_view(order: Order, user, scopes) -> bool:
        return order.user_id == getattr(user, 'id', None) or 'orders:view' in (scopes or set())

    @classmethod
    @transaction.atomic
    def create_order(cls, store, user, shipping_address=None, payment_method: str = '',
                     billing_address=None, order_notes: str = '', request=None) -> Order:
        """
        Turn the user's cart into an order awaiting admin approval.

        Stock is taken immediately (floored at zero) and the cart is cleared.
        The customer and store admins are emailed after commit.

        Raises:
            ValidationError: the cart is empty
        """
        items = list(CartService.get_items(store, user))
        if not items:
            raise ValidationError('Cart is empty')

        totals = CartService.summary(store, user, items=items)

        order = Order.objects.create(
            store=store,
            user=user,
            subtotal=totals['subtotal'],
            tax=totals['tax'],
            shipping=totals['shipping'],
            total=totals['total'],
            status='awaiting_approval',
            admin_approval_status='pending',
            payment_status='pending',
            payment_method=payment_method or '',
            shipping_address=shipping_address or {},
            billing_address=billing_address or {},
            order_notes=order_notes or '',
        )

        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product=item.product,
                product_name=item.product.name,
                quantity=item.quantity,
                price=item.unit_price,
                rental_start_date=item.rental_start_date,
                rental_end_date=item.rental_end_date,
            )
            for item in items
        ])

        for item in items:
            CatalogService.decrement_stock(item.product, item.quantity)

        CartService.clear(store, user)

        AuditLog.log_action(
            action='order_created',
            user=user,
            store=store,
            target_type='Order',
            target_id=order.id,
            metadata={
                'total': str(order.total),
                'item_count': len(items),
                'payment_method': order.payment_method,
            },
            request=request,
        )

        logger.info(
            f"Order {order.order_number} created",
            extra={'store_id': str(store.id), 'order_id': str(order.id), 'total': str(order.total)}
        )

        OrderNotificationService.order_submitted(order)
        return order

    @staticmethod
    def _restore_stock(order: Order):
        for item in order.items.all():
            if item.product_id:
                CatalogService.restore_stock(item.product, item.quantity)

    @classmethod
    def _require_pending_approval(cls, order: Order):
        if order.admin_approval_status != 'pending':
            raise InvalidStateTransition(
                f"Order is already {order.admin_approval_status}",
                details={'admin_approval_status': order.admin_approval_status}
            )
        if order.status not in cls.APPROVABLE_STATUSES:
            raise InvalidStateTransition(
                f"Order is {order.status} and can no longer be reviewed",
                details={'status': order.status}
            )

    @staticmethod
    def _audit(action, order, user, diff, request=None, metadata=None):
        AuditLog.log_action(
            action=action,
            user=user,
            store=order.store,
            target_type='Order',
            target_id=order.id,
            diff=diff,
            metadata=metadata or {'order_number': order.order_number},
            request=request,
        )

    @classmethod
    @transaction.atomic
    def approve(cls, order: Order, admin, remarks: Optional[str] = None, request=None) -> Order:
        """
        Approve a pending order; the customer may now pay.

        Raises:
            InvalidStateTransition: the order was already reviewed or has left
                the pending states
        """
        order = Order.objects.select_for_update().get(pk=order.pk)
        cls._require_pending_approval(order)

        previous_status = order.status
        order.admin_approval_status = 'approved'
        order.status = 'payment_pending'
        order.admin_approved_by = admin
        order.admin_approved_at = timezone.now()
        order.admin_remarks = remarks or ''
        order.save()

        cls._audit(
            'order_approved', order, admin,
            diff={'status': {'old': previous_status, 'new': order.status}},
            request=request,
        )
        OrderNotificationService.order_approved(order)
        return order

    @classmethod
    @transaction.atomic
    def reject(cls, order: Order, admin, remarks: str, request=None) -> Order:
        """
        Reject a pending order, cancel it and return its stock.

        Raises:
            ValidationError: no remarks given
            InvalidStateTransition: the order was already reviewed or has left
                the pending states
        """
        if not remarks or not remarks.strip():
            raise ValidationError('Remarks are required when rejecting an order')

        order = Order.objects.select_for_update().get(pk=order.pk)
        cls._require_pending_approval(order)

        previous_status = order.status
        order.admin_approval_status = 'rejected'
        order.status = 'cancelled'
        order.admin_approved_by = admin
        order.admin_approved_at = timezone.now()
        order.admin_remarks = remarks.strip()
        order.save()

        cls._restore_stock(order)

        cls._audit(
            'order_rejected', order, admin,
            diff={'status': {'old': previous_status, 'new': order.status}},
            request=request,
            metadata={'order_number': order.order_number, 'remarks': order.admin_remarks},
        )
        OrderNotificationService.order_rejected(order)
        return order

    @classmethod
    @transaction.atomic
    def record_payment(cls, order: Order, payment_method: str, payment_reference: Optional[str] = None,
                       payment_status: str = 'completed', user=None, request=None) -> Order:
        """
        Record a payment attempt against an approved order.

        Raises:
            PaymentNotAllowed: the order is not approved or no longer payable
            ValidationError: unknown payment status
        """
        if payment_status not in ('completed', 'failed'):
            raise ValidationError('payment_status must be completed or failed')

        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.admin_approval_status != 'approved' or order.status not in cls.PAYABLE_STATUSES:
            raise PaymentNotAllowed(
                'Order must be approved by an admin before payment',
                details={
                    'status': order.status,
                    'admin_approval_status': order.admin_approval_status,
                }
            )

        previous_status = order.status
        previous_payment_status = order.payment_status
        order.payment_method = payment_method or order.payment_method
        if payment_reference:
            order.payment_reference = payment_reference

        if payment_status == 'completed':
            order.payment_status = 'completed'
            order.status = 'confirmed'
            order.paid_at = timezone.now()
        else:
            order.payment_status = 'failed'
        order.save()

        cls._audit(
            'payment_recorded' if payment_status == 'completed' else 'payment_failed',
            order, user,
            diff={
                'status': {'old': previous_status, 'new': order.status},
                'payment_status': {'old': previous_payment_status, 'new': order.payment_status},
            },
            request=request,
            metadata={
                'order_number': order.order_number,
                'payment_method': order.payment_method,
                'payment_reference': order.payment_reference,
            },
        )

        if payment_status == 'completed':
            OrderNotificationService.payment_confirmed(order)
        else:
            logger.warning(
                f"Payment failed for order {order.order_number}",
                extra={'order_id': str(order.id), 'payment_method': order.payment_method}
            )
        return order

    @classmethod
    @transaction.atomic
    def complete(cls, order: Order, admin, request=None) -> Order:
        """Mark a paid order as delivered."""
        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.status not in cls.COMPLETABLE_STATUSES:
            raise InvalidStateTransition(
                f"Cannot complete an order with status {order.status}",
                details={'status': order.status}
            )

        previous_status = order.status
        order.status = 'delivered'
        order.completed_at = timezone.now()
        order.save()

        cls._audit(
            'order_completed', order, admin,
            diff={'status': {'old': previous_status, 'new': order.status}},
            request=request,
        )
        return order

    @classmethod
    @transaction.atomic
    def update_status(cls, order: Order, status: str, user=None, request=None) -> Order:
        """
        Admin override of the order status.

        Cancelling an order that was never paid returns its stock. An order
        still waiting for review is closed as rejected so it cannot be
        approved afterwards.
        """
        if status not in cls.STATUSES:
            raise ValidationError(
                f"Unknown order status: {status}",
                details={'allowed': sorted(cls.STATUSES)}
            )

        order = Order.objects.select_for_update().get(pk=order.pk)
        previous_status = order.status
        if previous_status == status:
            return order

        diff = {'status': {'old': previous_status, 'new': status}}
        if status == 'cancelled' and previous_status in Order.PRE_PAYMENT_STATUSES:
            cls._restore_stock(order)
        if status == 'cancelled' and order.admin_approval_status == 'pending':
            order.admin_approval_status = 'rejected'
            diff['admin_approval_status'] = {'old': 'pending', 'new': 'rejected'}
        if status == 'delivered' and order.completed_at is None:
            order.completed_at = timezone.now()

        order.status = status
        order.save()

        cls._audit(
            'order_status_updated', order, user,
            diff=diff,
            request=request,
        )
        return order

    @staticmethod
    def list_orders(store, user, scopes, status=None, approval_status=None):
        """Orders visible to the caller: all with orders:view, else their own."""
        if 'orders:view' in (scopes or set()):
            orders = Order.objects.for_store(store)
        else:
            orders = Order.objects.for_user(store, user)

        if status:
            orders = orders.filter(status=status)
        if approval_status:
            orders = orders.filter(admin_approval_status=approval_status)

        return orders.select_related('user').prefetch_related('items')

    @staticmethod
    def approval_requests(store):
        """Orders waiting for an admin decision, oldest first."""
        return (
            Order.objects.for_store(store)
            .pending_approval()
            .select_related('user')
            .prefetch_related('items')
            .order_by('created_at')
        )
