"""
Tests for OrderService checkout and the approval state machine.
"""
import pytest
from datetime import date
from decimal import Decimal

from apps.core.exceptions import ValidationError, InvalidStateTransition, PaymentNotAllowed
from apps.orders.models import CartItem
from apps.orders.services import CartService, OrderService
from apps.rbac.models import AuditLog


@pytest.fixture
def placed_order(store, customer_user, product):
    CartService.add_item(store, customer_user, product, quantity=3)
    return OrderService.create_order(
        store, customer_user,
        shipping_address={'line1': '1 Main St', 'city': 'Manama'},
        payment_method='cash_on_delivery',
    )


@pytest.mark.django_db
class TestCreateOrder:

    def test_empty_cart_is_rejected(self, store, customer_user):
        with pytest.raises(ValidationError) as exc_info:
            OrderService.create_order(store, customer_user)

        assert exc_info.value.message == 'Cart is empty'

    def test_order_totals_and_state(self, placed_order):
        assert placed_order.subtotal == Decimal('300.00')
        assert placed_order.tax == Decimal('30.00')
        assert placed_order.shipping == Decimal('0.00')
        assert placed_order.total == Decimal('330.00')
        assert placed_order.status == 'awaiting_approval'
        assert placed_order.admin_approval_status == 'pending'
        assert placed_order.payment_status == 'pending'

    def test_items_snapshot_product(self, placed_order, product):
        item = placed_order.items.get()

        assert item.product_name == 'Cordless Drill'
        assert item.quantity == 3
        assert item.price == Decimal('100.00')

    def test_stock_is_taken_and_cart_cleared(self, placed_order, product, customer_user):
        product.refresh_from_db()

        assert product.stock == 7
        assert not CartItem.objects.filter(user=customer_user).exists()

    def test_stock_never_goes_negative(self, store, customer_user, product):
        CartService.add_item(store, customer_user, product, quantity=10)
        product.stock = 4
        product.save()

        OrderService.create_order(store, customer_user)

        product.refresh_from_db()
        assert product.stock == 0

    def test_rental_lines_keep_their_period(self, store, customer_user, rental_product):
        CartService.add_item(
            store, customer_user, rental_product,
            rental_start_date=date(2026, 5, 1), rental_end_date=date(2026, 5, 2),
        )

        order = OrderService.create_order(store, customer_user)

        item = order.items.get()
        assert item.price == Decimal('80.00')
        assert item.rental_start_date == date(2026, 5, 1)
        assert order.subtotal == Decimal('80.00')

    def test_creation_is_audited(self, placed_order, store):
        assert AuditLog.objects.filter(action='order_created', store=store, target_id=placed_order.id).exists()


@pytest.mark.django_db
class TestApproval:

    def test_approve(self, placed_order, admin_user):
        order = OrderService.approve(placed_order, admin_user, remarks='Looks good')

        assert order.admin_approval_status == 'approved'
        assert order.status == 'payment_pending'
        assert order.admin_approved_by == admin_user
        assert order.admin_approved_at is not None
        assert order.admin_remarks == 'Looks good'
        assert AuditLog.objects.filter(action='order_approved', target_id=order.id).exists()

    def test_approve_twice_conflicts(self, placed_order, admin_user):
        OrderService.approve(placed_order, admin_user)

        with pytest.raises(InvalidStateTransition):
            OrderService.approve(placed_order, admin_user)

    def test_reject_requires_remarks(self, placed_order, admin_user):
        with pytest.raises(ValidationError):
            OrderService.reject(placed_order, admin_user, '  ')

    def test_reject_cancels_and_restores_stock(self, placed_order, admin_user, product):
        order = OrderService.reject(placed_order, admin_user, 'Out of delivery area')

        product.refresh_from_db()
        assert order.admin_approval_status == 'rejected'
        assert order.status == 'cancelled'
        assert order.admin_remarks == 'Out of delivery area'
        assert product.stock == 10

    def test_reject_after_approval_conflicts(self, placed_order, admin_user):
        OrderService.approve(placed_order, admin_user)

        with pytest.raises(InvalidStateTransition):
            OrderService.reject(placed_order, admin_user, 'Changed my mind')


@pytest.mark.django_db
class TestPayment:

    def test_payment_before_approval_is_not_allowed(self, placed_order):
        with pytest.raises(PaymentNotAllowed):
            OrderService.record_payment(placed_order, 'stripe', 'pi_123')

    def test_completed_payment_confirms_order(self, placed_order, admin_user):
        OrderService.approve(placed_order, admin_user)

        order = OrderService.record_payment(placed_order, 'stripe', 'pi_123')

        assert order.payment_status == 'completed'
        assert order.status == 'confirmed'
        assert order.payment_reference == 'pi_123'
        assert order.paid_at is not None

    def test_failed_payment_keeps_status(self, placed_order, admin_user):
        OrderService.approve(placed_order, admin_user)

        order = OrderService.record_payment(placed_order, 'credimax', payment_status='failed')

        assert order.payment_status == 'failed'
        assert order.status == 'payment_pending'

    def test_paid_order_cannot_be_paid_again(self, placed_order, admin_user):
        OrderService.approve(placed_order, admin_user)
        OrderService.record_payment(placed_order, 'stripe', 'pi_123')

        with pytest.raises(PaymentNotAllowed):
            OrderService.record_payment(placed_order, 'stripe', 'pi_456')

    def test_rejected_order_cannot_be_paid(self, placed_order, admin_user):
        OrderService.reject(placed_order, admin_user, 'No stock')

        with pytest.raises(PaymentNotAllowed):
            OrderService.record_payment(placed_order, 'cash_on_delivery')


@pytest.mark.django_db
class TestCompletionAndStatus:

    def test_complete_paid_order(self, placed_order, admin_user):
        OrderService.approve(placed_order, admin_user)
        OrderService.record_payment(placed_order, 'stripe', 'pi_123')

        order = OrderService.complete(placed_order, admin_user)

        assert order.status == 'delivered'
        assert order.completed_at is not None

    def test_complete_unpaid_order_conflicts(self, placed_order, admin_user):
        with pytest.raises(InvalidStateTransition):
            OrderService.complete(placed_order, admin_user)

    def test_unknown_status_is_rejected(self, placed_order):
        with pytest.raises(ValidationError):
            OrderService.update_status(placed_order, 'lost')

    def test_cancel_before_payment_restores_stock(self, placed_order, product):
        OrderService.update_status(placed_order, 'cancelled')

        product.refresh_from_db()
        assert product.stock == 10

    def test_cancel_after_payment_keeps_stock(self, placed_order, admin_user, product):
        OrderService.approve(placed_order, admin_user)
        OrderService.record_payment(placed_order, 'stripe', 'pi_123')

        OrderService.update_status(placed_order, 'cancelled')

        product.refresh_from_db()
        assert product.stock == 7

    def test_cancel_closes_pending_review(self, store, placed_order):
        OrderService.update_status(placed_order, 'cancelled')

        placed_order.refresh_from_db()
        assert placed_order.admin_approval_status == 'rejected'
        assert not OrderService.approval_requests(store).filter(pk=placed_order.pk).exists()

    def test_cancelled_order_cannot_be_approved_or_paid(self, placed_order, admin_user, product):
        OrderService.update_status(placed_order, 'cancelled')

        with pytest.raises(InvalidStateTransition):
            OrderService.approve(placed_order, admin_user)
        with pytest.raises(PaymentNotAllowed):
            OrderService.record_payment(placed_order, 'stripe', 'pi_late')

        placed_order.refresh_from_db()
        product.refresh_from_db()
        assert placed_order.status == 'cancelled'
        assert placed_order.payment_status == 'pending'
        assert product.stock == 10

    def test_review_requires_pending_status(self, store, placed_order, admin_user, product):
        OrderService.update_status(placed_order, 'processing')

        with pytest.raises(InvalidStateTransition):
            OrderService.approve(placed_order, admin_user)
        with pytest.raises(InvalidStateTransition):
            OrderService.reject(placed_order, admin_user, 'Too late')

        placed_order.refresh_from_db()
        product.refresh_from_db()
        assert placed_order.status == 'processing'
        assert placed_order.admin_approval_status == 'pending'
        assert product.stock == 7
        assert not OrderService.approval_requests(store).exists()


@pytest.mark.django_db
class TestOrderQueries:

    def test_customers_see_only_their_orders(self, store, placed_order, make_member, product):
        other = make_member(store, 'other@test-store.com')
        CartService.add_item(store, other, product)
        OrderService.create_order(store, other)

        mine = OrderService.list_orders(store, placed_order.user, {'orders:own'})
        everything = OrderService.list_orders(store, placed_order.user, {'orders:view'})

        assert [o.id for o in mine] == [placed_order.id]
        assert everything.count() == 2

    def test_filters(self, store, placed_order, admin_user, customer_user):
        OrderService.approve(placed_order, admin_user)

        assert OrderService.list_orders(store, customer_user, set(), status='payment_pending').count() == 1
        assert OrderService.list_orders(store, customer_user, set(), approval_status='pending').count() == 0

    def test_approval_requests_oldest_first(self, store, customer_user, product):
        first_ids = []
        for _ in range(2):
            CartService.add_item(store, customer_user, product)
            first_ids.append(OrderService.create_order(store, customer_user).id)

        assert [o.id for o in OrderService.approval_requests(store)] == first_ids
