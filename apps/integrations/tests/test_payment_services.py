"""
Tests for the payment gateway services.
"""
import re
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
import stripe
from django.test import override_settings
from django.utils import timezone

from apps.core.exceptions import (
    ValidationError, NotFoundError, PermissionDeniedError, PaymentProviderNotConfigured,
)
from apps.integrations.models import PaymentTransaction
from apps.integrations.services import (
    PaymentService, StripePaymentService, GatewayStubService, CashOnDeliveryService,
)
from apps.integrations.services.stripe_service import StripePaymentError
from apps.integrations.tasks import expire_pending_transactions
from apps.orders.services import CartService, OrderService

CUSTOMER_SCOPES = {'orders:own', 'payments:benefit', 'payments:credimax'}


@pytest.fixture
def placed_order(store, customer_user, product):
    CartService.add_item(store, customer_user, product, quantity=2)
    return OrderService.create_order(store, customer_user, payment_method='benefit_pay')


@pytest.fixture
def approved_order(placed_order, admin_user):
    return OrderService.approve(placed_order, admin_user)


def open_session(store, user, order, slug='benefit-pay', **kwargs):
    return GatewayStubService.create_payment(
        slug, store, user, CUSTOMER_SCOPES,
        amount=kwargs.pop('amount', Decimal('220.00')),
        order_id=order.id,
        customer_info={'name': 'Carol Buyer', 'email': user.email},
        **kwargs
    )


class TestAmounts:

    def test_minor_units_round_half_up(self):
        assert PaymentService.minor_units(Decimal('10.005')) == 1001
        assert PaymentService.minor_units(Decimal('19.99')) == 1999

    @pytest.mark.parametrize('value', [0, -5, '0.00', 'abc', None])
    def test_invalid_amount(self, value):
        with pytest.raises(ValidationError) as exc_info:
            PaymentService.parse_amount(value)
        assert exc_info.value.message == 'Invalid amount'


@pytest.mark.django_db
class TestStripe:

    @override_settings(STRIPE_SECRET_KEY=None)
    def test_not_configured(self, store):
        with pytest.raises(PaymentProviderNotConfigured) as exc_info:
            StripePaymentService.create_payment_intent(store, Decimal('10.00'))
        assert exc_info.value.message == 'Stripe not configured'

    @override_settings(STRIPE_SECRET_KEY='sk_test_123')
    def test_creates_intent_in_minor_units(self, store, customer_user):
        intent = {'id': 'pi_123', 'client_secret': 'pi_123_secret_abc'}
        with patch('stripe.PaymentIntent.create', return_value=intent) as create:
            result = StripePaymentService.create_payment_intent(
                store, Decimal('12.50'), currency='USD', user=customer_user
            )

        assert result == {'client_secret': 'pi_123_secret_abc'}
        kwargs = create.call_args.kwargs
        assert kwargs['amount'] == 1250
        assert kwargs['currency'] == 'usd'
        payment = PaymentTransaction.objects.get(transaction_id='pi_123')
        assert payment.provider == 'stripe'
        assert payment.amount == Decimal('12.50')

    @override_settings(STRIPE_SECRET_KEY='sk_test_123')
    def test_stripe_error(self, store):
        with patch('stripe.PaymentIntent.create', side_effect=stripe.StripeError('boom')):
            with pytest.raises(StripePaymentError):
                StripePaymentService.create_payment_intent(store, Decimal('5.00'))
        assert not PaymentTransaction.objects.exists()


@pytest.mark.django_db
class TestGatewaySessions:

    def test_benefit_pay_session(self, store, customer_user, placed_order):
        payment = open_session(store, customer_user, placed_order)

        assert re.match(r'^BEN_\d{13}_[0-9a-z]{9}$', payment.transaction_id)
        assert payment.status == 'pending'
        assert payment.currency == 'USD'
        assert payment.payment_url == (
            f'https://benefit.bh/pay?transaction={placed_order.id}&amount=220.00'
        )
        ttl = payment.expires_at - timezone.now()
        assert timedelta(minutes=14) < ttl <= timedelta(minutes=15)

    def test_credimax_defaults_to_bhd(self, store, customer_user, placed_order):
        payment = open_session(store, customer_user, placed_order, slug='credimax')

        assert payment.transaction_id.startswith('CREDIMAX_')
        assert payment.currency == 'BHD'
        assert payment.payment_url.startswith('https://credimax.com.bh/pay?')

    def test_invalid_amount(self, store, customer_user, placed_order):
        with pytest.raises(ValidationError) as exc_info:
            open_session(store, customer_user, placed_order, amount=Decimal('0'))
        assert exc_info.value.message == 'Invalid amount'

    def test_missing_fields(self, store, customer_user):
        with pytest.raises(ValidationError) as exc_info:
            GatewayStubService.create_payment(
                'benefit-pay', store, customer_user, CUSTOMER_SCOPES, amount=Decimal('10.00')
            )
        assert exc_info.value.message == 'Missing required fields'

    def test_other_customers_order(self, store, make_member, placed_order):
        stranger = make_member(store, 'stranger@test-store.com')
        with pytest.raises(PermissionDeniedError):
            open_session(store, stranger, placed_order)

    def test_unknown_provider(self, store, customer_user, placed_order):
        with pytest.raises(NotFoundError):
            open_session(store, customer_user, placed_order, slug='paypal')

    def test_verify_marks_expired(self, store, customer_user, placed_order):
        payment = open_session(store, customer_user, placed_order)
        PaymentTransaction.objects.filter(pk=payment.pk).update(
            expires_at=timezone.now() - timedelta(minutes=1)
        )

        verified = GatewayStubService.verify_payment('benefit-pay', store, payment.transaction_id)

        assert verified.status == 'expired'

    def test_verify_is_store_scoped(self, other_store, store, customer_user, placed_order):
        payment = open_session(store, customer_user, placed_order)
        with pytest.raises(NotFoundError):
            GatewayStubService.verify_payment('benefit-pay', other_store, payment.transaction_id)


@pytest.mark.django_db
class TestWebhooks:

    def test_completed_pays_approved_order(self, store, customer_user, approved_order):
        payment = open_session(store, customer_user, approved_order)

        GatewayStubService.handle_webhook('benefit-pay', {
            'transactionId': payment.transaction_id,
            'status': 'completed',
            'amount': '220.00',
            'orderId': str(approved_order.id),
        })

        payment.refresh_from_db()
        approved_order.refresh_from_db()
        assert payment.status == 'completed'
        assert payment.raw_payload['amount'] == '220.00'
        assert approved_order.status == 'confirmed'
        assert approved_order.payment_status == 'completed'
        assert approved_order.payment_reference == payment.transaction_id

    def test_completed_before_approval_leaves_order(self, store, customer_user, placed_order):
        payment = open_session(store, customer_user, placed_order)

        GatewayStubService.handle_webhook('benefit-pay', {
            'transactionId': payment.transaction_id, 'status': 'completed',
        })

        placed_order.refresh_from_db()
        assert placed_order.status == 'awaiting_approval'
        assert placed_order.payment_status == 'pending'
        payment.refresh_from_db()
        assert payment.status == 'completed'

    def test_failed_marks_order_payment_failed(self, store, customer_user, approved_order):
        payment = open_session(store, customer_user, approved_order, slug='credimax')

        GatewayStubService.handle_webhook('credimax', {
            'transactionId': payment.transaction_id, 'status': 'failed',
        })

        approved_order.refresh_from_db()
        assert approved_order.payment_status == 'failed'
        assert approved_order.status == 'payment_pending'

    def test_unknown_transaction(self, db):
        with pytest.raises(NotFoundError):
            GatewayStubService.handle_webhook('benefit-pay', {
                'transactionId': 'BEN_missing', 'status': 'completed',
            })

    def test_invalid_status(self, db):
        with pytest.raises(ValidationError):
            GatewayStubService.handle_webhook('benefit-pay', {
                'transactionId': 'BEN_1', 'status': 'refunded',
            })


@pytest.mark.django_db
class TestCashOnDelivery:

    def test_switches_order_to_cod(self, store, customer_user, placed_order):
        address = {'line1': '12 Road', 'city': 'Manama'}
        result = CashOnDeliveryService.create(
            store, customer_user, {'orders:own'},
            order_id=placed_order.id, amount=Decimal('220.00'), shipping_address=address,
        )

        assert result['success'] is True
        assert result['message'] == 'Cash on delivery order created successfully'
        assert result['order']['status'] == 'pending_payment'
        assert result['order']['payment_method'] == 'cash_on_delivery'
        placed_order.refresh_from_db()
        assert placed_order.payment_method == 'cash_on_delivery'
        assert placed_order.payment_status == 'pending'
        assert placed_order.shipping_address == address
        assert PaymentTransaction.objects.filter(order=placed_order, provider='cash_on_delivery').exists()

    def test_missing_fields(self, store, customer_user, placed_order):
        with pytest.raises(ValidationError) as exc_info:
            CashOnDeliveryService.create(
                store, customer_user, set(), order_id=placed_order.id,
                amount=Decimal('220.00'), shipping_address=None,
            )
        assert exc_info.value.message == 'Missing required fields'


@pytest.mark.django_db
class TestExpiryTask:

    def test_expires_stale_gateway_sessions(self, store, customer_user, placed_order):
        stale = open_session(store, customer_user, placed_order)
        fresh = open_session(store, customer_user, placed_order, slug='credimax')
        PaymentTransaction.objects.filter(pk=stale.pk).update(
            expires_at=timezone.now() - timedelta(minutes=5)
        )

        result = expire_pending_transactions()

        assert result == {'status': 'success', 'expired': 1}
        stale.refresh_from_db()
        fresh.refresh_from_db()
        assert stale.status == 'expired'
        assert fresh.status == 'pending'
