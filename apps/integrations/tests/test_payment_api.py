"""
API tests for the payment endpoints.
"""
from unittest.mock import patch

import pytest
from django.test import override_settings

from apps.integrations.models import PaymentTransaction
from apps.orders.services import CartService, OrderService


@pytest.fixture
def placed_order(store, customer_user, product):
    CartService.add_item(store, customer_user, product, quantity=2)
    return OrderService.create_order(store, customer_user, payment_method='benefit_pay')


def session_payload(order, **overrides):
    payload = {
        'amount': '220.00',
        'order_id': str(order.id),
        'customer_info': {'name': 'Carol Buyer', 'phone': '+97333000000'},
    }
    payload.update(overrides)
    return payload


@pytest.mark.django_db
class TestStripeAPI:

    @override_settings(STRIPE_SECRET_KEY=None)
    def test_not_configured(self, auth_client, store, customer_user):
        response = auth_client(customer_user, store).post(
            '/v1/payments/stripe/payment-intent', {'amount': '10.00'}, format='json'
        )

        assert response.status_code == 400
        assert response.json()['error']['message'] == 'Stripe not configured'

    @override_settings(STRIPE_SECRET_KEY='sk_test_123')
    def test_returns_client_secret(self, auth_client, store, customer_user, placed_order):
        intent = {'id': 'pi_abc', 'client_secret': 'pi_abc_secret'}
        with patch('stripe.PaymentIntent.create', return_value=intent):
            response = auth_client(customer_user, store).post(
                '/v1/payments/stripe/payment-intent',
                {'amount': '220.00', 'currency': 'usd', 'order_id': str(placed_order.id)},
                format='json',
            )

        assert response.status_code == 200
        assert response.data == {'client_secret': 'pi_abc_secret'}
        assert PaymentTransaction.objects.get(transaction_id='pi_abc').order_id == placed_order.id

    def test_requires_scope(self, auth_client, store, manager_user):
        response = auth_client(manager_user, store).post(
            '/v1/payments/stripe/payment-intent', {'amount': '10.00'}, format='json'
        )

        assert response.status_code == 403


@pytest.mark.django_db
class TestGatewayAPI:

    def test_create_and_verify(self, auth_client, store, customer_user, placed_order):
        client = auth_client(customer_user, store)

        created = client.post('/v1/payments/benefit-pay/create', session_payload(placed_order), format='json')
        assert created.status_code == 201
        assert created.data['status'] == 'pending'
        assert created.data['currency'] == 'USD'
        assert created.data['transaction_id'].startswith('BEN_')

        verified = client.get(f"/v1/payments/benefit-pay/verify/{created.data['transaction_id']}")
        assert verified.status_code == 200
        assert verified.data['status'] == 'pending'
        assert verified.data['amount'] == '220.00'

    def test_invalid_amount(self, auth_client, store, customer_user, placed_order):
        response = auth_client(customer_user, store).post(
            '/v1/payments/credimax/create', session_payload(placed_order, amount='-1'), format='json'
        )

        assert response.status_code == 400
        assert response.json()['error']['message'] == 'Invalid amount'

    def test_missing_fields(self, auth_client, store, customer_user):
        response = auth_client(customer_user, store).post(
            '/v1/payments/credimax/create', {'amount': '10.00'}, format='json'
        )

        assert response.status_code == 400
        assert response.json()['error']['message'] == 'Missing required fields'

    def test_unknown_transaction_is_404(self, auth_client, store, customer_user):
        response = auth_client(customer_user, store).get('/v1/payments/credimax/verify/CREDIMAX_nope')

        assert response.status_code == 404

    def test_unknown_provider_is_404(self, auth_client, store, customer_user, placed_order):
        response = auth_client(customer_user, store).post(
            '/v1/payments/paypal/create', session_payload(placed_order), format='json'
        )

        assert response.status_code == 404

    def test_manager_cannot_open_session(self, auth_client, store, manager_user, placed_order):
        response = auth_client(manager_user, store).post(
            '/v1/payments/benefit-pay/create', session_payload(placed_order), format='json'
        )

        assert response.status_code == 403

    def test_webhook_is_public(self, api_client, store, customer_user, admin_user, placed_order):
        OrderService.approve(placed_order, admin_user)
        payment = PaymentTransaction.objects.create(
            store=store, order=placed_order, provider='benefit_pay',
            transaction_id='BEN_1700000000000_abcdefghi', amount='220.00', currency='USD',
        )

        response = api_client.post('/v1/payments/benefit-pay/webhook', {
            'transactionId': payment.transaction_id,
            'status': 'completed',
            'amount': 220,
            'orderId': str(placed_order.id),
        }, format='json')

        assert response.status_code == 200
        assert response.data == {'received': True}
        placed_order.refresh_from_db()
        assert placed_order.status == 'confirmed'
        assert placed_order.payment_reference == payment.transaction_id

    def test_webhook_unknown_transaction(self, api_client, db):
        response = api_client.post('/v1/payments/benefit-pay/webhook', {
            'transactionId': 'BEN_unknown', 'status': 'completed',
        }, format='json')

        assert response.status_code == 404


@pytest.mark.django_db
class TestCashOnDeliveryAPI:

    def test_cash_on_delivery(self, auth_client, store, customer_user, placed_order):
        response = auth_client(customer_user, store).post('/v1/payments/cash-on-delivery', {
            'order_id': str(placed_order.id),
            'amount': '220.00',
            'shipping_address': {'line1': '12 Road', 'city': 'Manama'},
        }, format='json')

        assert response.status_code == 200
        assert response.data['success'] is True
        assert response.data['order']['status'] == 'pending_payment'
        assert response.data['order']['amount'] == '220.00'

    def test_missing_field(self, auth_client, store, customer_user, placed_order):
        response = auth_client(customer_user, store).post('/v1/payments/cash-on-delivery', {
            'order_id': str(placed_order.id), 'amount': '220.00',
        }, format='json')

        assert response.status_code == 400
