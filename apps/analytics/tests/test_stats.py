"""
Tests for the admin dashboard statistics.
"""
from decimal import Decimal

import pytest

from apps.analytics.services import StatsService
from apps.catalog.models import Product
from apps.orders.services import CartService, OrderService


def place_order(store, user, product, quantity=1):
    CartService.add_item(store, user, product, quantity=quantity)
    return OrderService.create_order(store, user, payment_method='cash_on_delivery')


@pytest.mark.django_db
class TestStatsService:

    def test_empty_store(self, store):
        stats = StatsService.get_stats(store)

        assert stats['revenue'] == Decimal('0.00')
        assert stats['orders'] == 0
        assert stats['products'] == 0
        assert stats['total_stock'] == 0

    def test_counts_and_revenue(self, store, customer_user, admin_user, product):
        first = place_order(store, customer_user, product, quantity=2)
        cancelled = place_order(store, customer_user, product, quantity=1)
        OrderService.update_status(cancelled, 'cancelled', admin_user)
        OrderService.approve(first, admin_user)

        stats = StatsService.get_stats(store)

        assert stats['revenue'] == Decimal('220.00')
        assert stats['orders'] == 2
        assert stats['products'] == 1
        assert stats['total_stock'] == 8
        assert stats['users'] == 2
        assert stats['pending_approvals'] == 0

    def test_soft_deleted_products_excluded(self, store, product):
        Product.objects.create(store=store, name='Ladder', price=Decimal('30.00'), stock=4).delete()

        assert StatsService.get_stats(store)['products'] == 1

    def test_scoped_to_store(self, store, other_store, product):
        assert StatsService.get_stats(other_store)['products'] == 0


@pytest.mark.django_db
class TestStatsAPI:

    def test_admin_gets_stats(self, auth_client, store, admin_user, customer_user, product):
        place_order(store, customer_user, product, quantity=3)

        response = auth_client(admin_user, store).get('/v1/admin/stats')

        assert response.status_code == 200
        assert response.data['revenue'] == '330.00'
        assert response.data['orders'] == 1
        assert response.data['total_stock'] == 7
        assert response.data['pending_approvals'] == 1

    def test_customer_forbidden(self, auth_client, store, customer_user):
        response = auth_client(customer_user, store).get('/v1/admin/stats')

        assert response.status_code == 403

    def test_anonymous_unauthorized(self, auth_client, store):
        response = auth_client(store=store).get('/v1/admin/stats')

        assert response.status_code == 401
