"""
API tests for cart, wishlist, orders and the admin approval endpoints.
"""
import pytest

from apps.orders.models import Order
from apps.orders.services import CartService, OrderService


@pytest.fixture
def placed_order(store, customer_user, product):
    CartService.add_item(store, customer_user, product, quantity=2)
    return OrderService.create_order(store, customer_user, payment_method='cash_on_delivery')


@pytest.mark.django_db
class TestCartAPI:

    def test_add_and_view_cart(self, auth_client, store, customer_user, product):
        client = auth_client(customer_user, store)

        added = client.post('/v1/cart', {'product_id': str(product.id), 'quantity': 2}, format='json')
        assert added.status_code == 201
        assert added.data['total_price'] == '200.00'

        response = client.get('/v1/cart')
        assert response.status_code == 200
        assert len(response.data['items']) == 1
        assert response.data['summary']['tax'] == '20.00'
        assert response.data['summary']['total'] == '220.00'

    def test_add_rental(self, auth_client, store, customer_user, rental_product):
        response = auth_client(customer_user, store).post('/v1/cart', {
            'product_id': str(rental_product.id),
            'rental_start_date': '2026-06-01',
            'rental_end_date': '2026-06-04',
        }, format='json')

        assert response.status_code == 201
        assert response.data['rental_days'] == 4
        assert response.data['unit_price'] == '160.00'

    def test_over_stock_is_400(self, auth_client, store, customer_user, product):
        response = auth_client(customer_user, store).post(
            '/v1/cart', {'product_id': str(product.id), 'quantity': 50}, format='json'
        )

        assert response.status_code == 400

    def test_update_and_remove(self, auth_client, store, customer_user, product):
        client = auth_client(customer_user, store)
        client.post('/v1/cart', {'product_id': str(product.id)}, format='json')

        updated = client.put(f'/v1/cart/{product.id}', {'quantity': 3}, format='json')
        assert updated.status_code == 200
        assert updated.data['quantity'] == 3

        assert client.put(f'/v1/cart/{product.id}', {'quantity': 0}, format='json').status_code == 204
        assert client.delete(f'/v1/cart/{product.id}').status_code == 404

    def test_clear_cart(self, auth_client, store, customer_user, product):
        client = auth_client(customer_user, store)
        client.post('/v1/cart', {'product_id': str(product.id)}, format='json')

        assert client.delete('/v1/cart').status_code == 204
        assert client.get('/v1/cart').data['items'] == []

    def test_cart_requires_scope(self, auth_client, store, manager_user):
        assert auth_client(manager_user, store).get('/v1/cart').status_code == 403

    def test_cart_requires_authentication(self, auth_client, store):
        assert auth_client(store=store).get('/v1/cart').status_code == 401


@pytest.mark.django_db
class TestWishlistAPI:

    def test_wishlist_flow(self, auth_client, store, manager_user, product):
        client = auth_client(manager_user, store)

        assert client.post('/v1/wishlist', {'product_id': str(product.id)}, format='json').status_code == 201
        assert client.post('/v1/wishlist', {'product_id': str(product.id)}, format='json').status_code == 201

        listed = client.get('/v1/wishlist')
        assert listed.status_code == 200
        assert len(listed.data) == 1
        assert listed.data[0]['product']['name'] == 'Cordless Drill'

        assert client.delete(f'/v1/wishlist/{product.id}').status_code == 204
        assert client.get('/v1/wishlist').data == []

    def test_wishlist_requires_authentication(self, auth_client, store):
        assert auth_client(store=store).get('/v1/wishlist').status_code == 401


@pytest.mark.django_db
class TestOrderAPI:

    def test_place_order(self, auth_client, store, customer_user, product):
        client = auth_client(customer_user, store)
        client.post('/v1/cart', {'product_id': str(product.id), 'quantity': 2}, format='json')

        response = client.post('/v1/orders', {
            'shipping_address': {'line1': '1 Main St', 'city': 'Manama'},
            'payment_method': 'cash_on_delivery',
        }, format='json')

        assert response.status_code == 201
        assert response.data['status'] == 'awaiting_approval'
        assert response.data['admin_approval_status'] == 'pending'
        assert response.data['total'] == '220.00'
        assert response.data['items'][0]['product_name'] == 'Cordless Drill'
        assert response.data['shipping_address']['city'] == 'Manama'

    def test_empty_cart_is_400(self, auth_client, store, customer_user):
        response = auth_client(customer_user, store).post('/v1/orders', {}, format='json')

        assert response.status_code == 400
        assert response.json()['error']['message'] == 'Cart is empty'

    def test_customer_lists_own_orders(self, auth_client, store, placed_order, make_member, product):
        other = make_member(store, 'other@test-store.com')
        CartService.add_item(store, other, product)
        OrderService.create_order(store, other)

        response = auth_client(placed_order.user, store).get('/v1/orders')

        assert response.data['count'] == 1
        assert response.data['results'][0]['id'] == str(placed_order.id)

    def test_manager_lists_all_orders(self, auth_client, store, placed_order, manager_user):
        response = auth_client(manager_user, store).get('/v1/orders', {'approval_status': 'pending'})

        assert response.status_code == 200
        assert response.data['count'] == 1

    def test_order_detail_access(self, auth_client, store, placed_order, make_member, manager_user):
        stranger = make_member(store, 'stranger@test-store.com')
        url = f'/v1/orders/{placed_order.id}'

        assert auth_client(placed_order.user, store).get(url).status_code == 200
        assert auth_client(manager_user, store).get(url).status_code == 200
        forbidden = auth_client(stranger, store).get(url)
        assert forbidden.status_code == 403
        assert forbidden.json()['error']['code'] == 'FORBIDDEN'

    def test_status_override_requires_orders_edit(self, auth_client, store, placed_order, manager_user, admin_user):
        url = f'/v1/orders/{placed_order.id}/status'

        assert auth_client(manager_user, store).put(url, {'status': 'processing'}, format='json').status_code == 403

        response = auth_client(admin_user, store).put(url, {'status': 'processing'}, format='json')
        assert response.status_code == 200
        assert response.data['status'] == 'processing'

    def test_unknown_status_is_400(self, auth_client, store, placed_order, admin_user):
        response = auth_client(admin_user, store).put(
            f'/v1/orders/{placed_order.id}/status', {'status': 'teleported'}, format='json'
        )

        assert response.status_code == 400


@pytest.mark.django_db
class TestOrderPaymentAPI:

    def test_payment_before_approval_is_409(self, auth_client, store, placed_order):
        response = auth_client(placed_order.user, store).put(
            f'/v1/orders/{placed_order.id}/payment',
            {'payment_method': 'stripe', 'payment_reference': 'pi_1'},
            format='json'
        )

        assert response.status_code == 409
        assert response.json()['error']['code'] == 'PAYMENT_NOT_ALLOWED'

    def test_owner_pays_approved_order(self, auth_client, store, placed_order, admin_user):
        OrderService.approve(placed_order, admin_user)

        response = auth_client(placed_order.user, store).put(
            f'/v1/orders/{placed_order.id}/payment',
            {'payment_method': 'stripe', 'payment_reference': 'pi_1'},
            format='json'
        )

        assert response.status_code == 200
        assert response.data['status'] == 'confirmed'
        assert response.data['payment_status'] == 'completed'

    def test_non_owner_without_manage_is_403(self, auth_client, store, placed_order, admin_user, make_member):
        OrderService.approve(placed_order, admin_user)
        stranger = make_member(store, 'stranger@test-store.com')

        response = auth_client(stranger, store).put(
            f'/v1/orders/{placed_order.id}/payment', {'payment_method': 'stripe'}, format='json'
        )

        assert response.status_code == 403


@pytest.mark.django_db
class TestApprovalAPI:

    def test_approval_requests(self, auth_client, store, placed_order, admin_user, manager_user):
        assert auth_client(manager_user, store).get('/v1/admin/approval-requests').status_code == 403

        response = auth_client(admin_user, store).get('/v1/admin/approval-requests')
        assert response.status_code == 200
        assert response.data['results'][0]['order_number'] == placed_order.order_number

    def test_approve(self, auth_client, store, placed_order, admin_user):
        response = auth_client(admin_user, store).put(
            f'/v1/admin/orders/{placed_order.id}/approve', {'remarks': 'OK'}, format='json'
        )

        assert response.status_code == 200
        assert response.data['status'] == 'payment_pending'
        assert response.data['admin_approved_by'] == 'admin@test-store.com'

    def test_approve_twice_is_409(self, auth_client, store, placed_order, admin_user):
        client = auth_client(admin_user, store)
        client.put(f'/v1/admin/orders/{placed_order.id}/approve', {}, format='json')

        response = client.put(f'/v1/admin/orders/{placed_order.id}/approve', {}, format='json')

        assert response.status_code == 409

    def test_approve_cancelled_order_is_409(self, auth_client, store, placed_order, admin_user):
        client = auth_client(admin_user, store)
        client.put(f'/v1/orders/{placed_order.id}/status', {'status': 'cancelled'}, format='json')

        response = client.put(f'/v1/admin/orders/{placed_order.id}/approve', {}, format='json')

        assert response.status_code == 409
        assert response.json()['error']['code'] == 'INVALID_STATE_TRANSITION'
        placed_order.refresh_from_db()
        assert placed_order.status == 'cancelled'

    def test_reject_without_remarks_is_400(self, auth_client, store, placed_order, admin_user):
        response = auth_client(admin_user, store).put(
            f'/v1/admin/orders/{placed_order.id}/reject', {}, format='json'
        )

        assert response.status_code == 400

    def test_reject_restores_stock(self, auth_client, store, placed_order, admin_user, product):
        response = auth_client(admin_user, store).put(
            f'/v1/admin/orders/{placed_order.id}/reject', {'remarks': 'Duplicate order'}, format='json'
        )

        product.refresh_from_db()
        assert response.status_code == 200
        assert response.data['status'] == 'cancelled'
        assert product.stock == 10

    def test_complete(self, auth_client, store, placed_order, admin_user):
        OrderService.approve(placed_order, admin_user)
        OrderService.record_payment(placed_order, 'cash_on_delivery', payment_reference='COD-1')

        response = auth_client(admin_user, store).put(f'/v1/admin/orders/{placed_order.id}/complete')

        assert response.status_code == 200
        assert response.data['status'] == 'delivered'
        assert Order.objects.get(id=placed_order.id).completed_at is not None

    def test_customer_cannot_approve(self, auth_client, store, placed_order):
        response = auth_client(placed_order.user, store).put(
            f'/v1/admin/orders/{placed_order.id}/approve', {}, format='json'
        )

        assert response.status_code == 403
