"""
Tests for the health check and the error response envelope.
"""
import pytest


@pytest.mark.django_db
class TestHealthCheck:

    def test_healthy(self, api_client):
        response = api_client.get('/v1/health/')

        assert response.status_code == 200
        assert response.data == {'status': 'healthy', 'database': 'healthy', 'cache': 'healthy'}


@pytest.mark.django_db
class TestErrorEnvelope:

    def test_storefront_error_shape(self, auth_client, store):
        response = auth_client(store=store).get('/v1/products/00000000-0000-0000-0000-000000000000',
                                                HTTP_X_REQUEST_ID='req-42')

        assert response.status_code == 404
        body = response.json()
        assert body['error']['code'] == 'NOT_FOUND'
        assert body['error']['message'] == 'Product not found'
        assert body['request_id'] == 'req-42'

    def test_permission_error_shape(self, auth_client, store, customer_user):
        response = auth_client(customer_user, store).post('/v1/categories', {'name': 'X'}, format='json')

        assert response.status_code == 403
        body = response.json()
        assert 'detail' in body
        assert body['request_id']
