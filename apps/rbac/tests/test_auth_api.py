"""
API tests for authentication and the current user's profile.
"""
import pytest

from apps.rbac.models import AuditLog, PasswordResetToken, User
from apps.rbac.permission_catalog import ALL_PERMISSION_CODES

TEST_PASSWORD = 'Storefront!Pass2026'


@pytest.mark.django_db
class TestLogin:

    def test_login_returns_token_and_user(self, api_client, customer_user):
        response = api_client.post(
            '/v1/auth/login',
            {'email': 'Customer@Test-Store.com', 'password': TEST_PASSWORD},
            format='json'
        )

        assert response.status_code == 200
        assert response.data['token']
        assert response.data['user']['email'] == 'customer@test-store.com'
        assert response.data['is_super_admin'] is False

        customer_user.refresh_from_db()
        assert customer_user.last_login_at is not None

    def test_login_with_store_header_returns_scopes(self, api_client, store, customer_user):
        response = api_client.post(
            '/v1/auth/login',
            {'email': 'customer@test-store.com', 'password': TEST_PASSWORD},
            format='json',
            HTTP_X_STORE_ID=store.slug,
        )

        assert response.status_code == 200
        assert 'cart:add' in response.data['scopes']
        assert 'orders:approve' not in response.data['scopes']

    def test_wrong_password_is_rejected(self, api_client, customer_user):
        response = api_client.post(
            '/v1/auth/login',
            {'email': 'customer@test-store.com', 'password': 'wrong-password'},
            format='json'
        )

        assert response.status_code == 401
        assert response.data['error']['code'] == 'INVALID_CREDENTIALS'

    def test_inactive_user_cannot_login(self, api_client, customer_user):
        customer_user.is_active = False
        customer_user.save()

        response = api_client.post(
            '/v1/auth/login',
            {'email': 'customer@test-store.com', 'password': TEST_PASSWORD},
            format='json'
        )

        assert response.status_code == 401

    def test_login_is_rate_limited_per_ip(self, api_client, customer_user):
        for _ in range(5):
            response = api_client.post(
                '/v1/auth/login',
                {'email': 'customer@test-store.com', 'password': 'wrong-password'},
                format='json'
            )
            assert response.status_code == 401

        response = api_client.post(
            '/v1/auth/login',
            {'email': 'customer@test-store.com', 'password': TEST_PASSWORD},
            format='json'
        )

        assert response.status_code == 429
        assert response.data['error']['code'] == 'RATE_LIMIT_EXCEEDED'
        assert response['Retry-After'] == '60'

    def test_invalid_token_is_rejected_by_middleware(self, api_client, store):
        api_client.credentials(HTTP_AUTHORIZATION='Bearer not-a-jwt', HTTP_X_STORE_ID=str(store.id))

        response = api_client.get('/v1/auth/me')

        assert response.status_code == 401
        assert response.json()['error']['code'] == 'INVALID_TOKEN'


@pytest.mark.django_db
class TestLogout:

    def test_logout_is_audited(self, auth_client, store, customer_user):
        response = auth_client(customer_user, store).post('/v1/auth/logout')

        assert response.status_code == 200
        assert AuditLog.objects.filter(action='user_logout', user=customer_user, store=store).exists()

    def test_logout_requires_authentication(self, api_client):
        assert api_client.post('/v1/auth/logout').status_code == 401


@pytest.mark.django_db
class TestPasswordReset:

    def test_unknown_email_gets_same_answer(self, api_client):
        response = api_client.post(
            '/v1/auth/forgot-password', {'email': 'nobody@example.com'}, format='json'
        )

        assert response.status_code == 200
        assert PasswordResetToken.objects.count() == 0

    def test_reset_email_is_sent_through_store_smtp(
        self, api_client, store, customer_user, smtp_configured, mailoutbox,
        django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            response = api_client.post(
                '/v1/auth/forgot-password',
                {'email': 'customer@test-store.com'},
                format='json',
                HTTP_X_STORE_ID=str(store.id),
            )

        assert response.status_code == 200
        token = PasswordResetToken.objects.get(user=customer_user)
        assert len(mailoutbox) == 1
        assert mailoutbox[0].to == ['customer@test-store.com']
        assert token.token in mailoutbox[0].body

    def test_reset_password_with_token(self, api_client, customer_user):
        token = PasswordResetToken.create_token(customer_user)

        response = api_client.post(
            '/v1/auth/reset-password',
            {'token': token.token, 'new_password': 'Brand-New!Secret42'},
            format='json'
        )

        assert response.status_code == 200
        customer_user.refresh_from_db()
        assert customer_user.check_password('Brand-New!Secret42')

        response = api_client.post(
            '/v1/auth/reset-password',
            {'token': token.token, 'new_password': 'Another-New!Secret43'},
            format='json'
        )
        assert response.status_code == 400


@pytest.mark.django_db
class TestProfile:

    def test_me_returns_profile_with_store_scopes(self, auth_client, store, customer_user):
        response = auth_client(customer_user, store).get('/v1/auth/me')

        assert response.status_code == 200
        assert response.data['email'] == 'customer@test-store.com'
        assert response.data['roles'] == ['Customer']
        assert 'cart:view' in response.data['scopes']
        assert response.data['store']['slug'] == 'test-store'

    def test_me_without_store_has_no_scopes(self, auth_client, customer_user):
        response = auth_client(customer_user).get('/v1/auth/me')

        assert response.status_code == 200
        assert response.data['store'] is None
        assert response.data['scopes'] == []

    def test_me_requires_authentication(self, api_client):
        assert api_client.get('/v1/auth/me').status_code == 401

    def test_update_profile(self, auth_client, store, customer_user):
        response = auth_client(customer_user, store).patch(
            '/v1/auth/me', {'first_name': 'Caroline', 'phone': '+97333001122'}, format='json'
        )

        assert response.status_code == 200
        customer_user.refresh_from_db()
        assert customer_user.first_name == 'Caroline'
        assert customer_user.phone == '+97333001122'
        assert AuditLog.objects.filter(action='profile_updated', user=customer_user).exists()

    def test_update_profile_email_must_stay_unique(self, auth_client, store, customer_user, admin_user):
        response = auth_client(customer_user, store).patch(
            '/v1/auth/me', {'email': 'ADMIN@test-store.com'}, format='json'
        )

        assert response.status_code == 400
        assert User.objects.get(id=customer_user.id).email == 'customer@test-store.com'

    def test_my_permissions_for_super_admin(self, auth_client, store, super_admin):
        response = auth_client(super_admin, store).get('/v1/auth/me/permissions')

        assert response.status_code == 200
        assert response.data['is_super_admin'] is True
        assert set(response.data['permissions']) == set(ALL_PERMISSION_CODES)

    def test_check_permission(self, auth_client, store, customer_user):
        client = auth_client(customer_user, store)

        allowed = client.post('/v1/auth/me/check-permission', {'permission': 'cart:add'}, format='json')
        denied = client.post('/v1/auth/me/check-permission', {'permission': 'orders:approve'}, format='json')

        assert allowed.data['has_permission'] is True
        assert denied.data['has_permission'] is False
