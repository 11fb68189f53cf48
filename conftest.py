"""
Pytest configuration and fixtures.
"""
import pytest
from django.conf import settings
import django
from django.core.management import call_command

TEST_PASSWORD = 'Storefront!Pass2026'
TEST_ENCRYPTION_KEY = 'AAECAwQFBgcICQoLDA0ODxAREhMUFRYXGBkaGxwdHh8='


def pytest_configure(config):
    """Configure Django settings for tests."""
    settings.DATABASES['default'] = {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
    }
    settings.CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'storefront-tests',
        }
    }
    settings.SECURE_SSL_REDIRECT = False
    settings.ENCRYPTION_KEY = TEST_ENCRYPTION_KEY
    settings.PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
    settings.EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True
    settings.STRIPE_SECRET_KEY = None
    django.setup()

    from config.celery import app
    app.conf.task_always_eager = True
    app.conf.task_eager_propagates = True


@pytest.fixture(scope='session')
def django_db_setup(django_db_setup, django_db_blocker):
    """Set up test database; apps without migrations are synced."""
    with django_db_blocker.unblock():
        call_command('migrate', '--run-syncdb', verbosity=0)


@pytest.fixture(autouse=True)
def _reset_shared_state():
    """Scope caches and rate limit counters must not leak between tests."""
    from django.core.cache import cache
    from apps.core.encryption import reset_encryption_service

    cache.clear()
    reset_encryption_service()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def store(db):
    """Create a test store; default roles are seeded by signal."""
    from apps.tenants.models import Store
    return Store.objects.create(
        name='Test Store',
        slug='test-store',
        contact_email='owner@test-store.com',
    )


@pytest.fixture
def other_store(db):
    """Create another store for isolation tests."""
    from apps.tenants.models import Store
    return Store.objects.create(
        name='Other Store',
        slug='other-store',
        contact_email='owner@other-store.com',
    )


@pytest.fixture
def make_user(db):
    """Factory for users with the shared test password."""
    from apps.rbac.models import User

    def _make_user(email, password=TEST_PASSWORD, **extra):
        return User.objects.create_user(email=email, password=password, **extra)

    return _make_user


@pytest.fixture
def make_member(make_user):
    """Factory: user + membership in ``store`` with the named role."""
    from apps.rbac.models import Role
    from apps.rbac.services import RBACService

    def _make_member(store, email, role_name='Customer', **extra):
        user = make_user(email, **extra)
        role = Role.objects.by_name(store, role_name)
        RBACService.add_member(store, user, role=role)
        return user

    return _make_member


@pytest.fixture
def super_admin(db):
    from apps.rbac.models import User
    return User.objects.create_superuser(
        email='root@storefront.local',
        password=TEST_PASSWORD,
        first_name='Root',
    )


@pytest.fixture
def admin_user(store, make_member):
    """Store member holding the Super Admin role (every permission in the store)."""
    return make_member(store, 'admin@test-store.com', 'Super Admin', first_name='Alice', last_name='Admin')


@pytest.fixture
def manager_user(store, make_member):
    return make_member(store, 'manager@test-store.com', 'Manager', first_name='Mark')


@pytest.fixture
def customer_user(store, make_member):
    return make_member(store, 'customer@test-store.com', 'Customer', first_name='Carol', last_name='Buyer')


@pytest.fixture
def auth_client():
    """
    Factory for API clients authenticated with a JWT.

    ``store`` adds the X-Store-ID header.
    """
    from rest_framework.test import APIClient
    from apps.rbac.services import AuthService

    def _auth_client(user=None, store=None):
        client = APIClient()
        headers = {}
        if user is not None:
            headers['HTTP_AUTHORIZATION'] = f'Bearer {AuthService.generate_jwt(user)}'
        if store is not None:
            headers['HTTP_X_STORE_ID'] = str(store.id)
        client.credentials(**headers)
        return client

    return _auth_client


@pytest.fixture
def smtp_configured(store):
    """Enable SMTP for ``store`` (mail goes to the locmem outbox)."""
    from apps.tenants.services import SiteSettingsService

    site_settings = SiteSettingsService.get_settings(store)
    site_settings.smtp_enabled = True
    site_settings.smtp_host = 'smtp.office365.com'
    site_settings.smtp_port = 587
    site_settings.smtp_user = 'shop@test-store.com'
    site_settings.smtp_password = 'relay-secret'
    site_settings.smtp_from_name = 'Test Store'
    site_settings.smtp_from_email = 'shop@test-store.com'
    site_settings.save()
    return site_settings


@pytest.fixture
def category(store):
    from apps.catalog.models import Category
    return Category.objects.create(store=store, name='Tools', description='Hand and power tools')


@pytest.fixture
def product(store, category):
    """Active sale product with stock."""
    from decimal import Decimal
    from apps.catalog.models import Product
    return Product.objects.create(
        store=store,
        category=category,
        name='Cordless Drill',
        description='18V drill',
        price=Decimal('100.00'),
        stock=10,
        sku='DRL-001',
        is_active=True,
    )


@pytest.fixture
def rental_product(store, category):
    from decimal import Decimal
    from apps.catalog.models import Product
    return Product.objects.create(
        store=store,
        category=category,
        name='Concrete Mixer',
        price=Decimal('500.00'),
        stock=3,
        product_type='rental',
        rental_period='day',
        rental_price=Decimal('40.00'),
        is_active=True,
    )
