"""
Tests for the RBAC management commands.
"""
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from apps.rbac.models import Permission, Role, User


@pytest.mark.django_db
class TestSeedCommands:

    def test_seed_permissions_on_empty_database(self):
        out = StringIO()
        call_command('seed_permissions', stdout=out)

        assert Permission.objects.count() == 85
        assert '85 permissions created' in out.getvalue()

    def test_seed_store_roles_requires_target(self):
        with pytest.raises(CommandError):
            call_command('seed_store_roles')

    def test_seed_store_roles_by_slug(self, store):
        Role.objects.by_name(store, 'Manager').hard_delete()

        call_command('seed_store_roles', store='test-store', stdout=StringIO())

        assert Role.objects.by_name(store, 'Manager') is not None

    def test_seed_store_roles_unknown_store(self, db):
        with pytest.raises(CommandError):
            call_command('seed_store_roles', store='missing', stdout=StringIO())


@pytest.mark.django_db
class TestCreateSuperAdmin:

    def test_creates_super_admin(self):
        call_command('create_super_admin', email='boss@example.com', password='Root!Password2026', stdout=StringIO())

        user = User.objects.by_email('boss@example.com')
        assert user.is_superuser
        assert user.check_password('Root!Password2026')

    def test_promotes_existing_user(self, customer_user):
        call_command('create_super_admin', email='customer@test-store.com', stdout=StringIO())

        customer_user.refresh_from_db()
        assert customer_user.is_superuser

    def test_new_user_needs_password(self, db):
        with pytest.raises(CommandError):
            call_command('create_super_admin', email='nopass@example.com', stdout=StringIO())
