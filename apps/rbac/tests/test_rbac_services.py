"""
Unit tests for RBAC services.

Tests catalog seeding, default roles, scope resolution and caching,
role assignment and role permission sets.
"""
import pytest
from django.core.cache import cache

from apps.core.exceptions import ValidationError, ConflictError
from apps.rbac.models import (
    StoreMembership, PermissionModule, Permission, Role, MembershipRole, AuditLog
)
from apps.rbac.permission_catalog import ALL_PERMISSION_CODES, DEFAULT_ROLES
from apps.rbac.services import RBACService


@pytest.mark.django_db
class TestSeeding:

    def test_store_creation_seeds_catalog_and_roles(self, store):
        assert PermissionModule.objects.count() == 15
        assert Permission.objects.count() == len(ALL_PERMISSION_CODES) == 85
        assert set(Role.objects.for_store(store).values_list('name', flat=True)) == {
            'Super Admin', 'Manager', 'Customer'
        }
        assert all(role.is_system for role in Role.objects.for_store(store))

    def test_default_role_permission_sets(self, store):
        super_admin = Role.objects.by_name(store, 'Super Admin')
        manager = Role.objects.by_name(store, 'Manager')
        customer = Role.objects.by_name(store, 'Customer')

        assert RBACService.get_role_permissions(super_admin) == set(ALL_PERMISSION_CODES)
        assert RBACService.get_role_permissions(manager) == set(DEFAULT_ROLES['Manager']['permissions'])
        customer_codes = RBACService.get_role_permissions(customer)
        assert {'cart:view', 'cart:add', 'cart:update', 'cart:remove', 'cart:clear'} <= customer_codes
        assert 'orders:approve' not in customer_codes

    def test_seeding_is_idempotent(self, store):
        counts = RBACService.seed_permissions()
        assert counts == {'modules_created': 0, 'permissions_created': 0, 'permissions_updated': 0}

        counts = RBACService.seed_store_roles(store)
        assert counts == {'roles_created': 0, 'roles_synced': 0}
        assert Role.objects.for_store(store).count() == 3

    def test_reseeding_restores_default_permissions(self, store):
        manager = Role.objects.by_name(store, 'Manager')
        RBACService.assign_permissions_to_role(manager, [])

        counts = RBACService.seed_store_roles(store)

        assert counts['roles_synced'] == 1
        assert RBACService.get_role_permissions(manager) == set(DEFAULT_ROLES['Manager']['permissions'])

    def test_permission_codes_follow_module_action_format(self, store):
        for permission in Permission.objects.select_related('module'):
            module, action = permission.code.split(':')
            assert module == permission.module.name
            assert action == permission.action


@pytest.mark.django_db
class TestScopeResolution:

    def test_member_scopes_come_from_role(self, store, customer_user):
        membership = StoreMembership.objects.get_membership(store, customer_user)
        scopes = RBACService.resolve_scopes(membership)

        assert scopes == set(DEFAULT_ROLES['Customer']['permissions'])

    def test_scopes_are_union_of_roles(self, store, manager_user):
        membership = StoreMembership.objects.get_membership(store, manager_user)
        customer_role = Role.objects.by_name(store, 'Customer')
        RBACService.assign_role(membership, customer_role)

        scopes = RBACService.resolve_scopes(membership)

        assert 'users:view' in scopes
        assert 'cart:add' in scopes

    def test_scopes_are_cached(self, store, customer_user):
        membership = StoreMembership.objects.get_membership(store, customer_user)
        RBACService.resolve_scopes(membership)

        assert cache.get(f'scopes:membership:{membership.id}') is not None

    def test_super_admin_gets_every_code_without_membership(self, store, super_admin):
        assert RBACService.resolve_user_scopes(super_admin, store) == set(ALL_PERMISSION_CODES)
        assert RBACService.user_has_permission(super_admin, store, 'database:restore')

    def test_non_member_has_no_scopes(self, store, other_store, make_member):
        outsider = make_member(other_store, 'outsider@example.com')

        assert RBACService.resolve_user_scopes(outsider, store) == set()
        assert not RBACService.user_has_permission(outsider, store, 'products:view')

    def test_member_without_role_has_no_permission(self, store, make_user):
        user = make_user('norole@example.com')
        StoreMembership.objects.create(store=store, user=user)

        assert not RBACService.user_has_permission(user, store, 'products:view')


@pytest.mark.django_db
class TestRoleAssignment:

    def test_assign_role_from_other_store_is_rejected(self, store, other_store, customer_user):
        membership = StoreMembership.objects.get_membership(store, customer_user)
        foreign_role = Role.objects.by_name(other_store, 'Manager')

        with pytest.raises(ValidationError):
            RBACService.assign_role(membership, foreign_role)

    def test_set_user_role_replaces_roles_and_invalidates_cache(self, store, customer_user, admin_user):
        membership = StoreMembership.objects.get_membership(store, customer_user)
        assert 'users:view' not in RBACService.resolve_scopes(membership)

        manager = Role.objects.by_name(store, 'Manager')
        RBACService.set_user_role(membership, manager, assigned_by=admin_user)

        assert list(membership.get_roles()) == [manager]
        scopes = RBACService.resolve_scopes(membership)
        assert 'users:view' in scopes
        assert 'cart:add' not in scopes
        assert AuditLog.objects.filter(action='role_replaced', store=store).exists()

    def test_remove_role(self, store, customer_user):
        membership = StoreMembership.objects.get_membership(store, customer_user)
        customer = Role.objects.by_name(store, 'Customer')

        assert RBACService.remove_role(membership, customer) is True
        assert RBACService.remove_role(membership, customer) is False
        assert RBACService.resolve_scopes(membership) == set()

    def test_assign_permissions_invalidates_holders(self, store, customer_user):
        membership = StoreMembership.objects.get_membership(store, customer_user)
        RBACService.resolve_scopes(membership)

        customer = Role.objects.by_name(store, 'Customer')
        view_only = list(Permission.objects.filter(code__in=['products:view', 'orders:own']))
        codes = RBACService.assign_permissions_to_role(customer, view_only)

        assert codes == {'products:view', 'orders:own'}
        assert RBACService.resolve_scopes(membership) == {'products:view', 'orders:own'}

        log = AuditLog.objects.get(action='role_permissions_updated')
        assert 'cart:add' in log.diff['removed']

    def test_users_with_permission_lists_approvers_and_super_admins(
        self, store, admin_user, manager_user, customer_user, super_admin
    ):
        approvers = set(RBACService.users_with_permission(store, 'orders:approve'))

        assert approvers == {admin_user, super_admin}


@pytest.mark.django_db
class TestRoleLifecycle:

    def test_system_role_cannot_be_deleted(self, store):
        with pytest.raises(ConflictError):
            RBACService.delete_role(Role.objects.by_name(store, 'Manager'))

    def test_custom_role_delete_frees_name(self, store):
        role = RBACService.create_role(store, 'Packers')
        RBACService.delete_role(role)

        assert Role.objects.by_name(store, 'Packers') is None
        assert RBACService.create_role(store, 'Packers').name == 'Packers'

    def test_system_role_cannot_be_renamed(self, store):
        with pytest.raises(ConflictError):
            RBACService.update_role(Role.objects.by_name(store, 'Customer'), {'name': 'Buyer'})

    def test_remove_store_user_deletes_membership(self, store, admin_user, customer_user):
        membership = StoreMembership.objects.get_membership(store, customer_user)

        RBACService.remove_store_user(membership, removed_by=admin_user)

        assert StoreMembership.objects.get_membership(store, customer_user) is None
        assert MembershipRole.objects.filter(membership_id=membership.id).count() == 0

    def test_user_cannot_remove_themselves(self, store, admin_user):
        membership = StoreMembership.objects.get_membership(store, admin_user)

        with pytest.raises(ValidationError):
            RBACService.remove_store_user(membership, removed_by=admin_user)
