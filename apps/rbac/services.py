"""
RBAC and Authentication services.

Implements:
- RBACService: scope resolution, role assignment, role permission sets,
  catalog and default role seeding
- AuthService: JWT authentication, login, password reset
"""
import logging
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Set, Optional, Dict, Any, Iterable

import jwt
from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Q

from apps.core.exceptions import ValidationError, ConflictError
from apps.rbac.models import (
    User, StoreMembership, PermissionModule, Permission, Role,
    RolePermission, MembershipRole, AuditLog, PasswordResetToken,
)
from apps.rbac.permission_catalog import (
    PERMISSION_MODULES, DEFAULT_ROLES, CUSTOMER_ROLE, permission_definitions,
)

logger = logging.getLogger(__name__)


class RBACService:
    """
    Service for RBAC operations: scope resolution and permission management.
    """

    SCOPE_CACHE_TTL = 300  # 5 minutes
    ALL_CODES_CACHE_KEY = 'scopes:all_codes'

    @staticmethod
    def _cache_key(membership: StoreMembership) -> str:
        return f"scopes:membership:{membership.id}"

    @classmethod
    def resolve_scopes(cls, membership: StoreMembership) -> Set[str]:
        """
        Resolve all permission codes granted to a membership.

        The union of the permissions of every assigned role, cached for
        five minutes.
        """
        cache_key = cls._cache_key(membership)
        cached_scopes = cache.get(cache_key)

        if cached_scopes is not None:
            return set(cached_scopes)

        scopes = set(
            Permission.objects.filter(
                role_permissions__role__membership_roles__membership=membership
            ).values_list('code', flat=True).distinct()
        )

        cache.set(cache_key, list(scopes), cls.SCOPE_CACHE_TTL)
        return scopes

    @classmethod
    def all_permission_codes(cls) -> Set[str]:
        """Every known permission code (the scope set of a super admin)."""
        cached = cache.get(cls.ALL_CODES_CACHE_KEY)
        if cached is not None:
            return set(cached)

        codes = set(Permission.objects.values_list('code', flat=True))
        cache.set(cls.ALL_CODES_CACHE_KEY, list(codes), cls.SCOPE_CACHE_TTL)
        return codes

    @classmethod
    def resolve_user_scopes(cls, user: User, store) -> Set[str]:
        """Scopes of ``user`` in ``store``; super admins get every code."""
        if user is None or not user.is_authenticated:
            return set()
        if user.is_superuser:
            return cls.all_permission_codes()

        membership = StoreMembership.objects.get_membership(store, user)
        if membership is None:
            return set()
        return cls.resolve_scopes(membership)

    @classmethod
    def user_has_permission(cls, user: User, store, code: str) -> bool:
        if user is not None and user.is_authenticated and user.is_superuser:
            return True
        return code in cls.resolve_user_scopes(user, store)

    @classmethod
    def invalidate_scope_cache(cls, membership: StoreMembership):
        """Invalidate cached scopes for a membership."""
        cache.delete(cls._cache_key(membership))

    @classmethod
    def get_role_permissions(cls, role: Role) -> Set[str]:
        """Get all permission codes for a role."""
        return set(
            Permission.objects.filter(role_permissions__role=role).values_list('code', flat=True)
        )

    @classmethod
    def get_membership_roles(cls, membership: StoreMembership):
        return Role.objects.filter(membership_roles__membership=membership).distinct()

    @classmethod
    def users_with_permission(cls, store, code: str):
        """
        Active users who hold ``code`` in ``store``, plus every super admin.

        Used to find who receives store admin notifications.
        """
        member_ids = StoreMembership.objects.filter(
            store=store,
            is_active=True,
            membership_roles__role__role_permissions__permission__code=code,
        ).values_list('user_id', flat=True)

        return User.objects.filter(
            Q(id__in=member_ids) | Q(is_superuser=True),
            is_active=True,
        ).distinct()

    @classmethod
    @transaction.atomic
    def assign_role(cls, membership: StoreMembership, role: Role,
                    assigned_by: Optional[User] = None, request=None) -> MembershipRole:
        """
        Assign a role to a membership.

        Raises:
            ValidationError: the role belongs to another store
        """
        if role.store_id != membership.store_id:
            raise ValidationError(
                "Role must belong to the same store as the user",
                details={'role_id': str(role.id)}
            )

        membership_role, created = MembershipRole.objects.get_or_create(
            membership=membership,
            role=role,
            defaults={'assigned_by': assigned_by}
        )

        cls.invalidate_scope_cache(membership)

        if created:
            AuditLog.log_action(
                action='role_assigned',
                user=assigned_by,
                store=membership.store,
                target_type='MembershipRole',
                target_id=membership_role.id,
                diff={'role': role.name, 'action': 'assigned'},
                metadata={
                    'target_user_email': membership.user.email,
                    'role_name': role.name,
                },
                request=request,
            )

        return membership_role

    @classmethod
    @transaction.atomic
    def set_user_role(cls, membership: StoreMembership, role: Role,
                      assigned_by: Optional[User] = None, request=None) -> MembershipRole:
        """Make ``role`` the only role of the membership."""
        if role.store_id != membership.store_id:
            raise ValidationError(
                "Role must belong to the same store as the user",
                details={'role_id': str(role.id)}
            )

        previous = list(
            MembershipRole.objects.filter(membership=membership)
            .exclude(role=role)
            .values_list('role__name', flat=True)
        )
        MembershipRole.objects.filter(membership=membership).exclude(role=role).delete()

        membership_role = cls.assign_role(membership, role, assigned_by=assigned_by, request=request)

        if previous:
            AuditLog.log_action(
                action='role_replaced',
                user=assigned_by,
                store=membership.store,
                target_type='StoreMembership',
                target_id=membership.id,
                diff={'old': previous, 'new': [role.name]},
                metadata={'target_user_email': membership.user.email},
                request=request,
            )

        return membership_role

    @classmethod
    @transaction.atomic
    def remove_role(cls, membership: StoreMembership, role: Role,
                    removed_by: Optional[User] = None, request=None) -> bool:
        """Remove a role from a membership; False when it was not assigned."""
        deleted_count, _ = MembershipRole.objects.filter(
            membership=membership,
            role=role
        ).delete()

        if deleted_count == 0:
            return False

        cls.invalidate_scope_cache(membership)

        AuditLog.log_action(
            action='role_removed',
            user=removed_by,
            store=membership.store,
            target_type='MembershipRole',
            diff={'role': role.name, 'action': 'removed'},
            metadata={
                'target_user_email': membership.user.email,
                'role_name': role.name,
            },
            request=request,
        )
        return True

    @classmethod
    @transaction.atomic
    def assign_permissions_to_role(cls, role: Role, permissions: Iterable[Permission],
                                   assigned_by: Optional[User] = None, request=None) -> Set[str]:
        """
        Replace the permission set of a role.

        Scope caches of every membership holding the role are invalidated.

        Returns:
            The new set of permission codes
        """
        before = cls.get_role_permissions(role)
        added, removed = cls._sync_role_permissions(role, permissions)

        for membership_id in MembershipRole.objects.filter(role=role).values_list('membership_id', flat=True):
            cache.delete(f"scopes:membership:{membership_id}")

        after = cls.get_role_permissions(role)

        if added or removed:
            AuditLog.log_action(
                action='role_permissions_updated',
                user=assigned_by,
                store=role.store,
                target_type='Role',
                target_id=role.id,
                diff={
                    'added': sorted(after - before),
                    'removed': sorted(before - after),
                },
                metadata={'role_name': role.name},
                request=request,
            )

        return after

    @staticmethod
    def _sync_role_permissions(role: Role, permissions: Iterable[Permission]):
        """
        Ensure the role has exactly ``permissions``.

        Returns:
            (added_count, removed_count)
        """
        current_perm_ids = set(
            RolePermission.objects.filter(role=role).values_list('permission_id', flat=True)
        )
        target = {permission.id: permission for permission in permissions}

        to_add = set(target) - current_perm_ids
        for perm_id in to_add:
            RolePermission.objects.grant_permission(role, target[perm_id])

        to_remove = current_perm_ids - set(target)
        if to_remove:
            RolePermission.objects.filter(role=role, permission_id__in=to_remove).delete()

        return len(to_add), len(to_remove)

    @classmethod
    @transaction.atomic
    def seed_permissions(cls) -> Dict[str, int]:
        """
        Create or update the canonical permission modules and permissions.

        Idempotent. Returns counts of created and updated rows.
        """
        counts = {'modules_created': 0, 'permissions_created': 0, 'permissions_updated': 0}

        modules = {}
        for name, display_name, description, icon, sort_order, _subject in PERMISSION_MODULES:
            module, created = PermissionModule.objects.update_or_create(
                name=name,
                defaults={
                    'display_name': display_name,
                    'description': description,
                    'icon': icon,
                    'sort_order': sort_order,
                }
            )
            modules[name] = module
            counts['modules_created'] += int(created)

        for module_name, code, display_name, action in permission_definitions():
            permission, created = Permission.objects.get_or_create_permission(
                module=modules[module_name],
                code=code,
                display_name=display_name,
                description=display_name,
                action=action,
            )
            if created:
                counts['permissions_created'] += 1
            elif (permission.display_name, permission.action, permission.module_id) != (
                display_name, action, modules[module_name].id
            ):
                permission.display_name = display_name
                permission.action = action
                permission.module = modules[module_name]
                permission.save()
                counts['permissions_updated'] += 1

        cache.delete(cls.ALL_CODES_CACHE_KEY)
        return counts

    @classmethod
    @transaction.atomic
    def seed_store_roles(cls, store) -> Dict[str, int]:
        """
        Seed the default roles (Super Admin, Manager, Customer) of a store.

        Idempotent: role permission sets are synced to their definitions.
        The permission catalog is seeded first when it is incomplete.
        """
        expected = sum(1 for _ in permission_definitions())
        if Permission.objects.count() < expected:
            cls.seed_permissions()

        all_permissions = list(Permission.objects.all())
        counts = {'roles_created': 0, 'roles_synced': 0}

        for role_name, role_config in DEFAULT_ROLES.items():
            role, created = Role.objects.get_or_create_role(
                store=store,
                name=role_name,
                description=role_config['description'],
                is_system=True
            )
            counts['roles_created'] += int(created)

            if role_config['permissions'] == 'ALL':
                permissions = all_permissions
            else:
                permissions = [p for p in all_permissions if p.code in role_config['permissions']]

            added, removed = cls._sync_role_permissions(role, permissions)
            if added or removed:
                counts['roles_synced'] += 1

        AuditLog.log_action(
            action='store_roles_seeded',
            store=store,
            target_type='Store',
            target_id=store.id,
            metadata=counts,
        )
        return counts

    @classmethod
    @transaction.atomic
    def add_member(cls, store, user: User, role: Optional[Role] = None,
                   added_by: Optional[User] = None, request=None) -> StoreMembership:
        """
        Create (or reactivate) a membership and give it ``role``.

        Without a role the store's Customer role is used when it exists.
        """
        membership = StoreMembership.objects.filter(store=store, user=user).first()
        if membership is None:
            membership = StoreMembership.objects.create(store=store, user=user)
        elif not membership.is_active:
            membership.is_active = True
            membership.save(update_fields=['is_active', 'updated_at'])

        role = role or Role.objects.by_name(store, CUSTOMER_ROLE)
        if role is not None:
            cls.set_user_role(membership, role, assigned_by=added_by, request=request)

        return membership


    @classmethod
    @transaction.atomic
    def create_role(cls, store, name: str, description: str = '', permissions=None,
                    created_by: Optional[User] = None, request=None) -> Role:
        """Create a custom (non-system) role, optionally with permissions."""
        role = Role.objects.create(store=store, name=name, description=description, is_system=False)

        AuditLog.log_action(
            action='role_created',
            user=created_by,
            store=store,
            target_type='Role',
            target_id=role.id,
            diff={'name': name, 'description': description},
            request=request,
        )

        if permissions:
            cls.assign_permissions_to_role(role, permissions, assigned_by=created_by, request=request)

        return role

    @classmethod
    @transaction.atomic
    def update_role(cls, role: Role, data: Dict[str, Any],
                    updated_by: Optional[User] = None, request=None) -> Role:
        """
        Rename or re-describe a role.

        System role names are fixed since seeding looks roles up by name.
        """
        if role.is_system and 'name' in data and data['name'] != role.name:
            raise ConflictError(
                "System roles cannot be renamed",
                details={'role': role.name}
            )

        diff = {}
        for field in ('name', 'description'):
            if field in data and getattr(role, field) != data[field]:
                diff[field] = {'old': getattr(role, field), 'new': data[field]}
                setattr(role, field, data[field])

        if diff:
            role.save()
            AuditLog.log_action(
                action='role_updated',
                user=updated_by,
                store=role.store,
                target_type='Role',
                target_id=role.id,
                diff=diff,
                request=request,
            )

        if 'permissions' in data:
            cls.assign_permissions_to_role(role, data['permissions'], assigned_by=updated_by, request=request)

        return role

    @classmethod
    @transaction.atomic
    def delete_role(cls, role: Role, deleted_by: Optional[User] = None, request=None):
        """
        Delete a custom role and its assignments.

        Raises:
            ConflictError: the role is a system role
        """
        if role.is_system:
            raise ConflictError(
                "System roles cannot be deleted",
                details={'role': role.name}
            )

        membership_ids = list(
            MembershipRole.objects.filter(role=role).values_list('membership_id', flat=True)
        )

        AuditLog.log_action(
            action='role_deleted',
            user=deleted_by,
            store=role.store,
            target_type='Role',
            target_id=role.id,
            diff={'name': role.name},
            metadata={'affected_memberships': len(membership_ids)},
            request=request,
        )

        # Hard delete frees the (store, name) pair for reuse
        role.hard_delete()

        for membership_id in membership_ids:
            cache.delete(f"scopes:membership:{membership_id}")

    @classmethod
    @transaction.atomic
    def create_store_user(cls, store, data: Dict[str, Any], role: Optional[Role] = None,
                          created_by: Optional[User] = None, request=None) -> StoreMembership:
        """
        Add a user to the store, creating the account when the email is new.

        Raises:
            ConflictError: the user is already an active member
        """
        user = User.objects.by_email(data['email'])
        created = user is None

        if created:
            user = User.objects.create_user(
                email=data['email'],
                password=data.get('password'),
                first_name=data.get('first_name', ''),
                last_name=data.get('last_name', ''),
                phone=data.get('phone', ''),
            )
        elif StoreMembership.objects.get_membership(store, user) is not None:
            raise ConflictError(
                "User is already a member of this store",
                details={'email': user.email}
            )

        membership = cls.add_member(store, user, role=role, added_by=created_by, request=request)

        AuditLog.log_action(
            action='user_created' if created else 'user_added_to_store',
            user=created_by,
            store=store,
            target_type='User',
            target_id=user.id,
            metadata={
                'email': user.email,
                'role': role.name if role else CUSTOMER_ROLE,
            },
            request=request,
        )
        return membership

    @classmethod
    @transaction.atomic
    def update_store_user(cls, membership: StoreMembership, data: Dict[str, Any],
                          role: Optional[Role] = None, updated_by: Optional[User] = None,
                          request=None) -> StoreMembership:
        """Update profile fields, password, active flag and role of a member."""
        user = membership.user
        diff = {}

        for field in ('first_name', 'last_name', 'phone', 'is_active'):
            if field in data and getattr(user, field) != data[field]:
                diff[field] = {'old': getattr(user, field), 'new': data[field]}
                setattr(user, field, data[field])

        if data.get('password'):
            user.set_password(data['password'])
            diff['password'] = 'changed'

        if diff:
            user.save()

        if role is not None:
            cls.set_user_role(membership, role, assigned_by=updated_by, request=request)
            diff['role'] = role.name

        if diff:
            AuditLog.log_action(
                action='user_updated',
                user=updated_by,
                store=membership.store,
                target_type='User',
                target_id=user.id,
                diff=diff,
                request=request,
            )

        return membership

    @classmethod
    @transaction.atomic
    def remove_store_user(cls, membership: StoreMembership, removed_by: Optional[User] = None,
                          request=None):
        """
        Remove a user from the store. The global account is kept.

        Raises:
            ValidationError: a user tried to remove themselves
        """
        if removed_by is not None and membership.user_id == removed_by.id:
            raise ValidationError("You cannot remove yourself from the store")

        AuditLog.log_action(
            action='user_removed',
            user=removed_by,
            store=membership.store,
            target_type='User',
            target_id=membership.user_id,
            metadata={'email': membership.user.email},
            request=request,
        )

        cls.invalidate_scope_cache(membership)
        membership.hard_delete()



class AuthService:
    """
    Service for authentication operations: JWT, login, password reset.

    Public registration is disabled; accounts are created by store admins.
    """

    @classmethod
    def generate_jwt(cls, user: User) -> str:
        """Generate a signed JWT with user_id, email, iat and exp."""
        now = datetime.now(dt_timezone.utc)
        payload = {
            'user_id': str(user.id),
            'email': user.email,
            'exp': now + timedelta(hours=getattr(settings, 'JWT_EXPIRATION_HOURS', 24)),
            'iat': now,
        }

        return jwt.encode(
            payload,
            settings.JWT_SECRET_KEY,
            algorithm=getattr(settings, 'JWT_ALGORITHM', 'HS256')
        )

    @classmethod
    def validate_jwt(cls, token: str) -> Optional[Dict[str, Any]]:
        """Return the decoded payload, or None when invalid or expired."""
        try:
            return jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[getattr(settings, 'JWT_ALGORITHM', 'HS256')]
            )
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    @classmethod
    def get_user_from_jwt(cls, token: str) -> Optional[User]:
        """Return the active user the token belongs to, or None."""
        payload = cls.validate_jwt(token)
        if not payload:
            return None

        user_id = payload.get('user_id')
        if not user_id:
            return None

        try:
            return User.objects.get(id=user_id, is_active=True)
        except (User.DoesNotExist, ValueError, DjangoValidationError):
            return None

    @classmethod
    def login(cls, email: str, password: str, request=None) -> Optional[Dict[str, Any]]:
        """
        Authenticate user and return JWT token.

        Returns:
            Dict with user and token, or None if authentication failed.
            Inactive users cannot log in.
        """
        user = User.objects.by_email(email)
        if user is None or not user.is_active or not user.check_password(password):
            return None

        user.update_last_login()
        token = cls.generate_jwt(user)

        AuditLog.log_action(
            action='user_login',
            user=user,
            store=getattr(request, 'store', None),
            target_type='User',
            target_id=user.id,
            metadata={'email': user.email},
            request=request,
        )

        return {'user': user, 'token': token}

    @classmethod
    def request_password_reset(cls, email: str, store=None) -> Optional[str]:
        """
        Create a reset token and queue the reset email.

        Returns the token, or None when no active user matches. Callers
        must answer the same way in both cases.
        """
        from apps.rbac.tasks import send_password_reset_email

        user = User.objects.by_email(email)
        if user is None or not user.is_active:
            logger.info("Password reset requested for unknown email")
            return None

        reset_token = PasswordResetToken.create_token(user)

        if store is None:
            membership = StoreMembership.objects.for_user(user).select_related('store').first()
            store = membership.store if membership else None

        if store is not None:
            store_id = str(store.id)
            token = reset_token.token
            transaction.on_commit(
                lambda: send_password_reset_email.delay(str(user.id), store_id, token)
            )
        else:
            logger.warning(
                "Password reset token created but no store to send it from",
                extra={'user_id': str(user.id)}
            )

        AuditLog.log_action(
            action='password_reset_requested',
            user=user,
            store=store,
            target_type='User',
            target_id=user.id,
        )

        return reset_token.token

    @classmethod
    @transaction.atomic
    def reset_password(cls, token: str, new_password: str) -> bool:
        """Set a new password with a valid reset token; False when the token is invalid."""
        reset_token = PasswordResetToken.objects.get_valid_token(token)
        if not reset_token:
            return False

        user = reset_token.user
        user.set_password(new_password)
        user.save(update_fields=['password_hash', 'updated_at'])

        reset_token.mark_as_used()

        AuditLog.log_action(
            action='password_reset_completed',
            user=user,
            target_type='User',
            target_id=user.id,
        )

        return True
