"""
RBAC models for multi-store access control.

Implements:
- Global User identity (can shop or work in several stores)
- StoreMembership linking a user to a store
- PermissionModule / Permission (global canonical permissions)
- Role (per-store role definitions)
- RolePermission (maps permissions to roles)
- MembershipRole (maps roles to memberships)
- PasswordResetToken (forgot password flow)
- AuditLog (audit trail)
"""
import logging
from django.db import models
from django.contrib.auth.hashers import make_password, check_password, is_password_usable
from apps.core.models import BaseModel, BaseModelManager

logger = logging.getLogger(__name__)


class UserManager(BaseModelManager):
    """
    Manager for User queries.

    Compatible with Django's authentication system and admin interface.
    """

    def active(self):
        """Return only active users."""
        return self.filter(is_active=True)

    def by_email(self, email):
        """Find user by email (case-insensitive)."""
        return self.filter(email__iexact=(email or '').strip()).first()

    def create_user(self, email, password=None, **extra_fields):
        """Create a new user with hashed password."""
        if not email:
            raise ValueError('Email address is required')

        email = self.normalize_email(email)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('is_superuser', False)

        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """
        Create a super admin.

        This method is required for Django's createsuperuser command.
        """
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)

        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True')

        return self.create_user(email, password, **extra_fields)

    @staticmethod
    def normalize_email(email):
        """Lowercase the domain part of the email address."""
        email = (email or '').strip()
        try:
            email_name, domain_part = email.rsplit('@', 1)
        except ValueError:
            return email
        return email_name + '@' + domain_part.lower()

    def get_by_natural_key(self, email):
        return self.get(**{self.model.USERNAME_FIELD: email})


class User(BaseModel):
    """
    Global user identity.

    Authentication happens at the User level, authorization at the
    StoreMembership level. ``is_superuser`` is the Super Admin flag and
    bypasses every permission check in every store.

    This is the AUTH_USER_MODEL for the entire application, including Django admin.
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        help_text="User email address (unique globally)"
    )
    password_hash = models.CharField(
        max_length=255,
        help_text="Hashed password",
        db_column='password_hash'
    )
    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)
    phone = models.CharField(max_length=50, blank=True)

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether user account is active"
    )
    is_superuser = models.BooleanField(
        default=False,
        help_text="Super Admin: bypasses all permission checks"
    )
    last_login_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last login timestamp"
    )

    # Django admin compatibility
    USERNAME_FIELD = 'email'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        db_table = 'users'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['is_active', 'created_at']),
        ]

    def __str__(self):
        return self.email

    @property
    def password(self):
        """Alias for password_hash; Django admin expects a 'password' attribute."""
        return self.password_hash

    @password.setter
    def password(self, value):
        self.password_hash = value

    def check_password(self, raw_password):
        """Check if provided password matches stored hash."""
        if not self.password_hash:
            return False
        return check_password(raw_password, self.password_hash)

    def set_password(self, raw_password):
        """Set user password (hashes automatically)."""
        self.password_hash = make_password(raw_password)

    def set_unusable_password(self):
        self.password_hash = make_password(None)

    def has_usable_password(self):
        return is_password_usable(self.password_hash)

    def get_full_name(self):
        """Return full name or email if name not set."""
        if self.first_name or self.last_name:
            return f"{self.first_name} {self.last_name}".strip()
        return self.email

    def get_username(self):
        return self.email

    def update_last_login(self):
        from django.utils import timezone
        self.last_login_at = timezone.now()
        self.save(update_fields=['last_login_at', 'updated_at'])

    @property
    def is_super_admin(self):
        return self.is_superuser

    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    @property
    def is_staff(self):
        """Django admin access is limited to super admins."""
        return self.is_superuser

    def has_perm(self, perm, obj=None):
        return self.is_active and self.is_superuser

    def has_perms(self, perm_list, obj=None):
        return self.is_active and self.is_superuser

    def has_module_perms(self, app_label):
        return self.is_active and self.is_superuser

    def natural_key(self):
        return (self.email,)


class StoreMembershipManager(BaseModelManager):
    """Manager for StoreMembership queries."""

    def for_store(self, store):
        """Active memberships of a store."""
        return self.filter(store=store, is_active=True)

    def for_user(self, user):
        return self.filter(user=user, is_active=True)

    def get_membership(self, store, user):
        """Get the active membership of ``user`` in ``store``."""
        if store is None or user is None:
            return None
        return self.filter(store=store, user=user, is_active=True).first()


class StoreMembership(BaseModel):
    """
    Association between User and Store.

    Customers and staff alike are members; what they may do is decided
    by the roles attached through MembershipRole.
    """

    store = models.ForeignKey(
        'tenants.Store',
        on_delete=models.CASCADE,
        related_name='memberships',
        db_index=True,
    )
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='store_memberships',
        db_index=True,
    )
    is_active = models.BooleanField(default=True, db_index=True)
    joined_at = models.DateTimeField(auto_now_add=True)

    objects = StoreMembershipManager()

    class Meta:
        db_table = 'store_memberships'
        unique_together = [('store', 'user')]
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['store', 'user', 'is_active']),
            models.Index(fields=['user', 'is_active']),
        ]

    def __str__(self):
        return f"{self.user.email} @ {self.store.name}"

    def get_roles(self):
        return Role.objects.filter(membership_roles__membership=self).distinct()


class PermissionModule(BaseModel):
    """Group of related permissions (products, orders, settings, ...)."""

    name = models.CharField(max_length=50, unique=True)
    display_name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    icon = models.CharField(max_length=50, blank=True)
    sort_order = models.IntegerField(default=0)

    class Meta:
        db_table = 'permission_modules'
        ordering = ['sort_order', 'name']

    def __str__(self):
        return self.display_name


class PermissionManager(BaseModelManager):
    """Manager for Permission queries."""

    def by_code(self, code):
        return self.filter(code=code).first()

    def by_module(self, module_name):
        return self.filter(module__name=module_name)

    def get_or_create_permission(self, module, code, display_name, description='', action=''):
        """Get or create permission (idempotent)."""
        return self.get_or_create(
            code=code,
            defaults={
                'module': module,
                'display_name': display_name,
                'description': description,
                'action': action,
            }
        )


class Permission(BaseModel):
    """
    Global permission definitions shared by all stores.

    Codes follow ``<module>:<action>`` (e.g. ``orders:approve``).
    """

    module = models.ForeignKey(
        PermissionModule,
        on_delete=models.CASCADE,
        related_name='permissions',
    )
    code = models.CharField(
        max_length=100,
        unique=True,
        db_index=True,
        help_text="Unique permission code (e.g., 'orders:approve')"
    )
    display_name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    action = models.CharField(max_length=50)

    objects = PermissionManager()

    class Meta:
        db_table = 'permissions'
        ordering = ['module__sort_order', 'code']

    def __str__(self):
        return self.code


class RoleManager(BaseModelManager):
    """Manager for Role queries with store scoping."""

    def for_store(self, store):
        return self.filter(store=store)

    def by_name(self, store, name):
        """Find role by store and name."""
        return self.filter(store=store, name=name).first()

    def get_or_create_role(self, store, name, description='', is_system=False):
        """Get or create role (idempotent)."""
        return self.get_or_create(
            store=store,
            name=name,
            defaults={
                'description': description,
                'is_system': is_system,
            }
        )


class Role(BaseModel):
    """
    Per-store role definitions.

    System roles (Super Admin, Manager, Customer) are seeded when the store
    is created; stores may add custom roles.
    """

    store = models.ForeignKey(
        'tenants.Store',
        on_delete=models.CASCADE,
        related_name='roles',
        db_index=True,
    )
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    is_system = models.BooleanField(
        default=False,
        db_index=True,
        help_text="System roles cannot be deleted"
    )

    objects = RoleManager()

    class Meta:
        db_table = 'roles'
        unique_together = [('store', 'name')]
        ordering = ['store', 'name']

    def __str__(self):
        return f"{self.store.name} - {self.name}"

    def get_permissions(self):
        return Permission.objects.filter(role_permissions__role=self).distinct()


class RolePermissionManager(models.Manager):
    """Rows are removed for real so the unique pair can be granted again."""

    def for_role(self, role):
        return self.filter(role=role)

    def grant_permission(self, role, permission):
        """Grant permission to role (idempotent)."""
        return self.get_or_create(role=role, permission=permission)

    def revoke_permission(self, role, permission):
        return self.filter(role=role, permission=permission).delete()


class RolePermission(BaseModel):
    """Maps permissions to roles."""

    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='role_permissions',
    )
    permission = models.ForeignKey(
        Permission,
        on_delete=models.CASCADE,
        related_name='role_permissions',
    )

    objects = RolePermissionManager()

    class Meta:
        db_table = 'role_permissions'
        unique_together = [('role', 'permission')]

    def __str__(self):
        return f"{self.role.name} -> {self.permission.code}"


class MembershipRoleManager(models.Manager):

    def for_membership(self, membership):
        return self.filter(membership=membership)


class MembershipRole(BaseModel):
    """
    Maps roles to store memberships.

    A membership normally carries one role, but permissions are aggregated
    across all assigned roles.
    """

    membership = models.ForeignKey(
        StoreMembership,
        on_delete=models.CASCADE,
        related_name='membership_roles',
    )
    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='membership_roles',
    )
    assigned_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='role_assignments_made',
    )

    objects = MembershipRoleManager()

    class Meta:
        db_table = 'membership_roles'
        unique_together = [('membership', 'role')]

    def __str__(self):
        return f"{self.membership.user.email} -> {self.role.name}"

    def clean(self):
        """Validate that membership and role belong to the same store."""
        super().clean()
        if self.membership_id and self.role_id:
            if self.membership.store_id != self.role.store_id:
                from django.core.exceptions import ValidationError
                raise ValidationError("Membership and Role must belong to the same store")

    def save(self, *args, **kwargs):
        self.full_clean(validate_unique=False)
        super().save(*args, **kwargs)


class PasswordResetTokenManager(BaseModelManager):

    def get_valid_token(self, token):
        """Get a valid (unused, unexpired) token by token string."""
        from django.utils import timezone
        return self.filter(
            token=token,
            expires_at__gt=timezone.now(),
            used=False
        ).select_related('user').first()


class PasswordResetToken(BaseModel):
    """
    Password reset tokens for forgot password flow.

    Tokens expire after 24 hours and can only be used once.
    """

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='password_reset_tokens',
    )
    token = models.CharField(max_length=255, unique=True, db_index=True)
    expires_at = models.DateTimeField(db_index=True)
    used = models.BooleanField(default=False, db_index=True)
    used_at = models.DateTimeField(null=True, blank=True)

    objects = PasswordResetTokenManager()

    class Meta:
        db_table = 'password_reset_tokens'
        ordering = ['-created_at']

    def __str__(self):
        return f"Password reset token for {self.user.email}"

    def is_valid(self):
        from django.utils import timezone
        return not self.used and timezone.now() < self.expires_at

    def mark_as_used(self):
        from django.utils import timezone
        self.used = True
        self.used_at = timezone.now()
        self.save(update_fields=['used', 'used_at', 'updated_at'])

    @classmethod
    def create_token(cls, user):
        """Create a new 24 hour password reset token for a user."""
        import secrets
        from django.utils import timezone
        from datetime import timedelta

        return cls.objects.create(
            user=user,
            token=secrets.token_urlsafe(32),
            expires_at=timezone.now() + timedelta(hours=24)
        )


class AuditLogManager(BaseModelManager):
    """Manager for AuditLog queries with store scoping."""

    def for_store(self, store):
        return self.filter(store=store)

    def for_user(self, user):
        return self.filter(user=user)

    def by_action(self, action):
        return self.filter(action=action)

    def by_target(self, target_type, target_id=None):
        qs = self.filter(target_type=target_type)
        if target_id:
            qs = qs.filter(target_id=str(target_id))
        return qs


class AuditLog(BaseModel):
    """
    Audit trail for RBAC changes and sensitive store operations
    (catalog edits, order approvals, settings, imports).
    """

    store = models.ForeignKey(
        'tenants.Store',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='audit_logs',
        db_index=True,
        help_text="Store this action belongs to (null for global actions)"
    )
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        db_index=True,
        help_text="User who performed the action (null for system actions)"
    )
    action = models.CharField(max_length=100, db_index=True)
    target_type = models.CharField(max_length=50, blank=True, db_index=True)
    target_id = models.CharField(max_length=64, blank=True, db_index=True)
    diff = models.JSONField(default=dict, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    request_id = models.CharField(max_length=64, blank=True, db_index=True)

    objects = AuditLogManager()

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['store', 'created_at']),
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['target_type', 'target_id']),
        ]

    def __str__(self):
        user_str = self.user.email if self.user else 'System'
        store_str = self.store.name if self.store else 'Global'
        return f"{store_str} - {user_str} - {self.action}"

    @classmethod
    def log_action(cls, action, user=None, store=None, target_type=None,
                   target_id=None, diff=None, metadata=None, request=None):
        """
        Create an audit log entry. Never raises.

        Args:
            action: Action being performed (e.g. 'order_approved')
            user: User performing the action
            store: Store context
            target_type: Type of target entity
            target_id: ID of target entity
            diff: Before/after changes (must be JSON serializable)
            metadata: Additional context
            request: Django/DRF request (for IP, user agent, request ID)

        Returns:
            AuditLog instance or None when the write failed
        """
        if user is not None and not getattr(user, 'is_authenticated', False):
            user = None

        log_data = {
            'action': action,
            'user': user,
            'store': store,
            'target_type': target_type or '',
            'target_id': str(target_id) if target_id else '',
            'diff': diff or {},
            'metadata': metadata or {},
        }

        if request is not None:
            log_data['ip_address'] = cls._get_client_ip(request)
            log_data['user_agent'] = request.META.get('HTTP_USER_AGENT', '')
            log_data['request_id'] = getattr(request, 'request_id', None) or ''

        try:
            from django.db import transaction
            with transaction.atomic():
                return cls.objects.create(**log_data)
        except Exception as e:
            logger.error(
                f"Failed to create audit log: {str(e)}",
                extra={'action': action, 'store_id': str(store.id) if store else None},
                exc_info=True
            )
            return None

    @staticmethod
    def _get_client_ip(request):
        """Extract client IP from request."""
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR')
