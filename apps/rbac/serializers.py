"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- Authentication (login, password reset) and the user profile
- Store users (memberships) administered by store staff
- Roles, permission modules and permissions
- Audit logs
"""
from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from apps.rbac.models import (
    User, StoreMembership, PermissionModule, Permission, Role, AuditLog
)


# ===== AUTHENTICATION SERIALIZERS =====

class LoginSerializer(serializers.Serializer):
    """Serializer for user login."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate_email(self, value):
        """Normalize email to lowercase."""
        return value.lower()


class PasswordResetRequestSerializer(serializers.Serializer):
    """Serializer for requesting password reset."""

    email = serializers.EmailField(required=True)

    def validate_email(self, value):
        return value.lower()


class PasswordResetSerializer(serializers.Serializer):
    """Serializer for resetting password with token."""

    token = serializers.CharField(required=True)
    new_password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate_new_password(self, value):
        """Validate password strength."""
        validate_password(value)
        return value


class CheckPermissionSerializer(serializers.Serializer):
    permission = serializers.CharField(max_length=100)


# ===== USER SERIALIZERS =====

class UserSerializer(serializers.ModelSerializer):
    """Basic user information."""

    full_name = serializers.CharField(source='get_full_name', read_only=True)
    is_super_admin = serializers.BooleanField(source='is_superuser', read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'full_name', 'phone',
            'is_active', 'is_super_admin', 'last_login_at', 'created_at',
        ]
        read_only_fields = fields


class UserProfileSerializer(UserSerializer):
    """
    Profile returned by GET /v1/auth/me.

    Adds the caller's roles and scopes in the store of the request
    (empty when no X-Store-ID was sent).
    """

    store = serializers.SerializerMethodField()
    roles = serializers.SerializerMethodField()
    scopes = serializers.SerializerMethodField()

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ['store', 'roles', 'scopes']
        read_only_fields = fields

    def get_store(self, obj):
        request = self.context.get('request')
        store = getattr(request, 'store', None)
        if store is None:
            return None
        return {'id': str(store.id), 'name': store.name, 'slug': store.slug}

    def get_roles(self, obj):
        request = self.context.get('request')
        membership = getattr(request, 'membership', None)
        if membership is None:
            return []
        return [role.name for role in membership.get_roles()]

    def get_scopes(self, obj):
        request = self.context.get('request')
        return sorted(getattr(request, 'scopes', None) or [])


class UserProfileUpdateSerializer(serializers.ModelSerializer):
    """Profile fields a user may change; the email stays unique."""

    class Meta:
        model = User
        fields = ['first_name', 'last_name', 'email', 'phone']

    def validate_email(self, value):
        value = User.objects.normalize_email(value)
        taken = User.objects.filter(email__iexact=value)
        if self.instance is not None:
            taken = taken.exclude(id=self.instance.id)
        if taken.exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return value


class StoreUserSerializer(serializers.ModelSerializer):
    """A store member as listed in the admin user table."""

    user = UserSerializer(read_only=True)
    roles = serializers.SerializerMethodField()

    class Meta:
        model = StoreMembership
        fields = ['id', 'user', 'roles', 'is_active', 'joined_at']
        read_only_fields = fields

    def get_roles(self, obj):
        return [
            {'id': str(mr.role.id), 'name': mr.role.name}
            for mr in obj.membership_roles.select_related('role').all()
        ]


class StoreUserCreateSerializer(serializers.Serializer):
    """Create a user (or reuse an existing one) and add them to the store."""

    email = serializers.EmailField()
    password = serializers.CharField(
        required=False,
        write_only=True,
        style={'input_type': 'password'}
    )
    first_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True)
    role_id = serializers.UUIDField(required=False)

    def validate_email(self, value):
        return User.objects.normalize_email(value)

    def validate_password(self, value):
        validate_password(value)
        return value


class StoreUserUpdateSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True)
    password = serializers.CharField(
        required=False,
        write_only=True,
        style={'input_type': 'password'}
    )
    is_active = serializers.BooleanField(required=False)
    role_id = serializers.UUIDField(required=False)

    def validate_password(self, value):
        validate_password(value)
        return value


class AssignRoleSerializer(serializers.Serializer):
    """Serializer for POST /v1/admin/assign-role."""

    user_id = serializers.UUIDField()
    role_id = serializers.UUIDField()


# ===== ROLE AND PERMISSION SERIALIZERS =====

class PermissionSerializer(serializers.ModelSerializer):
    module = serializers.CharField(source='module.name', read_only=True)

    class Meta:
        model = Permission
        fields = ['id', 'code', 'display_name', 'description', 'action', 'module']
        read_only_fields = fields


class PermissionModuleSerializer(serializers.ModelSerializer):
    """Module with its nested permissions."""

    permissions = PermissionSerializer(many=True, read_only=True)

    class Meta:
        model = PermissionModule
        fields = ['id', 'name', 'display_name', 'description', 'icon', 'sort_order', 'permissions']
        read_only_fields = fields


class RoleSerializer(serializers.ModelSerializer):
    """Role with permission and member counts."""

    permission_count = serializers.SerializerMethodField()
    user_count = serializers.SerializerMethodField()

    class Meta:
        model = Role
        fields = [
            'id', 'name', 'description', 'is_system',
            'permission_count', 'user_count', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'is_system', 'created_at', 'updated_at']

    def get_permission_count(self, obj):
        return obj.role_permissions.count()

    def get_user_count(self, obj):
        return obj.membership_roles.count()


class RoleDetailSerializer(RoleSerializer):
    permissions = serializers.SerializerMethodField()

    class Meta(RoleSerializer.Meta):
        fields = RoleSerializer.Meta.fields + ['permissions']

    def get_permissions(self, obj):
        return PermissionSerializer(obj.get_permissions(), many=True).data


class RoleCreateSerializer(serializers.Serializer):
    """Create or rename a custom role."""

    name = serializers.CharField(max_length=100)
    description = serializers.CharField(required=False, allow_blank=True)
    permission_ids = serializers.ListField(
        child=serializers.UUIDField(),
        required=False,
    )

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Role name cannot be empty.")

        store = self.context.get('store')
        existing = Role.objects.filter(store=store, name__iexact=value)
        if self.instance is not None:
            existing = existing.exclude(id=self.instance.id)
        if existing.exists():
            raise serializers.ValidationError(f"Role '{value}' already exists in this store.")
        return value


class RolePermissionsUpdateSerializer(serializers.Serializer):
    """Serializer for PUT /v1/roles/{id}/permissions."""

    permission_ids = serializers.ListField(
        child=serializers.UUIDField(),
        allow_empty=True,
    )

    def validate_permission_ids(self, value):
        permissions = list(Permission.objects.filter(id__in=value))
        if len(permissions) != len(set(value)):
            found = {p.id for p in permissions}
            missing = [str(pid) for pid in value if pid not in found]
            raise serializers.ValidationError(f"Unknown permissions: {', '.join(missing)}")
        return permissions


# ===== AUDIT LOG SERIALIZERS =====

class AuditLogSerializer(serializers.ModelSerializer):
    user_email = serializers.SerializerMethodField()

    class Meta:
        model = AuditLog
        fields = [
            'id', 'action', 'user_email', 'target_type', 'target_id',
            'diff', 'metadata', 'ip_address', 'user_agent', 'request_id', 'created_at',
        ]
        read_only_fields = fields

    def get_user_email(self, obj):
        return obj.user.email if obj.user else None
