"""
Django admin configuration for RBAC app.
"""
from django.contrib import admin
from .models import (
    User,
    StoreMembership,
    PermissionModule,
    Permission,
    Role,
    RolePermission,
    MembershipRole,
    PasswordResetToken,
    AuditLog,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    """Email-based users; the password hash is never edited here."""
    list_display = ['email', 'first_name', 'last_name', 'is_active', 'is_superuser', 'last_login_at', 'created_at']
    list_filter = ['is_active', 'is_superuser']
    search_fields = ['email', 'first_name', 'last_name']
    ordering = ['-created_at']
    exclude = ['password_hash', 'deleted_at']
    readonly_fields = ['created_at', 'updated_at', 'last_login_at']


class MembershipRoleInline(admin.TabularInline):
    model = MembershipRole
    fk_name = 'membership'
    extra = 0
    exclude = ['deleted_at']


@admin.register(StoreMembership)
class StoreMembershipAdmin(admin.ModelAdmin):
    list_display = ['user', 'store', 'is_active', 'joined_at']
    list_filter = ['is_active', 'store']
    search_fields = ['user__email', 'store__slug']
    inlines = [MembershipRoleInline]


class PermissionInline(admin.TabularInline):
    model = Permission
    extra = 0
    fields = ['code', 'display_name', 'action']


@admin.register(PermissionModule)
class PermissionModuleAdmin(admin.ModelAdmin):
    list_display = ['name', 'display_name', 'sort_order']
    ordering = ['sort_order']
    inlines = [PermissionInline]


class RolePermissionInline(admin.TabularInline):
    model = RolePermission
    extra = 0
    exclude = ['deleted_at']


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ['name', 'store', 'is_system']
    list_filter = ['is_system', 'store']
    inlines = [RolePermissionInline]


@admin.register(PasswordResetToken)
class PasswordResetTokenAdmin(admin.ModelAdmin):
    """Admin interface for PasswordResetToken model."""
    list_display = ['user', 'token_preview', 'expires_at', 'used', 'used_at', 'created_at']
    list_filter = ['used', 'expires_at']
    search_fields = ['user__email']
    readonly_fields = ['token', 'created_at', 'updated_at', 'used_at']

    def token_preview(self, obj):
        """Show first 8 characters of token."""
        return f"{obj.token[:8]}..." if obj.token else ""
    token_preview.short_description = 'Token'


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['action', 'user', 'store', 'target_type', 'target_id', 'created_at']
    list_filter = ['action', 'target_type']
    search_fields = ['action', 'target_id', 'user__email']
    readonly_fields = [f.name for f in AuditLog._meta.fields]
