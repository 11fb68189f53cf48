"""
RBAC API URLs.

Provides endpoints for:
- Role management (CRUD, permission sets)
- Permission modules and permissions
- Store user administration
- Audit log viewing
"""
from django.urls import path
from apps.rbac.views import (
    RoleListView,
    RoleDetailView,
    RolePermissionsView,
    PermissionModuleListView,
    PermissionListView,
    AssignRoleView,
    StoreUserListView,
    StoreUserDetailView,
    AuditLogListView,
)

app_name = 'rbac'

urlpatterns = [
    # Role endpoints
    path('roles', RoleListView.as_view(), name='role-list'),
    path('roles/<uuid:role_id>', RoleDetailView.as_view(), name='role-detail'),
    path('roles/<uuid:role_id>/permissions', RolePermissionsView.as_view(), name='role-permissions'),

    # Permission catalog
    path('permission-modules', PermissionModuleListView.as_view(), name='permission-module-list'),
    path('permissions', PermissionListView.as_view(), name='permission-list'),

    # Store users
    path('admin/assign-role', AssignRoleView.as_view(), name='assign-role'),
    path('admin/users', StoreUserListView.as_view(), name='store-user-list'),
    path('admin/users/<uuid:user_id>', StoreUserDetailView.as_view(), name='store-user-detail'),

    # Audit log endpoint
    path('audit-logs', AuditLogListView.as_view(), name='audit-log-list'),
]
