"""
RBAC REST API views.

Implements endpoints for:
- Role management (CRUD, permission sets)
- Permission modules and permissions
- Store user administration and role assignment
- Audit log viewing
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from django.db.models import Q
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import NotFoundError
from apps.core.permissions import requires_scopes, HasStoreScopes
from apps.rbac.models import User, StoreMembership, PermissionModule, Permission, Role, AuditLog
from apps.rbac.services import RBACService
from apps.rbac.serializers import (
    PermissionSerializer, PermissionModuleSerializer, RoleSerializer,
    RoleDetailSerializer, RoleCreateSerializer, RolePermissionsUpdateSerializer,
    StoreUserSerializer, StoreUserCreateSerializer, StoreUserUpdateSerializer,
    AssignRoleSerializer, AuditLogSerializer,
)


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for list endpoints."""
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


def _get_role(store, role_id):
    role = Role.objects.filter(store=store, id=role_id).first()
    if role is None:
        raise NotFoundError("Role not found", details={'role_id': str(role_id)})
    return role


def _get_membership(store, user_id):
    membership = (
        StoreMembership.objects.filter(store=store, user_id=user_id)
        .select_related('user', 'store')
        .first()
    )
    if membership is None:
        raise NotFoundError("User is not a member of this store", details={'user_id': str(user_id)})
    return membership


# ===== ROLES =====

class RoleListView(APIView):
    """
    GET  /v1/roles  (roles:view)
    POST /v1/roles  (roles:create)
    """

    permission_classes = [HasStoreScopes]
    pagination_class = StandardResultsSetPagination

    @extend_schema(
        tags=['RBAC - Roles'],
        summary='List roles',
        parameters=[
            OpenApiParameter('type', OpenApiTypes.STR, description='Filter by role type: system or custom'),
        ],
        responses={200: RoleSerializer(many=True)},
    )
    @requires_scopes('roles:view')
    def get(self, request):
        roles = Role.objects.for_store(request.store).order_by('-is_system', 'name')

        role_type = request.query_params.get('type')
        if role_type == 'system':
            roles = roles.filter(is_system=True)
        elif role_type == 'custom':
            roles = roles.filter(is_system=False)

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(roles, request)
        serializer = RoleSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    @extend_schema(
        tags=['RBAC - Roles'],
        summary='Create custom role',
        description='''
Create a custom role for the store. System roles are seeded, never created here.

**Required scope:** `roles:create`
        ''',
        request=RoleCreateSerializer,
        responses={201: RoleDetailSerializer, 400: OpenApiTypes.OBJECT},
    )
    @requires_scopes('roles:create')
    def post(self, request):
        serializer = RoleCreateSerializer(data=request.data, context={'store': request.store})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        permissions = list(Permission.objects.filter(id__in=data.get('permission_ids', [])))
        role = RBACService.create_role(
            request.store,
            name=data['name'],
            description=data.get('description', ''),
            permissions=permissions,
            created_by=request.user,
            request=request,
        )
        return Response(RoleDetailSerializer(role).data, status=status.HTTP_201_CREATED)


class RoleDetailView(APIView):
    """
    GET    /v1/roles/{id}  (roles:view)
    PATCH  /v1/roles/{id}  (roles:edit)
    DELETE /v1/roles/{id}  (roles:delete, system roles are protected)
    """

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['RBAC - Roles'],
        summary='Get role details',
        responses={200: RoleDetailSerializer, 404: OpenApiTypes.OBJECT},
    )
    @requires_scopes('roles:view')
    def get(self, request, role_id):
        role = _get_role(request.store, role_id)
        return Response(RoleDetailSerializer(role).data)

    @extend_schema(
        tags=['RBAC - Roles'],
        summary='Update role',
        description='Rename or re-describe a role. System roles keep their name.\n\n**Required scope:** `roles:edit`',
        request=RoleCreateSerializer,
        responses={200: RoleDetailSerializer, 409: OpenApiTypes.OBJECT},
    )
    @requires_scopes('roles:edit')
    def patch(self, request, role_id):
        role = _get_role(request.store, role_id)
        serializer = RoleCreateSerializer(
            role, data=request.data, partial=True, context={'store': request.store}
        )
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        if 'permission_ids' in data:
            data['permissions'] = list(Permission.objects.filter(id__in=data.pop('permission_ids')))

        role = RBACService.update_role(role, data, updated_by=request.user, request=request)
        return Response(RoleDetailSerializer(role).data)

    put = patch

    @extend_schema(
        tags=['RBAC - Roles'],
        summary='Delete role',
        description='System roles cannot be deleted (409).\n\n**Required scope:** `roles:delete`',
        responses={204: None, 409: OpenApiTypes.OBJECT},
    )
    @requires_scopes('roles:delete')
    def delete(self, request, role_id):
        role = _get_role(request.store, role_id)
        RBACService.delete_role(role, deleted_by=request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


class RolePermissionsView(APIView):
    """
    GET /v1/roles/{id}/permissions  (roles:view)
    PUT /v1/roles/{id}/permissions  (roles:permissions)
    """

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['RBAC - Roles'],
        summary='List role permissions',
        responses={200: PermissionSerializer(many=True)},
    )
    @requires_scopes('roles:view')
    def get(self, request, role_id):
        role = _get_role(request.store, role_id)
        permissions = role.get_permissions().select_related('module').order_by('module__sort_order', 'code')
        return Response({
            'role': RoleSerializer(role).data,
            'permissions': PermissionSerializer(permissions, many=True).data,
        })

    @extend_schema(
        tags=['RBAC - Roles'],
        summary='Replace role permissions',
        description='''
Replace the permission set of a role. Scope caches of every user holding
the role are invalidated.

**Required scope:** `roles:permissions`
        ''',
        request=RolePermissionsUpdateSerializer,
        responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT},
    )
    @requires_scopes('roles:permissions')
    def put(self, request, role_id):
        role = _get_role(request.store, role_id)
        serializer = RolePermissionsUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        codes = RBACService.assign_permissions_to_role(
            role,
            serializer.validated_data['permission_ids'],
            assigned_by=request.user,
            request=request,
        )
        return Response({
            'role': RoleSerializer(role).data,
            'permissions': sorted(codes),
        })


# ===== PERMISSIONS =====

@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Permissions'],
        summary='List permission modules',
        description='Modules with their nested permissions, ordered by `sort_order`.\n\n**Required scope:** `roles:view`',
        responses={200: PermissionModuleSerializer(many=True)},
    )
)
@requires_scopes('roles:view')
class PermissionModuleListView(APIView):
    """GET /v1/permission-modules"""

    permission_classes = [HasStoreScopes]

    def get(self, request):
        modules = PermissionModule.objects.prefetch_related('permissions').order_by('sort_order', 'name')
        return Response({'modules': PermissionModuleSerializer(modules, many=True).data})


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Permissions'],
        summary='List permissions',
        parameters=[
            OpenApiParameter('module', OpenApiTypes.STR, description='Filter by module name'),
        ],
        responses={200: PermissionSerializer(many=True)},
    )
)
@requires_scopes('roles:view')
class PermissionListView(APIView):
    """GET /v1/permissions"""

    permission_classes = [HasStoreScopes]

    def get(self, request):
        permissions = Permission.objects.select_related('module').order_by('module__sort_order', 'code')

        module = request.query_params.get('module')
        if module:
            permissions = permissions.filter(module__name=module)

        return Response({
            'count': permissions.count(),
            'permissions': PermissionSerializer(permissions, many=True).data,
        })


# ===== STORE USERS =====

@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Users'],
        summary='Assign role to user',
        description='Replaces the user\'s role in this store.\n\n**Required scope:** `roles:assign`',
        request=AssignRoleSerializer,
        responses={200: StoreUserSerializer, 404: OpenApiTypes.OBJECT},
    )
)
@requires_scopes('roles:assign')
class AssignRoleView(APIView):
    """POST /v1/admin/assign-role"""

    permission_classes = [HasStoreScopes]

    def post(self, request):
        serializer = AssignRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        membership = _get_membership(request.store, serializer.validated_data['user_id'])
        role = _get_role(request.store, serializer.validated_data['role_id'])

        RBACService.set_user_role(membership, role, assigned_by=request.user, request=request)
        return Response(StoreUserSerializer(membership).data)


class StoreUserListView(APIView):
    """
    GET  /v1/admin/users  (users:view)
    POST /v1/admin/users  (users:create)
    """

    permission_classes = [HasStoreScopes]
    pagination_class = StandardResultsSetPagination

    @extend_schema(
        tags=['RBAC - Users'],
        summary='List store users',
        parameters=[
            OpenApiParameter('search', OpenApiTypes.STR, description='Match email or name'),
            OpenApiParameter('role', OpenApiTypes.STR, description='Filter by role name'),
        ],
        responses={200: StoreUserSerializer(many=True)},
    )
    @requires_scopes('users:view')
    def get(self, request):
        memberships = (
            StoreMembership.objects.filter(store=request.store)
            .select_related('user')
            .order_by('-joined_at')
        )

        search = request.query_params.get('search')
        if search:
            memberships = memberships.filter(
                Q(user__email__icontains=search)
                | Q(user__first_name__icontains=search)
                | Q(user__last_name__icontains=search)
            )

        role_name = request.query_params.get('role')
        if role_name:
            memberships = memberships.filter(membership_roles__role__name=role_name).distinct()

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(memberships, request)
        serializer = StoreUserSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    @extend_schema(
        tags=['RBAC - Users'],
        summary='Create store user',
        description='''
Create the account when the email is new, add it to the store and give it
a role (the Customer role when `role_id` is omitted).

Public registration is disabled, so this is how accounts are created.

**Required scope:** `users:create`
        ''',
        request=StoreUserCreateSerializer,
        responses={201: StoreUserSerializer, 409: OpenApiTypes.OBJECT},
    )
    @requires_scopes('users:create')
    def post(self, request):
        serializer = StoreUserCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        role = _get_role(request.store, data['role_id']) if data.get('role_id') else None
        membership = RBACService.create_store_user(
            request.store, data, role=role, created_by=request.user, request=request
        )
        return Response(StoreUserSerializer(membership).data, status=status.HTTP_201_CREATED)


class StoreUserDetailView(APIView):
    """
    GET    /v1/admin/users/{user_id}  (users:view)
    PATCH  /v1/admin/users/{user_id}  (users:edit)
    DELETE /v1/admin/users/{user_id}  (users:delete)
    """

    permission_classes = [HasStoreScopes]

    @extend_schema(tags=['RBAC - Users'], summary='Get store user', responses={200: StoreUserSerializer})
    @requires_scopes('users:view')
    def get(self, request, user_id):
        membership = _get_membership(request.store, user_id)
        return Response(StoreUserSerializer(membership).data)

    @extend_schema(
        tags=['RBAC - Users'],
        summary='Update store user',
        description='Update profile fields, password, active flag or role.\n\n**Required scope:** `users:edit`',
        request=StoreUserUpdateSerializer,
        responses={200: StoreUserSerializer},
    )
    @requires_scopes('users:edit')
    def patch(self, request, user_id):
        membership = _get_membership(request.store, user_id)
        serializer = StoreUserUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        role = _get_role(request.store, data['role_id']) if data.get('role_id') else None
        membership = RBACService.update_store_user(
            membership, data, role=role, updated_by=request.user, request=request
        )
        return Response(StoreUserSerializer(membership).data)

    put = patch

    @extend_schema(
        tags=['RBAC - Users'],
        summary='Remove user from store',
        description='Removes the membership; the account itself is kept. Users cannot remove themselves.\n\n**Required scope:** `users:delete`',
        responses={204: None, 400: OpenApiTypes.OBJECT},
    )
    @requires_scopes('users:delete')
    def delete(self, request, user_id):
        membership = _get_membership(request.store, user_id)
        RBACService.remove_store_user(membership, removed_by=request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


# ===== AUDIT LOGS =====

@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Audit'],
        summary='List audit logs',
        parameters=[
            OpenApiParameter('action', OpenApiTypes.STR),
            OpenApiParameter('target_type', OpenApiTypes.STR),
            OpenApiParameter('user_id', OpenApiTypes.UUID),
            OpenApiParameter('from_date', OpenApiTypes.DATETIME),
            OpenApiParameter('to_date', OpenApiTypes.DATETIME),
        ],
        responses={200: AuditLogSerializer(many=True)},
    )
)
@requires_scopes('users:manage')
class AuditLogListView(APIView):
    """
    GET /v1/audit-logs

    Required scope: users:manage
    """

    permission_classes = [HasStoreScopes]
    pagination_class = StandardResultsSetPagination

    def get(self, request):
        logs = AuditLog.objects.for_store(request.store).select_related('user')

        action = request.query_params.get('action')
        if action:
            logs = logs.filter(action=action)

        target_type = request.query_params.get('target_type')
        if target_type:
            logs = logs.filter(target_type=target_type)

        user_id = request.query_params.get('user_id')
        if user_id:
            logs = logs.filter(user_id=user_id)

        from_date = request.query_params.get('from_date')
        if from_date:
            logs = logs.filter(created_at__gte=from_date)

        to_date = request.query_params.get('to_date')
        if to_date:
            logs = logs.filter(created_at__lte=to_date)

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(logs, request)
        serializer = AuditLogSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)
