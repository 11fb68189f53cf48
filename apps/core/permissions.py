"""
DRF permission classes and decorators for RBAC scope enforcement.

This module provides:
- HasStoreScopes: DRF permission class that enforces scope requirements
- @requires_scopes: Decorator to declare required scopes on views
"""
import logging
from functools import wraps
from rest_framework.permissions import BasePermission

logger = logging.getLogger(__name__)


def _as_scope_set(scopes):
    if not scopes:
        return set()
    if isinstance(scopes, str):
        return {scopes}
    return set(scopes)


class HasStoreScopes(BasePermission):
    """
    Enforce scope requirements on API endpoints.

    Views declare ``required_scopes`` (all must be present) and/or
    ``any_scopes`` (at least one must be present). Scopes come from
    ``request.scopes``, populated by StoreContextMiddleware; super admins
    receive every permission code there, so no bypass is needed here.

    Usage:
        class MyView(APIView):
            permission_classes = [HasStoreScopes]
            required_scopes = {'products:create'}

    Views with per-method requirements override ``check_permissions`` and
    set ``self.required_scopes`` before calling super().
    """

    def has_permission(self, request, view):
        required_scopes = _as_scope_set(getattr(view, 'required_scopes', None))
        any_scopes = _as_scope_set(getattr(view, 'any_scopes', None))

        if not required_scopes and not any_scopes:
            return True

        user_scopes = getattr(request, 'scopes', None) or set()
        missing_scopes = required_scopes - user_scopes
        any_ok = not any_scopes or bool(any_scopes & user_scopes)

        if missing_scopes or not any_ok:
            user_email = getattr(request.user, 'email', 'anonymous')
            store = getattr(request, 'store', None)
            store_slug = getattr(store, 'slug', 'unknown')

            logger.warning(
                f"Permission denied: User {user_email} @ {store_slug} missing scopes",
                extra={
                    'store_slug': store_slug,
                    'required_scopes': sorted(required_scopes),
                    'any_scopes': sorted(any_scopes),
                    'missing_scopes': sorted(missing_scopes),
                    'view': view.__class__.__name__,
                    'method': request.method,
                    'path': request.path,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            return False

        return True

    def has_object_permission(self, request, view, obj):
        """Deny access to objects that belong to another store."""
        request_store = getattr(request, 'store', None)

        if not hasattr(obj, 'store_id'):
            return True

        if request_store is None or obj.store_id != request_store.id:
            logger.warning(
                "Object permission denied: object belongs to a different store",
                extra={
                    'request_store_id': str(request_store.id) if request_store else None,
                    'object_store_id': str(obj.store_id),
                    'object_type': obj.__class__.__name__,
                    'view': view.__class__.__name__,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            return False

        return True


def requires_scopes(*scopes):
    """
    Declare required scopes on a view class or a single handler method.

        @requires_scopes('roles:view')
        class RoleListView(APIView):
            permission_classes = [HasStoreScopes]

    On a method, the scopes are attached to the view instance before the
    handler runs, and checked there (DRF has already run has_permission).
    """
    def decorator(view_or_method):
        if isinstance(view_or_method, type):
            view_or_method.required_scopes = set(scopes)
            return view_or_method

        @wraps(view_or_method)
        def wrapped(self, request, *args, **kwargs):
            self.required_scopes = set(scopes)
            self.check_permissions(request)
            return view_or_method(self, request, *args, **kwargs)

        wrapped.required_scopes = set(scopes)
        return wrapped

    return decorator
