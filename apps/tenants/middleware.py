"""
Store context middleware for multi-store isolation.

Resolves the store from the ``X-Store-ID`` header, authenticates the
optional Bearer JWT and attaches the caller's membership and permission
scopes to the request.
"""
import logging
import re
import uuid
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin
from apps.core.logging import set_request_context, clear_request_context
from .models import Store

logger = logging.getLogger(__name__)


class RequestIDMiddleware(MiddlewareMixin):
    """
    Inject unique request ID for tracing.

    Echoes ``X-Request-ID`` when the client sends one, generates a UUID
    otherwise, and returns it in the response headers.
    """

    def process_request(self, request):
        request.request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())
        set_request_context(request_id=request.request_id)
        return None

    def process_response(self, request, response):
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
        clear_request_context()
        return response


class StoreContextMiddleware(MiddlewareMixin):
    """
    Extract and validate store context from request headers.

    This middleware:
    1. Resolves X-Store-ID (UUID or slug) to an active Store
    2. Authenticates ``Authorization: Bearer <jwt>`` when present
    3. Resolves membership and scopes via RBACService
       (super admins receive every permission code)
    4. Attaches request.store, request.membership, request.scopes

    Public endpoints (health, schema, admin, payment webhooks, media) bypass
    it. Authentication endpoints accept requests without a store.
    """

    PUBLIC_PATHS = [
        '/v1/health',
        '/schema',
        '/admin/',
        '/media/',
    ]
    PUBLIC_PATTERNS = [
        re.compile(r'^/v1/payments/[\w-]+/webhook/?$'),
    ]
    STORE_OPTIONAL_PATHS = [
        '/v1/auth/',
    ]

    def process_request(self, request):
        request_id = getattr(request, 'request_id', None) or str(uuid.uuid4())
        request.request_id = request_id

        request.store = None
        request.membership = None
        request.scopes = set()

        if self._is_public_path(request.path):
            return None

        # Authenticate before resolving the store so that /v1/auth/ works
        # without X-Store-ID
        error = self._authenticate(request)
        if error is not None:
            return error

        store_identifier = request.headers.get('X-Store-ID')
        if not store_identifier:
            if self._is_store_optional(request.path):
                return None
            return self._error_response(
                'MISSING_STORE',
                'X-Store-ID header is required',
                status=401
            )

        store = Store.objects.by_identifier(store_identifier)
        if store is None:
            logger.warning(
                f"Invalid store identifier: {store_identifier}",
                extra={'request_id': request_id}
            )
            return self._error_response(
                'INVALID_STORE',
                'Store not found',
                status=404
            )

        if not store.is_active():
            logger.info(
                f"Inactive store attempted access: {store.slug}",
                extra={'request_id': request_id, 'store_id': str(store.id)}
            )
            return self._error_response(
                'STORE_INACTIVE',
                'This store is not currently available',
                status=403,
                details={'status': store.status}
            )

        request.store = store
        set_request_context(store_id=str(store.id))

        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated:
            from apps.rbac.models import StoreMembership
            from apps.rbac.services import RBACService
            from apps.core.sentry_utils import set_store_context, set_user_context

            membership = StoreMembership.objects.get_membership(store, user)

            if user.is_superuser:
                request.membership = membership
                request.scopes = RBACService.all_permission_codes()
            elif membership is None:
                if self._is_store_optional(request.path):
                    return None
                logger.warning(
                    f"User {user.email} attempted access to store {store.slug} without membership",
                    extra={'request_id': request_id, 'store_id': str(store.id)}
                )
                return self._error_response(
                    'FORBIDDEN',
                    'You do not have access to this store',
                    status=403
                )
            else:
                request.membership = membership
                request.scopes = RBACService.resolve_scopes(membership)

            set_store_context(store)
            set_user_context(user, request.membership)

            logger.debug(
                f"RBAC context set: {user.email} @ {store.slug} with {len(request.scopes)} scopes",
                extra={'request_id': request_id, 'store_id': str(store.id)}
            )

        return None

    def _authenticate(self, request):
        """Replace request.user with the JWT user; return an error response on a bad token."""
        auth_header = request.headers.get('Authorization', '')
        if not auth_header.startswith('Bearer '):
            return None

        from apps.rbac.services import AuthService
        from apps.core.logging import SecurityLogger

        token = auth_header[len('Bearer '):].strip()
        user = AuthService.get_user_from_jwt(token) if token else None
        if user is None:
            SecurityLogger.log_invalid_token(
                ip_address=request.META.get('REMOTE_ADDR', 'unknown'),
                path=request.path,
                reason='invalid, expired or revoked token'
            )
            return self._error_response(
                'INVALID_TOKEN',
                'Invalid or expired token',
                status=401
            )

        request.user = user
        return None

    def _is_public_path(self, path):
        """Check if path is public and doesn't require store context."""
        if any(path.startswith(public_path) for public_path in self.PUBLIC_PATHS):
            return True
        return any(pattern.match(path) for pattern in self.PUBLIC_PATTERNS)

    def _is_store_optional(self, path):
        return any(path.startswith(prefix) for prefix in self.STORE_OPTIONAL_PATHS)

    def _error_response(self, code, message, status=400, details=None):
        """Generate standardized error response."""
        error_data = {
            'error': {
                'code': code,
                'message': message,
                'details': details or {},
            }
        }

        return JsonResponse(error_data, status=status)
