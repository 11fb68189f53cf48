"""
Storefront exception hierarchy and DRF exception handlers.
"""
import logging
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from django_ratelimit.exceptions import Ratelimited
from django.http import JsonResponse

logger = logging.getLogger(__name__)


class StorefrontException(Exception):
    """Base exception for storefront errors, mapped to HTTP by the handler."""
    status_code = 400
    default_code = 'ERROR'

    def __init__(self, message, details=None, code=None):
        self.message = message
        self.details = details or {}
        self.code = code or self.default_code
        super().__init__(self.message)


class StoreNotFound(StorefrontException):
    """Raised when the store cannot be resolved."""
    status_code = 404
    default_code = 'INVALID_STORE'


class AuthenticationError(StorefrontException):
    """Raised when authentication fails."""
    status_code = 401
    default_code = 'AUTHENTICATION_FAILED'


class PermissionDeniedError(StorefrontException):
    """Raised when user lacks required permissions."""
    status_code = 403
    default_code = 'FORBIDDEN'


class ValidationError(StorefrontException):
    """Raised when input validation fails."""
    status_code = 400
    default_code = 'VALIDATION_ERROR'


class NotFoundError(StorefrontException):
    status_code = 404
    default_code = 'NOT_FOUND'


class ConflictError(StorefrontException):
    """Raised when the request conflicts with the current resource state."""
    status_code = 409
    default_code = 'CONFLICT'


class InvalidStateTransition(ConflictError):
    """Raised when an order cannot move to the requested status."""
    default_code = 'INVALID_STATE_TRANSITION'


class PaymentNotAllowed(ConflictError):
    """Raised when payment is attempted before admin approval."""
    default_code = 'PAYMENT_NOT_ALLOWED'


class PaymentProviderNotConfigured(StorefrontException):
    status_code = 400
    default_code = 'PAYMENT_PROVIDER_NOT_CONFIGURED'


class ImportFormatError(ValidationError):
    """Raised when an uploaded workbook or backup cannot be read."""
    default_code = 'IMPORT_FORMAT_ERROR'


class EmailServiceError(StorefrontException):
    """Raised when email cannot be sent (not configured, SMTP failure)."""
    status_code = 503
    default_code = 'EMAIL_UNAVAILABLE'


def _retry_after_for(path):
    if '/auth/forgot-password' in path or '/auth/reset-password' in path:
        return 3600
    return 60


def _log_rate_limit(request, ip_address, email, retry_after):
    from apps.core.logging import SecurityLogger

    store = getattr(request, 'store', None)
    SecurityLogger.log_rate_limit_exceeded(
        endpoint=request.path,
        ip_address=ip_address,
        user_email=email,
        store_id=str(store.id) if store else None,
        limit='Rate limit exceeded'
    )
    logger.warning(
        "Rate limit exceeded",
        extra={
            'request_id': getattr(request, 'request_id', None),
            'path': request.path,
            'method': request.method,
            'ip': ip_address,
            'retry_after': retry_after,
        }
    )


def ratelimit_view(request, exception):
    """
    View used by django-ratelimit (RATELIMIT_VIEW) when a decorated view
    blocks. Returns 429 with a Retry-After header.
    """
    ip_address = request.META.get('REMOTE_ADDR', 'unknown')
    email = request.POST.get('email') if request.method == 'POST' else None
    retry_after = _retry_after_for(request.path)

    _log_rate_limit(request, ip_address, email, retry_after)

    response = JsonResponse(
        {
            'error': {
                'code': 'RATE_LIMIT_EXCEEDED',
                'message': 'Rate limit exceeded. Please try again later.',
                'details': {'retry_after': retry_after},
            },
        },
        status=429
    )
    response['Retry-After'] = str(retry_after)
    return response


def custom_exception_handler(exc, context):
    """
    Exception handler that logs errors and returns a consistent body:

        {"error": {"code", "message", "details"}, "request_id"}

    StorefrontException subclasses carry their own status code. DRF errors
    keep DRF's body with ``request_id`` added. Anything else becomes a 500.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, Ratelimited):
        ip_address = request.META.get('REMOTE_ADDR', 'unknown') if request else 'unknown'
        email = None
        if request is not None and isinstance(getattr(request, 'data', None), dict):
            email = request.data.get('email')
        retry_after = _retry_after_for(request.path if request else '')
        if request is not None:
            _log_rate_limit(request, ip_address, email, retry_after)

        response = Response(
            {
                'error': {
                    'code': 'RATE_LIMIT_EXCEEDED',
                    'message': 'Rate limit exceeded. Please try again later.',
                    'details': {'retry_after': retry_after},
                },
                'request_id': request_id,
            },
            status=status.HTTP_429_TOO_MANY_REQUESTS
        )
        response['Retry-After'] = str(retry_after)
        return response

    if isinstance(exc, StorefrontException):
        log_method = logger.warning if exc.status_code < 500 else logger.error
        log_method(
            f"{exc.__class__.__name__}: {exc.message}",
            extra={
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
                'error_code': exc.code,
            }
        )
        return Response(
            {
                'error': {
                    'code': exc.code,
                    'message': exc.message,
                    'details': exc.details,
                },
                'request_id': request_id,
            },
            status=exc.status_code
        )

    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"Unhandled API exception: {exc.__class__.__name__}",
            extra={
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            },
            exc_info=exc
        )
        return Response(
            {
                'error': {
                    'code': 'INTERNAL_ERROR',
                    'message': 'An unexpected error occurred',
                    'details': {},
                },
                'request_id': request_id,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    logger.info(
        f"API exception: {exc.__class__.__name__}",
        extra={
            'request_id': request_id,
            'path': request.path if request else None,
            'status_code': response.status_code,
        }
    )

    if request_id and isinstance(response.data, dict):
        response.data['request_id'] = request_id

    return response
