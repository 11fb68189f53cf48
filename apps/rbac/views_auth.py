"""
Authentication REST API views.

Implements endpoints for:
- Login and logout
- Password reset
- The current user's profile and permissions

Public registration is disabled; store admins create accounts through
/v1/admin/users.
"""
import json
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django_ratelimit.decorators import ratelimit
from django.utils.decorators import method_decorator
from drf_spectacular.utils import extend_schema, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.logging import SecurityLogger
from apps.rbac.models import AuditLog
from apps.rbac.services import AuthService, RBACService
from apps.rbac.serializers import (
    LoginSerializer, PasswordResetRequestSerializer, PasswordResetSerializer,
    CheckPermissionSerializer, UserSerializer, UserProfileSerializer,
    UserProfileUpdateSerializer,
)


def email_key(group, request):
    """Rate limit key: the email in a JSON or form body."""
    email = None
    if request.content_type == 'application/json':
        try:
            payload = json.loads(request.body or b'{}')
        except ValueError:
            payload = {}
        if isinstance(payload, dict):
            email = payload.get('email')
    else:
        email = request.POST.get('email')
    return str(email or '').strip().lower()


def rate_limited_response(request, limit, retry_after):
    """429 body shared by the rate limited auth endpoints."""
    email = request.data.get('email') if isinstance(request.data, dict) else None
    SecurityLogger.log_rate_limit_exceeded(
        endpoint=request.path,
        ip_address=request.META.get('REMOTE_ADDR', 'unknown'),
        user_email=email,
        limit=limit,
    )
    response = Response(
        {
            'error': {
                'code': 'RATE_LIMIT_EXCEEDED',
                'message': 'Rate limit exceeded. Please try again later.',
                'details': {'retry_after': retry_after},
            },
        },
        status=status.HTTP_429_TOO_MANY_REQUESTS
    )
    response['Retry-After'] = str(retry_after)
    return response


@extend_schema(
    tags=['Authentication'],
    summary='Login user',
    description='''
Authenticate user with email and password.

Returns a JWT for API authentication and the user. Send `X-Store-ID` as
well to get the caller's scopes in that store.

**Rate limits**:
- 5 requests/minute per IP address
- 10 requests/hour per email address
    ''',
    request=LoginSerializer,
    responses={
        200: OpenApiTypes.OBJECT,
        401: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Login Request',
            value={'email': 'admin@example.com', 'password': 'SecurePass123!'},
            request_only=True
        ),
        OpenApiExample(
            'Invalid Credentials',
            value={'error': {'code': 'INVALID_CREDENTIALS', 'message': 'Invalid email or password', 'details': {}}},
            response_only=True,
            status_codes=['401']
        ),
    ]
)
@method_decorator(ratelimit(key='ip', rate='5/m', method='POST', block=False), name='dispatch')
@method_decorator(ratelimit(key=email_key, rate='10/h', method='POST', block=False), name='dispatch')
class LoginView(APIView):
    """
    POST /v1/auth/login

    Rate limited to:
    - 5 requests per minute per IP address
    - 10 requests per hour per email address
    """
    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            return rate_limited_response(request, '5/min per IP or 10/hour per email', 60)

        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AuthService.login(
            email=serializer.validated_data['email'],
            password=serializer.validated_data['password'],
            request=request,
        )

        if not result:
            SecurityLogger.log_failed_login(
                email=serializer.validated_data['email'],
                ip_address=request.META.get('REMOTE_ADDR', 'unknown'),
                user_agent=request.META.get('HTTP_USER_AGENT', 'unknown'),
                reason='Invalid credentials'
            )
            return Response(
                {
                    'error': {
                        'code': 'INVALID_CREDENTIALS',
                        'message': 'Invalid email or password',
                        'details': {},
                    }
                },
                status=status.HTTP_401_UNAUTHORIZED
            )

        user = result['user']
        scopes = RBACService.resolve_user_scopes(user, request.store) if request.store else set()

        return Response(
            {
                'user': UserSerializer(user).data,
                'token': result['token'],
                'is_super_admin': user.is_superuser,
                'scopes': sorted(scopes),
                'message': 'Login successful'
            },
            status=status.HTTP_200_OK
        )


@extend_schema(
    tags=['Authentication'],
    summary='Logout user',
    description='''
JWTs are stateless: the client discards the token, which stays valid until
it expires. The logout is recorded in the audit log.
    ''',
    request=None,
    responses={200: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT},
)
class LogoutView(APIView):
    """POST /v1/auth/logout"""

    permission_classes = [IsAuthenticated]

    def post(self, request):
        AuditLog.log_action(
            action='user_logout',
            user=request.user,
            store=request.store,
            target_type='User',
            target_id=request.user.id,
            request=request,
        )
        return Response({'message': 'Logout successful'}, status=status.HTTP_200_OK)


@extend_schema(
    tags=['Authentication'],
    summary='Request password reset',
    description='''
Sends a reset link through the store SMTP relay. The response is the same
whether or not the email belongs to an account.

**Rate limit**: 3 requests/hour per IP
    ''',
    request=PasswordResetRequestSerializer,
    responses={200: OpenApiTypes.OBJECT, 429: OpenApiTypes.OBJECT},
)
@method_decorator(ratelimit(key='ip', rate='3/h', method='POST', block=False), name='dispatch')
class ForgotPasswordView(APIView):
    """POST /v1/auth/forgot-password"""

    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            return rate_limited_response(request, '3/hour per IP', 3600)

        serializer = PasswordResetRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        AuthService.request_password_reset(
            email=serializer.validated_data['email'],
            store=request.store,
        )

        return Response(
            {'message': 'If an account exists with this email, a password reset link has been sent.'},
            status=status.HTTP_200_OK
        )


@extend_schema(
    tags=['Authentication'],
    summary='Reset password',
    description='''
Reset the password with the emailed token (valid for 24 hours, single use).

**Rate limit**: 5 requests/hour per IP
    ''',
    request=PasswordResetSerializer,
    responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT},
)
@method_decorator(ratelimit(key='ip', rate='5/h', method='POST', block=False), name='dispatch')
class ResetPasswordView(APIView):
    """POST /v1/auth/reset-password"""

    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            return rate_limited_response(request, '5/hour per IP', 3600)

        serializer = PasswordResetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        success = AuthService.reset_password(
            token=serializer.validated_data['token'],
            new_password=serializer.validated_data['new_password']
        )

        if not success:
            return Response(
                {
                    'error': {
                        'code': 'INVALID_TOKEN',
                        'message': 'Invalid or expired reset token',
                        'details': {},
                    }
                },
                status=status.HTTP_400_BAD_REQUEST
            )

        return Response(
            {'message': 'Password reset successfully. You can now log in with your new password.'},
            status=status.HTTP_200_OK
        )


class UserProfileView(APIView):
    """
    GET   /v1/auth/me
    PATCH /v1/auth/me

    Profile of the authenticated user, with roles and scopes in the
    store given by X-Store-ID.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=['Authentication'],
        summary='Get current user profile',
        responses={200: UserProfileSerializer, 401: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        serializer = UserProfileSerializer(request.user, context={'request': request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=['Authentication'],
        summary='Update current user profile',
        description='Updates `first_name`, `last_name`, `email` and `phone`. The email must stay unique.',
        request=UserProfileUpdateSerializer,
        responses={200: UserProfileSerializer, 400: OpenApiTypes.OBJECT},
    )
    def patch(self, request):
        user = request.user
        serializer = UserProfileUpdateSerializer(user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        diff = {
            field: {'old': getattr(user, field), 'new': value}
            for field, value in serializer.validated_data.items()
            if getattr(user, field) != value
        }
        serializer.save()

        if diff:
            AuditLog.log_action(
                action='profile_updated',
                user=user,
                store=request.store,
                target_type='User',
                target_id=user.id,
                diff=diff,
                request=request,
            )

        return Response(
            UserProfileSerializer(user, context={'request': request}).data,
            status=status.HTTP_200_OK
        )

    put = patch


@extend_schema(
    tags=['Authentication'],
    summary='Get current user permissions',
    description='Permission codes of the caller in the store given by X-Store-ID.',
    responses={200: OpenApiTypes.OBJECT},
)
class MyPermissionsView(APIView):
    """GET /v1/auth/me/permissions"""

    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({
            'is_super_admin': request.user.is_superuser,
            'permissions': sorted(request.scopes),
        })


@extend_schema(
    tags=['Authentication'],
    summary='Check a permission',
    request=CheckPermissionSerializer,
    responses={200: OpenApiTypes.OBJECT},
)
class CheckPermissionView(APIView):
    """POST /v1/auth/me/check-permission"""

    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CheckPermissionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        code = serializer.validated_data['permission']

        has_permission = request.user.is_superuser or code in request.scopes
        return Response({'permission': code, 'has_permission': has_permission})
