"""
URL routing for authentication endpoints.
"""
from django.urls import path
from apps.rbac.views_auth import (
    LoginView, LogoutView, ForgotPasswordView, ResetPasswordView,
    UserProfileView, MyPermissionsView, CheckPermissionView,
)

app_name = 'auth'

urlpatterns = [
    path('login', LoginView.as_view(), name='login'),
    path('logout', LogoutView.as_view(), name='logout'),

    # Password reset
    path('forgot-password', ForgotPasswordView.as_view(), name='forgot-password'),
    path('reset-password', ResetPasswordView.as_view(), name='reset-password'),

    # Current user
    path('me', UserProfileView.as_view(), name='profile'),
    path('me/permissions', MyPermissionsView.as_view(), name='my-permissions'),
    path('me/check-permission', CheckPermissionView.as_view(), name='check-permission'),
]
