"""
Email authentication backend for the Django admin site.
"""
from django.contrib.auth.backends import BaseBackend

from apps.rbac.models import User


class EmailAuthBackend(BaseBackend):
    """
    Authenticate active users by email and password.

    The admin login form posts the email as ``username``.
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        email = username or kwargs.get('email')
        if not email or not password:
            return None

        user = User.objects.by_email(email)
        if user is None:
            # Hash once anyway so unknown emails take as long as known ones
            User().set_password(password)
            return None

        if user.is_active and user.check_password(password):
            return user
        return None

    def get_user(self, user_id):
        return User.objects.filter(pk=user_id, is_active=True).first()
