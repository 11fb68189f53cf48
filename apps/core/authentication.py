"""
Custom DRF authentication classes.
"""
from rest_framework.authentication import BaseAuthentication


class MiddlewareAuthentication(BaseAuthentication):
    """
    DRF authentication class that uses the user set by StoreContextMiddleware.

    The middleware decodes the Bearer JWT and sets request.user; this class
    hands that user to DRF.
    """

    def authenticate(self, request):
        django_request = request._request

        user = getattr(django_request, 'user', None)
        if user is not None and user.is_authenticated:
            return (user, None)

        return None

    def authenticate_header(self, request):
        # Makes DRF answer 401 (not 403) for anonymous callers
        return 'Bearer realm="api"'
