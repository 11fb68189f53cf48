from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging
import sys

logger = logging.getLogger(__name__)

KEY_HINT = "Generate a strong key with: python -c \"import secrets; print(secrets.token_urlsafe(50))\""


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Validate security configuration when the app server starts.

        Management commands other than runserver skip validation so that
        migrations and seeding work with a partial environment.
        """
        serving = (
            'gunicorn' in sys.argv[0]
            or 'uvicorn' in sys.argv[0]
            or (len(sys.argv) > 1 and sys.argv[1] == 'runserver')
        )
        if not serving:
            return

        self.validate_jwt_configuration()
        self.validate_encryption_configuration()
        self.validate_security_settings()

        logger.info("Startup security validations passed")

    @staticmethod
    def validate_jwt_configuration():
        """Validate JWT secret key strength and separation from SECRET_KEY."""
        jwt_secret = getattr(settings, 'JWT_SECRET_KEY', None)

        if not jwt_secret:
            raise ImproperlyConfigured(f"JWT_SECRET_KEY must be set. {KEY_HINT}")

        if len(jwt_secret) < 32:
            raise ImproperlyConfigured(
                f"JWT_SECRET_KEY must be at least 32 characters long. "
                f"Current length: {len(jwt_secret)}. {KEY_HINT}"
            )

        if jwt_secret == settings.SECRET_KEY:
            raise ImproperlyConfigured(f"JWT_SECRET_KEY must be different from SECRET_KEY. {KEY_HINT}")

        unique_chars = len(set(jwt_secret))
        if unique_chars < 16:
            raise ImproperlyConfigured(
                f"JWT_SECRET_KEY has insufficient entropy. "
                f"Found only {unique_chars} unique characters, need at least 16. {KEY_HINT}"
            )

        pattern = jwt_secret[:2]
        if jwt_secret == (pattern * len(jwt_secret))[:len(jwt_secret)]:
            raise ImproperlyConfigured(f"JWT_SECRET_KEY is a simple repeating pattern. {KEY_HINT}")

        if not settings.DEBUG and jwt_secret == getattr(settings, 'DEV_JWT_SECRET_KEY', None):
            raise ImproperlyConfigured(f"JWT_SECRET_KEY is the development default. {KEY_HINT}")

    @staticmethod
    def validate_encryption_configuration():
        """SMTP passwords are stored encrypted; warn when no key is set."""
        from apps.core.encryption import validate_encryption_key

        encryption_key = getattr(settings, 'ENCRYPTION_KEY', None)
        if not encryption_key:
            logger.warning(
                "ENCRYPTION_KEY is not set. Store SMTP passwords cannot be saved until it is configured."
            )
            return

        try:
            validate_encryption_key(encryption_key)
        except ValueError as e:
            raise ImproperlyConfigured(f"ENCRYPTION_KEY is invalid: {e}")

    @staticmethod
    def validate_security_settings():
        secret_key = settings.SECRET_KEY

        if not secret_key:
            raise ImproperlyConfigured(f"SECRET_KEY must be set. {KEY_HINT}")

        if len(secret_key) < 50:
            logger.warning(
                f"SECRET_KEY is shorter than recommended (current: {len(secret_key)}, recommended: 50+)"
            )

        if settings.DEBUG:
            return

        secret_lower = secret_key.lower()
        for pattern in ('django-insecure', 'change-me', 'your-secret-key', '12345'):
            if pattern in secret_lower:
                raise ImproperlyConfigured(
                    f"SECRET_KEY appears to be a default or weak value (contains '{pattern}'). {KEY_HINT}"
                )

        for flag in ('SECURE_SSL_REDIRECT', 'SESSION_COOKIE_SECURE', 'CSRF_COOKIE_SECURE'):
            if not getattr(settings, flag, False):
                logger.warning(f"{flag} is not enabled in production")
