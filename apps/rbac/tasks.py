"""
Celery tasks for account emails.
"""
import logging
from celery import shared_task
from django.conf import settings

from apps.core.exceptions import EmailServiceError
from apps.core.services.email_service import EmailService
from apps.rbac.models import User
from apps.tenants.models import Store
from apps.tenants.services import SiteSettingsService

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def send_password_reset_email(self, user_id, store_id, token):
    """
    Send the password reset link through the store's SMTP relay.

    Skipped (not retried) when the store has no working SMTP settings.
    """
    try:
        user = User.objects.get(id=user_id)
        store = Store.objects.get(id=store_id)
    except (User.DoesNotExist, Store.DoesNotExist):
        logger.error(
            "Password reset email target not found",
            extra={'user_id': user_id, 'store_id': store_id}
        )
        return {'status': 'error', 'message': 'User or store not found'}

    if not EmailService.is_ready(SiteSettingsService.get_settings(store)):
        logger.warning(
            "Password reset email skipped: SMTP not configured",
            extra={'store_id': store_id}
        )
        return {'status': 'skipped'}

    reset_url = f"{settings.FRONTEND_URL}{settings.PASSWORD_RESET_PATH}?token={token}"

    try:
        EmailService.send_email(
            store,
            [user.email],
            subject='Reset your password',
            template_name='password_reset',
            context={
                'user_name': user.get_full_name() or user.email,
                'reset_url': reset_url,
            },
        )
    except EmailServiceError as exc:
        logger.warning(
            f"Password reset email failed, retrying: {exc.message}",
            extra={'store_id': store_id}
        )
        raise self.retry(exc=exc)

    return {'status': 'sent'}
