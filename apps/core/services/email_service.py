"""
Store email service over SMTP.

Each store configures its own relay in SiteSettings (Microsoft 365, Gmail or
any custom host). Messages are rendered from ``emails/<template>.txt`` and
``emails/<template>.html`` and sent through Django's mail framework, so the
backend class still comes from settings.EMAIL_BACKEND.
"""
import logging
from typing import Any, Dict, List, Optional
from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection
from django.template.loader import render_to_string
from django.template import TemplateDoesNotExist
from django.utils.html import strip_tags

from apps.core.exceptions import EmailServiceError

logger = logging.getLogger(__name__)


class EmailService:
    """
    Send transactional email using a store's SMTP settings.

    Connection rules:
    - port defaults to 587
    - implicit SSL only when the port is 465 and ``smtp_secure`` is set,
      STARTTLS otherwise
    - Microsoft 365 / Outlook / Hotmail and Gmail hosts always use STARTTLS
    """

    DEFAULT_PORT = 587
    STARTTLS_ONLY_HOSTS = ('office365', 'outlook', 'hotmail', 'gmail', 'googlemail')

    @staticmethod
    def is_ready(site_settings) -> bool:
        """True when SMTP is enabled and host, user and password are set."""
        return bool(
            site_settings is not None
            and site_settings.smtp_enabled
            and site_settings.smtp_host
            and site_settings.smtp_user
            and site_settings.smtp_password
        )

    @classmethod
    def connection_options(cls, site_settings) -> Dict[str, Any]:
        port = site_settings.smtp_port or cls.DEFAULT_PORT
        host = site_settings.smtp_host.strip()

        use_ssl = port == 465 and bool(site_settings.smtp_secure)
        if any(marker in host.lower() for marker in cls.STARTTLS_ONLY_HOSTS):
            use_ssl = False

        return {
            'host': host,
            'port': port,
            'username': site_settings.smtp_user,
            'password': site_settings.smtp_password,
            'use_ssl': use_ssl,
            'use_tls': not use_ssl,
            'timeout': getattr(settings, 'EMAIL_TIMEOUT', 30),
        }

    @classmethod
    def build_connection(cls, site_settings, fail_silently=False):
        """Open-on-demand Django email backend bound to the store's relay."""
        return get_connection(fail_silently=fail_silently, **cls.connection_options(site_settings))

    @staticmethod
    def from_address(site_settings) -> str:
        """``"<from name>" <from email>`` with site name / SMTP user fallbacks."""
        name = site_settings.smtp_from_name or site_settings.site_name
        email = site_settings.smtp_from_email or site_settings.smtp_user
        return f'"{name}" <{email}>'

    @classmethod
    def send_email(
        cls,
        store,
        to_emails: List[str],
        subject: str,
        template_name: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Render and send an email for ``store``.

        Returns:
            True when the backend accepted the message.

        Raises:
            EmailServiceError: SMTP not configured, or the relay rejected the message
        """
        from apps.tenants.services import SiteSettingsService

        site_settings = SiteSettingsService.get_settings(store)
        if not cls.is_ready(site_settings):
            raise EmailServiceError(
                'SMTP is not configured for this store',
                details={'store_id': str(store.id)}
            )

        recipients = [email for email in to_emails if email]
        if not recipients:
            raise EmailServiceError('No recipients given')

        html_content, text_content = cls._render_template(
            template_name, {**cls._base_context(site_settings), **(context or {})}
        )

        message = EmailMultiAlternatives(
            subject=subject,
            body=text_content,
            from_email=cls.from_address(site_settings),
            to=recipients,
            connection=cls.build_connection(site_settings),
        )
        message.attach_alternative(html_content, 'text/html')

        try:
            sent = message.send()
        except Exception as e:
            logger.error(
                f"SMTP send failed: {e}",
                extra={
                    'store_id': str(store.id),
                    'template': template_name,
                    'smtp_host': site_settings.smtp_host,
                }
            )
            raise EmailServiceError(f'Email sending failed: {e}')

        logger.info(
            f"Email '{template_name}' sent to {len(recipients)} recipient(s)",
            extra={'store_id': str(store.id), 'template': template_name}
        )
        return sent > 0

    @classmethod
    def send_test_email(cls, store, to_email: str) -> bool:
        from apps.tenants.services import SiteSettingsService

        site_settings = SiteSettingsService.get_settings(store)
        return cls.send_email(
            store,
            [to_email],
            subject=f"Test Email from {site_settings.site_name}",
            template_name='test_email',
            context={'smtp_host': site_settings.smtp_host},
        )

    @classmethod
    def diagnose(cls, store) -> Dict[str, Any]:
        """Describe the store's SMTP configuration without sending anything."""
        from apps.tenants.services import SiteSettingsService

        site_settings = SiteSettingsService.get_settings(store)
        missing = [
            field for field in ('smtp_host', 'smtp_user', 'smtp_password')
            if not getattr(site_settings, field)
        ]
        report = {
            'enabled': site_settings.smtp_enabled,
            'ready': cls.is_ready(site_settings),
            'missing_fields': missing,
            'host': site_settings.smtp_host,
            'port': site_settings.smtp_port or cls.DEFAULT_PORT,
        }
        if site_settings.smtp_host:
            options = cls.connection_options(site_settings)
            report['security'] = 'ssl' if options['use_ssl'] else 'starttls'
            report['from_address'] = cls.from_address(site_settings)
        return report

    @staticmethod
    def _base_context(site_settings) -> Dict[str, Any]:
        return {
            'site_name': site_settings.site_name,
            'primary_color': site_settings.primary_color,
            'support_email': site_settings.support_email or site_settings.contact_email,
            'frontend_url': getattr(settings, 'FRONTEND_URL', ''),
        }

    @staticmethod
    def _render_template(template_name: str, context: Dict[str, Any]) -> tuple:
        """Return (html, text); text falls back to the stripped HTML."""
        try:
            html_content = render_to_string(f'emails/{template_name}.html', context)
        except TemplateDoesNotExist:
            raise EmailServiceError(f"Unknown email template '{template_name}'")

        try:
            text_content = render_to_string(f'emails/{template_name}.txt', context)
        except TemplateDoesNotExist:
            text_content = strip_tags(html_content)

        return html_content, text_content
