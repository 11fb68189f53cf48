"""
Site settings management for a store.

Handles branding, theme colors, footer content and the SMTP relay used for
transactional email. SMTP fields need the ``settings:smtp`` scope on top of
``settings:edit``; every update is audit logged with secrets masked.
"""
import logging
from typing import Dict, Any, Iterable, Optional
from django.db import transaction

from apps.core.encryption import mask_secret
from apps.core.exceptions import PermissionDeniedError, ValidationError
from apps.tenants.models import Store, SiteSettings
from apps.tenants.themes import THEME_FIELD_MAP, get_theme

logger = logging.getLogger(__name__)

SMTP_FIELDS = (
    'smtp_enabled',
    'smtp_host',
    'smtp_port',
    'smtp_secure',
    'smtp_user',
    'smtp_password',
    'smtp_from_name',
    'smtp_from_email',
)

EDITABLE_FIELDS = (
    'site_name', 'header_logo', 'footer_logo', 'login_title', 'login_logo',
    'theme', 'primary_color', 'secondary_color', 'accent_color',
    'background_color', 'text_color', 'header_text_color', 'tab_text_color',
    'footer_description', 'footer_background_url', 'contact_email',
    'contact_phone', 'contact_address', 'support_email', 'business_hours',
    'copyright_text', 'additional_footer_text', 'quick_links', 'services_links',
    'social_facebook', 'social_twitter', 'social_instagram', 'social_linkedin',
) + SMTP_FIELDS


class SiteSettingsService:
    """Service for reading and updating a store's SiteSettings."""

    @staticmethod
    def get_settings(store: Store) -> SiteSettings:
        """
        Get or create SiteSettings for a store.

        New rows take the store name as site name and the store contact
        address as contact email.
        """
        site_settings, created = SiteSettings.objects.get_or_create(
            store=store,
            defaults={
                'site_name': store.name,
                'contact_email': store.contact_email,
            }
        )

        if created:
            logger.info(
                "Created SiteSettings for store",
                extra={'store_id': str(store.id), 'store_slug': store.slug}
            )

        return site_settings

    @classmethod
    @transaction.atomic
    def update_settings(
        cls,
        store: Store,
        data: Dict[str, Any],
        user=None,
        scopes: Optional[Iterable[str]] = None,
        request=None,
    ) -> SiteSettings:
        """
        Apply a partial update.

        A blank ``smtp_password`` keeps the stored one, so clients can resend
        the form without knowing the secret.

        Raises:
            PermissionDeniedError: SMTP fields sent without ``settings:smtp``
        """
        from apps.rbac.models import AuditLog

        scopes = set(scopes or ())
        site_settings = cls.get_settings(store)

        touched_smtp = sorted(field for field in SMTP_FIELDS if field in data)
        if touched_smtp and 'settings:smtp' not in scopes:
            raise PermissionDeniedError(
                'Updating SMTP settings requires the settings:smtp permission',
                details={'fields': touched_smtp}
            )

        diff = {}
        for field in EDITABLE_FIELDS:
            if field not in data:
                continue
            value = data[field]

            if field == 'smtp_password':
                if not value:
                    continue
                diff[field] = {'old': '***', 'new': mask_secret(value)}
                site_settings.smtp_password = value
                continue

            old_value = getattr(site_settings, field)
            if old_value != value:
                diff[field] = {'old': old_value, 'new': value}
                setattr(site_settings, field, value)

        if not diff:
            return site_settings

        site_settings.save()

        AuditLog.log_action(
            action='settings_updated',
            user=user,
            store=store,
            target_type='SiteSettings',
            target_id=site_settings.id,
            diff=diff,
            metadata={'fields': sorted(diff.keys())},
            request=request,
        )

        logger.info(
            f"Site settings updated: {', '.join(sorted(diff.keys()))}",
            extra={'store_id': str(store.id)}
        )

        return site_settings

    @classmethod
    @transaction.atomic
    def apply_theme(cls, store: Store, theme_key: str, user=None, request=None) -> SiteSettings:
        """
        Copy a preset's colors into the store settings.

        Raises:
            ValidationError: unknown theme key
        """
        from apps.rbac.models import AuditLog

        theme = get_theme(theme_key)
        if theme is None:
            raise ValidationError(
                f"Unknown theme '{theme_key}'",
                details={'theme': theme_key}
            )

        site_settings = cls.get_settings(store)
        previous_theme = site_settings.theme

        site_settings.theme = theme_key
        for color_key, field in THEME_FIELD_MAP.items():
            setattr(site_settings, field, theme[color_key])
        site_settings.save()

        AuditLog.log_action(
            action='theme_applied',
            user=user,
            store=store,
            target_type='SiteSettings',
            target_id=site_settings.id,
            diff={'theme': {'old': previous_theme, 'new': theme_key}},
            request=request,
        )

        return site_settings
