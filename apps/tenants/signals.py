"""
Signals for store lifecycle events.
"""
import logging
from django.db.models.signals import post_save
from django.dispatch import receiver

from apps.tenants.models import Store, SiteSettings

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Store)
def create_site_settings(sender, instance, created, **kwargs):
    """Every store starts with default branding named after the store."""
    if not created:
        return

    SiteSettings.objects.get_or_create(
        store=instance,
        defaults={
            'site_name': instance.name,
            'contact_email': instance.contact_email,
        }
    )

    logger.info(
        "Created SiteSettings for store",
        extra={'store_id': str(instance.id), 'store_slug': instance.slug}
    )
