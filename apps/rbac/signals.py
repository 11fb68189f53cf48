"""
RBAC signals: default roles are seeded for every new store.
"""
import logging
from django.db.models.signals import post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_save, sender='tenants.Store')
def seed_roles_on_store_creation(sender, instance, created, **kwargs):
    """Seed Super Admin, Manager and Customer roles for a new store."""
    if not created:
        return

    from apps.rbac.services import RBACService

    counts = RBACService.seed_store_roles(instance)
    logger.info(
        f"Seeded default roles for store {instance.slug}",
        extra={'store_id': str(instance.id), **counts}
    )
