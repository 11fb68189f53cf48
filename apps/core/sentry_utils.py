"""
Sentry helpers for attaching store and user context.
"""
import sentry_sdk
from django.conf import settings


def set_store_context(store):
    """Tag Sentry events with the active store."""
    if not settings.SENTRY_DSN:
        return

    sentry_sdk.set_context("store", {
        "id": str(store.id),
        "name": store.name,
        "slug": store.slug,
        "status": store.status,
    })
    sentry_sdk.set_tag("store_id", str(store.id))
    sentry_sdk.set_tag("store_slug", store.slug)


def set_user_context(user, membership=None):
    """
    Set user context in Sentry. Only identifiers are sent, never PII.

    Args:
        user: User model instance
        membership: Optional StoreMembership for role names
    """
    if not settings.SENTRY_DSN:
        return

    user_data = {
        "id": str(user.id),
        "is_super_admin": user.is_superuser,
    }
    if membership:
        user_data["store_id"] = str(membership.store_id)
        user_data["roles"] = [role.name for role in membership.roles.all()]

    sentry_sdk.set_user(user_data)


def add_breadcrumb(category, message, level="info", data=None):
    """Add a breadcrumb (e.g. "order", "payment", "email")."""
    if not settings.SENTRY_DSN:
        return

    sentry_sdk.add_breadcrumb(
        category=category,
        message=message,
        level=level,
        data=data or {}
    )


def capture_exception(exception, **kwargs):
    """
    Capture an exception in Sentry with optional context.

    Args:
        exception: The exception to capture
        **kwargs: Context dictionaries keyed by context name
    """
    if not settings.SENTRY_DSN:
        return

    with sentry_sdk.new_scope() as scope:
        for key, value in kwargs.items():
            scope.set_context(key, value)
        sentry_sdk.capture_exception(exception)

