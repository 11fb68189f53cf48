"""
Celery tasks for order notification emails.

Queued by OrderNotificationService once the surrounding transaction commits.
"""
import logging
from celery import shared_task
from django.conf import settings

from apps.core.exceptions import EmailServiceError
from apps.core.services.email_service import EmailService
from apps.tenants.services import SiteSettingsService

logger = logging.getLogger(__name__)

CUSTOMER_SUBJECTS = {
    'order_submitted': 'Order Confirmation #{order_number} - {site_name}',
    'order_approved': 'Order Approved #{order_number} - Ready for Payment',
    'order_rejected': 'Order Update #{order_number} - {site_name}',
    'payment_confirmation': 'Payment Confirmed #{order_number} - {site_name}',
}

ADMIN_SUBJECT = 'New Order Approval Required - #{order_number}'


def order_email_context(order, site_settings):
    """Template context shared by every order email."""
    user = order.user
    return {
        'order_number': order.order_number,
        'customer_name': user.get_full_name() or user.email,
        'customer_email': user.email,
        'total': f"{order.total:.2f}",
        'currency': order.store.currency,
        'status_label': order.get_status_display(),
        'payment_method': order.payment_method.replace('_', ' ').title() if order.payment_method else 'Cash On Delivery',
        'payment_reference': order.payment_reference,
        'admin_remarks': order.admin_remarks,
        'item_count': order.item_count,
        'order_url': f"{settings.FRONTEND_URL}/orders/{order.id}",
        'site_name': site_settings.site_name,
    }


@shared_task(bind=True, max_retries=3)
def send_order_email(self, order_id: str, template_name: str, reason: str = None):
    """
    Send a customer email about an order.

    Args:
        order_id: UUID of the order
        template_name: order_submitted, order_approved, order_rejected or
            payment_confirmation
        reason: rejection reason (order_rejected only)
    """
    from apps.orders.models import Order

    try:
        order = Order.objects.select_related('store', 'user').get(id=order_id)
    except Order.DoesNotExist:
        logger.error(f"Order {order_id} not found")
        return {'status': 'error', 'reason': 'order not found'}

    site_settings = SiteSettingsService.get_settings(order.store)
    if not EmailService.is_ready(site_settings):
        logger.info(
            f"Email service not ready, skipping {template_name} for order {order.order_number}",
            extra={'store_id': str(order.store_id), 'order_id': order_id}
        )
        return {'status': 'skipped'}

    context = order_email_context(order, site_settings)
    if reason:
        context['reason'] = reason

    subject = CUSTOMER_SUBJECTS[template_name].format(**context)

    try:
        EmailService.send_email(order.store, [order.user.email], subject, template_name, context)
    except EmailServiceError as e:
        logger.error(
            f"Failed to send {template_name} for order {order_id}: {e.message}",
            extra={'store_id': str(order.store_id), 'order_id': order_id}
        )
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries))

    logger.info(
        f"Sent {template_name} for order {order.order_number}",
        extra={'store_id': str(order.store_id), 'order_id': order_id}
    )
    return {'status': 'sent', 'order_id': order_id}


@shared_task(bind=True, max_retries=3)
def send_admin_order_notification(self, order_id: str):
    """
    Tell store admins that a new order is waiting for approval.

    Admins are active members holding orders:approve, plus super admins.
    """
    from apps.orders.models import Order
    from apps.rbac.services import RBACService

    try:
        order = Order.objects.select_related('store', 'user').get(id=order_id)
    except Order.DoesNotExist:
        logger.error(f"Order {order_id} not found")
        return {'status': 'error', 'reason': 'order not found'}

    site_settings = SiteSettingsService.get_settings(order.store)
    if not EmailService.is_ready(site_settings):
        logger.info(
            "Email service not ready, skipping admin notification",
            extra={'store_id': str(order.store_id), 'order_id': order_id}
        )
        return {'status': 'skipped'}

    admin_emails = sorted({
        user.email for user in RBACService.users_with_permission(order.store, 'orders:approve')
        if user.email
    })
    if not admin_emails:
        logger.info(
            "No admin users with email addresses found",
            extra={'store_id': str(order.store_id)}
        )
        return {'status': 'skipped', 'reason': 'no admins'}

    context = order_email_context(order, site_settings)
    context['admin_url'] = f"{settings.FRONTEND_URL}/admin/orders"
    subject = ADMIN_SUBJECT.format(**context)

    try:
        for email in admin_emails:
            EmailService.send_email(order.store, [email], subject, 'admin_order_notification', context)
    except EmailServiceError as e:
        logger.error(
            f"Failed to send admin notification for order {order_id}: {e.message}",
            extra={'store_id': str(order.store_id), 'order_id': order_id}
        )
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries))

    logger.info(
        f"Admin order notification sent to {len(admin_emails)} admin(s)",
        extra={'store_id': str(order.store_id), 'order_id': order_id}
    )
    return {'status': 'sent', 'recipients': len(admin_emails)}
