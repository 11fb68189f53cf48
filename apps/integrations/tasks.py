"""
Celery tasks for payment sessions.
"""
import logging
from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3)
def expire_pending_transactions(self):
    """
    Mark Benefit Pay and Credimax sessions past their expiry as expired.

    Scheduled every 5 minutes by celery beat.
    """
    from apps.integrations.services import GatewayStubService

    try:
        expired = GatewayStubService.expire_stale()
    except Exception as e:
        logger.error(
            "Failed to expire pending payment sessions",
            extra={'task_id': self.request.id, 'attempt': self.request.retries + 1},
            exc_info=True
        )
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries))

    if expired:
        logger.info(f"Expired {expired} pending payment sessions", extra={'task_id': self.request.id})
    return {'status': 'success', 'expired': expired}
