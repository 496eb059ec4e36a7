# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.domain.errors import NotificationFailure
from storefront.services.email_client import EmailClient
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

# publishing runs on the request thread, so it stays bounded
PUBLISH_RETRY_POLICY = {
    "max_retries": 2,
    "interval_start": 0,
    "interval_step": 0.2,
    "interval_max": 0.5,
}


class NotificationService:
    """
    Fire-and-forget order notifications.
    The work runs in a Celery worker; a broker outage is logged and swallowed
    because the order it reports on has already been committed.
    """

    def send_order_confirmation(self, snapshot: dict) -> bool:
        try:
            send_order_confirmation_task.apply_async(
                args=(snapshot,), retry=True, retry_policy=PUBLISH_RETRY_POLICY
            )
        except Exception:
            logger.exception(f"Could not queue confirmation for order {snapshot.get('order_number')}")
            return False
        return True


@celery_app.task(name="storefront.services.notification_service.send_order_confirmation_task")
def send_order_confirmation_task(snapshot: dict):
    try:
        sent = EmailClient().send_order_confirmation(snapshot)
    except NotificationFailure as e:
        logger.error(f"[NOTIFICATION] {e}")
        sent = False

    return {"order_number": snapshot.get("order_number"), "status": "sent" if sent else "failed"}
