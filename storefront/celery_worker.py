# storefront/celery_worker.py
from celery import Celery

from storefront.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND

celery_app = Celery(
    "storefront",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# order snapshots carry money as strings, keep the wire format plain json
celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    result_expires=24 * 60 * 60,
    timezone="UTC",
    broker_connection_timeout=2,
)

# tasks live outside this module, register them explicitly
celery_app.conf.imports = (
    "storefront.tasks.expire",
    "storefront.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "expire-guest-carts": {
        "task": "storefront.tasks.expire.expire_guest_carts_task",
        "schedule": 600.0,  # every 10 minutes
    },
}
