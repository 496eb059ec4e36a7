# storefront/tasks/expire.py
from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.repos.cart_repo import CartRepo
from storefront.utils.timeutil import utcnow
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def expire_guest_carts(db) -> int:
    repo = CartRepo(db)
    try:
        removed = repo.delete_expired_guest_carts(utcnow())
        repo.commit()
    except Exception:
        repo.rollback()
        raise
    logger.info(f"Removed {removed} expired guest carts")
    return removed


@celery_app.task(name="storefront.tasks.expire.expire_guest_carts_task")
def expire_guest_carts_task():
    logger.info("Expire guest carts task started")

    db = SessionLocal()
    try:
        return expire_guest_carts(db)
    finally:
        db.close()
