"""Celery task that delivers committed notification rows by email."""
import logging
import uuid
from datetime import datetime, timezone

from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="notifications.deliver", max_retries=3, default_retry_delay=30)
def deliver_notification(self, notification_id: str) -> dict:
    """Send one notification and stamp ``delivered_at``.

    Already-delivered rows are skipped, so a redelivered message is harmless.
    """
    from sqlalchemy import select

    from app.db.session import get_session_factory, transaction
    from app.models.notification import Notification
    from app.models.user import User
    from app.services import email as email_svc

    db = get_session_factory()()
    try:
        row = db.execute(
            select(Notification).where(Notification.id == uuid.UUID(notification_id))
        ).scalars().first()
        if row is None:
            logger.error("Notification %s not found; nothing to deliver.", notification_id)
            return {"status": "missing"}
        if row.delivered_at is not None:
            return {"status": "already_delivered"}

        user = db.execute(select(User).where(User.id == row.user_id)).scalars().first()

        try:
            email_svc.send_notification_email(
                user_id=row.user_id,
                title=row.title,
                message=row.message,
                recipient=user.email if user else None,
            )
        except Exception as exc:
            logger.warning("Delivery of notification %s failed: %s", notification_id, exc)
            raise self.retry(exc=exc)

        with transaction(db):
            row.delivered_at = datetime.now(timezone.utc)

        logger.info("Notification %s delivered (type=%s).", notification_id, row.type)
        return {"status": "delivered"}
    finally:
        db.close()
