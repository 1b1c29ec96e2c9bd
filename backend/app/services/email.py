"""Email notification service - console mock while MAIL_ENABLED=False.

When MAIL_ENABLED is False, email content is written to the log instead of
being sent via SMTP. Set MAIL_ENABLED=True to wire a real transport.
"""
import logging
import uuid

from app.core.config import settings

logger = logging.getLogger(__name__)


def send_notification_email(
    user_id: uuid.UUID,
    title: str,
    message: str,
    recipient: str | None = None,
) -> None:
    """Send (or mock-log) one notification email.

    Args:
        user_id: Recipient user, used when no address is known.
        title: Subject line.
        message: Plain-text body.
        recipient: Email address, if the caller has loaded it.
    """
    to = recipient or f"user:{user_id}"

    if not settings.MAIL_ENABLED:
        logger.info(
            "\n"
            "=== EXPENSE NOTIFICATION EMAIL ===\n"
            "From: %s\n"
            "To: %s\n"
            "Subject: %s\n"
            "%s\n"
            "==================================",
            settings.MAIL_FROM,
            to,
            title,
            message,
        )
        return

    # Real SMTP path (not implemented yet)
    logger.warning(
        "MAIL_ENABLED=True but SMTP transport is not configured. "
        "Falling back to console log for %s.",
        to,
    )
    logger.info("NOTIFICATION EMAIL (unsent): to=%s subject=%s", to, title)
