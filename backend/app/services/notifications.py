"""Notification emitter for the approval engine.

Two halves:

* ``notify_*`` insert Notification rows inside the caller's transaction (in a
  SAVEPOINT, so a failed insert is logged and never undoes the decision) and
  queue them on the session's outbox.
* When the session's outermost transaction commits, the outbox is handed to
  the delivery transport. A rollback discards it. Delivery is fire-and-forget;
  failures are logged only, the committed row stays as the in-app record.
"""
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.expense import Expense
from app.models.notification import Notification

logger = logging.getLogger(__name__)

TYPE_APPROVAL_REQUESTED = "approval_requested"
TYPE_STATUS_UPDATE = "expense_status_update"
TYPE_ADMIN_OVERRIDE = "admin_override"

OUTBOX_KEY = "notification_outbox"


@dataclass(frozen=True)
class OutboundNotification:
    id: uuid.UUID
    user_id: uuid.UUID
    expense_id: uuid.UUID | None
    type: str
    title: str
    message: str


# ─── Row creation (inside the unit of work) ───

def notify(
    db: Session,
    user_id: uuid.UUID,
    expense_id: uuid.UUID | None,
    type: str,
    title: str,
    message: str,
) -> Notification | None:
    row = Notification(
        user_id=user_id,
        expense_id=expense_id,
        type=type,
        title=title,
        message=message,
    )
    try:
        with db.begin_nested():
            db.add(row)
    except SQLAlchemyError:
        logger.exception(
            "Notification insert failed: type=%s user=%s expense=%s", type, user_id, expense_id
        )
        return None

    db.info.setdefault(OUTBOX_KEY, []).append(
        OutboundNotification(
            id=row.id,
            user_id=user_id,
            expense_id=expense_id,
            type=type,
            title=title,
            message=message,
        )
    )
    return row


def notify_status_change(db: Session, expense: Expense, status: str) -> Notification | None:
    return notify(
        db,
        user_id=expense.employee_id,
        expense_id=expense.id,
        type=TYPE_STATUS_UPDATE,
        title=f"Expense {status}",
        message=f"Your expense has been {status}",
    )


def notify_override(db: Session, expense: Expense, status: str) -> Notification | None:
    return notify(
        db,
        user_id=expense.employee_id,
        expense_id=expense.id,
        type=TYPE_ADMIN_OVERRIDE,
        title=f"Expense {status} by Admin",
        message=f"Your expense has been {status} by an administrator",
    )


def notify_approval_requested(
    db: Session, expense: Expense, approver_ids: list[uuid.UUID]
) -> list[Notification]:
    rows = []
    for approver_id in approver_ids:
        row = notify(
            db,
            user_id=approver_id,
            expense_id=expense.id,
            type=TYPE_APPROVAL_REQUESTED,
            title="Expense awaiting your approval",
            message=(
                f"An expense of {expense.converted_amount} for "
                f"'{expense.description}' is waiting for your decision"
            ),
        )
        if row is not None:
            rows.append(row)
    return rows


# ─── Delivery (after commit) ───

def dispatch(outbound: list[OutboundNotification]) -> None:
    """Hand committed notifications to the configured transport."""
    for item in outbound:
        try:
            if settings.NOTIFICATION_TRANSPORT == "celery":
                from app.workers.notification_tasks import deliver_notification
                deliver_notification.delay(str(item.id))
            else:
                from app.services import email as email_svc
                email_svc.send_notification_email(
                    user_id=item.user_id, title=item.title, message=item.message
                )
        except Exception:
            logger.warning(
                "Notification delivery failed (row kept in-app): id=%s type=%s",
                item.id, item.type, exc_info=True,
            )


@event.listens_for(Session, "after_commit")
def _dispatch_outbox(session: Session) -> None:
    if session.get_nested_transaction() is not None:
        return  # SAVEPOINT release, the outer transaction is still open
    outbound = session.info.pop(OUTBOX_KEY, None)
    if outbound:
        dispatch(outbound)


@event.listens_for(Session, "after_soft_rollback")
def _discard_outbox(session: Session, previous_transaction) -> None:
    if previous_transaction.nested or previous_transaction.parent is not None:
        return
    discarded = session.info.pop(OUTBOX_KEY, None)
    if discarded:
        logger.debug("Discarded %d notifications after rollback.", len(discarded))
