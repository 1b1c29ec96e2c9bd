"""Audit log helper - append-only writes to the audit_logs table."""
import json
import logging
import uuid
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.audit import AuditLog

logger = logging.getLogger(__name__)


def log(
    db: Session,
    action: str,
    expense_id: uuid.UUID | None = None,
    actor_id: uuid.UUID | None = None,
    before: Any | None = None,
    after: Any | None = None,
    notes: str | None = None,
) -> AuditLog | None:
    """Write a single audit log entry inside the caller's transaction.

    The insert runs in a SAVEPOINT: if it fails, the failure is logged and
    the surrounding unit of work (the decision or override that produced the
    record) carries on.

    Args:
        db: Sync SQLAlchemy session; the caller controls commit.
        action: Short verb, e.g. 'approval_decision', 'admin_override'.
        expense_id: Expense the record is about.
        actor_id: User who performed the action (None for system actions).
        before: JSON-serialisable snapshot of state before the action.
        after: JSON-serialisable snapshot of state after the action.
        notes: Free-text annotation.

    Returns:
        The flushed AuditLog, or None if it could not be written.
    """
    entry = AuditLog(
        actor_id=actor_id,
        expense_id=expense_id,
        action=action,
        before_state=json.dumps(before, default=str) if before is not None else None,
        after_state=json.dumps(after, default=str) if after is not None else None,
        notes=notes,
    )
    try:
        with db.begin_nested():
            db.add(entry)
    except SQLAlchemyError:
        logger.exception("Audit write failed: %s expense=%s", action, expense_id)
        return None

    logger.debug("Audit: %s expense=%s actor=%s", action, expense_id, actor_id)
    return entry
