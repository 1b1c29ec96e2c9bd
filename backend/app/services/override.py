"""Administrative override: force an expense to a terminal status.

This bypasses the completion predicate entirely. Every still-pending ledger
row is closed with the forced action so the decision trail stays complete,
and the override is written to the audit log as ``admin_override``.
"""
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.session import transaction
from app.models.approval import ApprovalStatus, ExpenseApproval
from app.models.expense import Expense
from app.services import audit as audit_svc
from app.services import notifications as notification_svc
from app.services.decision_processor import lock_expense

logger = logging.getLogger(__name__)


def override_expense(
    db: Session,
    expense_id: uuid.UUID,
    actor_id: uuid.UUID,
    action: str,
    comments: str | None = None,
) -> Expense:
    """Set the expense to ``action`` regardless of ledger state.

    Raises:
        ValueError: ``action`` is not approved/rejected.
        NotFoundError: The expense does not exist.
    """
    if action not in (ApprovalStatus.approved.value, ApprovalStatus.rejected.value):
        raise ValueError(f"Invalid action '{action}'. Must be 'approved' or 'rejected'.")
    action = ApprovalStatus(action).value

    now = datetime.now(timezone.utc)
    annotated = f"Admin override: {comments or ''}".rstrip()

    with transaction(db):
        expense = lock_expense(db, expense_id)
        previous_status = expense.status

        pending = list(
            db.execute(
                select(ExpenseApproval).where(
                    ExpenseApproval.expense_id == expense_id,
                    ExpenseApproval.status == ApprovalStatus.pending.value,
                )
            ).scalars().all()
        )
        for row in pending:
            row.status = action
            row.comments = annotated
            row.decided_at = now

        expense.status = action
        db.flush()

        audit_svc.log(
            db=db,
            action="admin_override",
            expense_id=expense_id,
            actor_id=actor_id,
            before={"expense_status": previous_status},
            after={
                "expense_status": action,
                "action": action,
                "comments": comments,
                "closed_approvals": [str(r.id) for r in pending],
            },
            notes=annotated,
        )
        notification_svc.notify_override(db, expense, action)

    logger.info(
        "Admin override: expense=%s actor=%s %s -> %s (closed %d pending approvals)",
        expense_id, actor_id, previous_status, action, len(pending),
    )
    return expense
