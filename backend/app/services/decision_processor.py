"""Record one approver's decision and decide whether the expense is done.

Each call is one unit of work: lock the expense row, flip the approver's
ledger row, re-evaluate the rule's completion predicate over the whole
ledger, and, if it is satisfied, move the expense to its terminal status and
queue exactly one notification. Two approvers deciding at the same moment
serialize on the expense lock; the second one sees the terminal status and
is refused.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import ExpenseFinalizedError, NotAuthorizedError, NotFoundError
from app.db.session import transaction
from app.models.approval import ApprovalStatus, ExpenseApproval
from app.models.approval_rule import ApprovalRule, RuleType
from app.models.expense import Expense, ExpenseStatus
from app.services import audit as audit_svc
from app.services import notifications as notification_svc
from app.services.rule_repository import get_rule_by_id

logger = logging.getLogger(__name__)

APPROVED = ApprovalStatus.approved.value
REJECTED = ApprovalStatus.rejected.value
PENDING = ApprovalStatus.pending.value


@dataclass(frozen=True)
class DecisionResult:
    expense_id: uuid.UUID
    updated: bool
    new_status: str | None = None


# ─── Completion predicates ───

def percentage_met(approved: int, total: int, required: int) -> bool:
    """``approved / total * 100 >= required`` in integer arithmetic."""
    return total > 0 and approved * 100 >= required * total


def _all_approved(statuses: list[str]) -> bool:
    return bool(statuses) and all(s == APPROVED for s in statuses)


def _specific_approved(rows: list[ExpenseApproval], approver_id: uuid.UUID | None) -> bool:
    return any(r.approver_id == approver_id and r.status == APPROVED for r in rows)


def evaluate_completion(rule: ApprovalRule | None, rows: list[ExpenseApproval]) -> str | None:
    """Return the terminal status the ledger now implies, or None if still open."""
    statuses = [r.status for r in rows]
    if REJECTED in statuses:
        return ExpenseStatus.rejected.value

    # A rule removed from under a live workflow falls back to "everyone signs".
    rule_type = rule.rule_type if rule is not None else RuleType.sequential.value

    if rule_type == RuleType.sequential.value:
        done = _all_approved(statuses)

    elif rule_type == RuleType.percentage.value:
        done = percentage_met(statuses.count(APPROVED), len(statuses), rule.percentage_required or 100)

    elif rule_type == RuleType.specific_approver.value:
        done = _specific_approved(rows, rule.specific_approver_id)

    elif rule_type == RuleType.hybrid.value:
        others = [r.status for r in rows if r.approver_id != rule.specific_approver_id]
        done = _specific_approved(rows, rule.specific_approver_id) or percentage_met(
            others.count(APPROVED), len(others), rule.percentage_required or 100
        )

    else:
        logger.error("Unknown rule type '%s'; leaving expense open.", rule_type)
        done = False

    return ExpenseStatus.approved.value if done else None


# ─── Helpers ───

def lock_expense(db: Session, expense_id: uuid.UUID) -> Expense:
    """Load the expense with a row lock held until the transaction ends."""
    expense = db.execute(
        select(Expense)
        .where(Expense.id == expense_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalars().first()
    if expense is None:
        raise NotFoundError(f"Expense {expense_id} not found.", expense_id=expense_id)
    return expense


def ledger_rows(db: Session, expense_id: uuid.UUID) -> list[ExpenseApproval]:
    return list(
        db.execute(
            select(ExpenseApproval)
            .where(ExpenseApproval.expense_id == expense_id)
            .order_by(ExpenseApproval.step_order.asc(), ExpenseApproval.created_at.asc())
        ).scalars().all()
    )


def _notify_next_step(db: Session, expense: Expense, decided: ExpenseApproval, rows: list[ExpenseApproval]) -> None:
    pending = [r for r in rows if r.status == PENDING]
    if not pending:
        return
    next_step = min(r.step_order for r in pending)
    if next_step <= decided.step_order:
        return  # an earlier step is still open; its approvers already know
    notification_svc.notify_approval_requested(
        db, expense, [r.approver_id for r in pending if r.step_order == next_step]
    )


# ─── Public entry point ───

def record_decision(
    db: Session,
    expense_id: uuid.UUID,
    approver_id: uuid.UUID,
    action: str,
    comments: str | None = None,
) -> DecisionResult:
    """Apply ``approver_id``'s approve/reject decision to ``expense_id``.

    Args:
        db: Sync SQLAlchemy session; this function owns the transaction.
        expense_id: Expense being decided.
        approver_id: User submitting the decision.
        action: "approved" or "rejected".
        comments: Optional free text stored on the ledger row.

    Returns:
        DecisionResult with ``updated`` True when this decision moved the
        expense to a terminal status.

    Raises:
        ValueError: ``action`` is not approved/rejected.
        NotFoundError: The expense does not exist.
        ExpenseFinalizedError: The expense is already approved or rejected.
        NotAuthorizedError: The approver has no pending ledger row on it.
    """
    if action not in (APPROVED, REJECTED):
        raise ValueError(f"Invalid action '{action}'. Must be 'approved' or 'rejected'.")
    action = ApprovalStatus(action).value

    with transaction(db):
        expense = lock_expense(db, expense_id)
        if expense.is_terminal:
            raise ExpenseFinalizedError(
                f"Expense {expense_id} is already {expense.status}.",
                expense_id=expense_id,
                status=expense.status,
            )

        row = db.execute(
            select(ExpenseApproval).where(
                ExpenseApproval.expense_id == expense_id,
                ExpenseApproval.approver_id == approver_id,
                ExpenseApproval.status == PENDING,
            )
        ).scalars().first()
        if row is None:
            raise NotAuthorizedError(
                "No pending approval found for this approver on this expense.",
                expense_id=expense_id,
                approver_id=approver_id,
            )

        row.status = action
        row.comments = comments
        row.decided_at = datetime.now(timezone.utc)
        db.flush()

        audit_svc.log(
            db=db,
            action="approval_decision",
            expense_id=expense_id,
            actor_id=approver_id,
            before={"approval_status": PENDING, "expense_status": expense.status},
            after={"approval_status": action, "step_order": row.step_order},
            notes=comments,
        )

        rule = get_rule_by_id(db, expense.approval_rule_id) if expense.approval_rule_id else None
        rows = ledger_rows(db, expense_id)
        new_status = evaluate_completion(rule, rows)

        if new_status is not None:
            expense.status = new_status
            db.flush()
            notification_svc.notify_status_change(db, expense, new_status)
        elif rule is not None and rule.rule_type == RuleType.sequential.value:
            _notify_next_step(db, expense, row, rows)

    logger.info(
        "Approval decision: expense=%s approver=%s action=%s -> %s",
        expense_id, approver_id, action, new_status or "pending",
    )
    return DecisionResult(expense_id=expense_id, updated=new_status is not None, new_status=new_status)
