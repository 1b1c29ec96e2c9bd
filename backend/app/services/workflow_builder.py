"""Materialize the approval ledger for a newly submitted expense.

One strategy per rule type turns the rule into a list of approver
assignments; ``build_workflow`` writes them as pending ExpenseApproval rows.
It never commits: it runs inside the same unit of work that created the
expense, so both land together or not at all.
"""
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.core.exceptions import ConfigurationError
from app.models.approval import ApprovalStatus, ExpenseApproval
from app.models.approval_rule import ApprovalRule, ApproverRole, RuleType
from app.models.expense import Expense
from app.services import directory
from app.services import notifications as notification_svc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Assignment:
    approver_id: uuid.UUID
    step_order: int = 1


# ─── Strategies ───

def _sequential_assignments(db: Session, expense: Expense, rule: ApprovalRule) -> list[Assignment]:
    if not rule.steps:
        raise ConfigurationError("Sequential rule has no steps.", rule_id=rule.id)

    assignments = []
    for step in sorted(rule.steps, key=lambda s: s.step_order):
        role = ApproverRole(step.approver_role)
        if role is ApproverRole.specific_user:
            approver = directory.get_active_approver(db, expense.company_id, step.approver_id)
            approver_id = approver.id if approver is not None else None
        elif role is ApproverRole.manager:
            approver_id = directory.get_manager_id(db, expense.employee_id)
        else:
            approver_id = directory.resolve_admin_approver(db, expense.company_id)

        if approver_id is None:
            logger.warning(
                "Skipping step %s (%s) of rule %s for expense %s: no approver resolved.",
                step.step_order, role.value, rule.id, expense.id,
            )
            continue
        assignments.append(Assignment(approver_id=approver_id, step_order=step.step_order))
    return assignments


def _percentage_assignments(db: Session, expense: Expense, rule: ApprovalRule) -> list[Assignment]:
    if rule.percentage_required is None:
        raise ConfigurationError("Percentage rule has no percentage_required.", rule_id=rule.id)
    return [Assignment(approver_id=uid) for uid in directory.list_company_approvers(db, expense.company_id)]


def _specific_approver_assignments(db: Session, expense: Expense, rule: ApprovalRule) -> list[Assignment]:
    if rule.specific_approver_id is None:
        raise ConfigurationError("Rule has no specific_approver_id.", rule_id=rule.id)
    if directory.get_active_approver(db, expense.company_id, rule.specific_approver_id) is None:
        raise ConfigurationError(
            "The rule's specific approver is not an active manager or admin of the company.",
            rule_id=rule.id,
            approver_id=rule.specific_approver_id,
        )
    return [Assignment(approver_id=rule.specific_approver_id)]


def _hybrid_assignments(db: Session, expense: Expense, rule: ApprovalRule) -> list[Assignment]:
    return (
        _percentage_assignments(db, expense, rule)
        + _specific_approver_assignments(db, expense, rule)
    )


STRATEGIES: dict[str, Callable[[Session, Expense, ApprovalRule], list[Assignment]]] = {
    RuleType.sequential.value: _sequential_assignments,
    RuleType.percentage.value: _percentage_assignments,
    RuleType.specific_approver.value: _specific_approver_assignments,
    RuleType.hybrid.value: _hybrid_assignments,
}


def _dedupe(assignments: list[Assignment]) -> list[Assignment]:
    """Keep each approver's first assignment; the ledger holds one row per approver."""
    seen: set[uuid.UUID] = set()
    unique = []
    for a in assignments:
        if a.approver_id in seen:
            continue
        seen.add(a.approver_id)
        unique.append(a)
    return unique


def _approvers_to_notify(rule: ApprovalRule, rows: list[ExpenseApproval]) -> list[uuid.UUID]:
    """Sequential rules ask the first step only; every other type asks everyone."""
    if rule.rule_type != RuleType.sequential.value:
        return [r.approver_id for r in rows]
    first_step = min(r.step_order for r in rows)
    return [r.approver_id for r in rows if r.step_order == first_step]


# ─── Public entry point ───

def build_workflow(db: Session, expense: Expense, rule: ApprovalRule) -> list[ExpenseApproval]:
    """Create one pending ledger row per resolved approver.

    Raises:
        ConfigurationError: The rule is malformed, or no approver at all
            could be resolved (the expense could never be decided).
    """
    try:
        strategy = STRATEGIES[rule.rule_type]
    except KeyError:
        raise ConfigurationError(f"Unknown rule type '{rule.rule_type}'.", rule_id=rule.id)

    assignments = _dedupe(strategy(db, expense, rule))
    if not assignments:
        raise ConfigurationError(
            "Approval rule resolved to no approvers for this expense.",
            rule_id=rule.id,
            expense_id=expense.id,
        )

    rows = [
        ExpenseApproval(
            expense_id=expense.id,
            approver_id=a.approver_id,
            step_order=a.step_order,
            status=ApprovalStatus.pending.value,
        )
        for a in assignments
    ]
    db.add_all(rows)
    db.flush()

    notification_svc.notify_approval_requested(db, expense, _approvers_to_notify(rule, rows))

    logger.info(
        "Workflow built: expense=%s rule=%s type=%s approvers=%d",
        expense.id, rule.id, rule.rule_type, len(rows),
    )
    return rows
