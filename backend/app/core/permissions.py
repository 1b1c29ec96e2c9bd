"""Capability checks: the one place that knows what each role may do.

Handlers ask ``can(user, action, resource)`` (or ``ensure``) instead of
branching on ``user.role`` themselves.
"""
import enum
import uuid
from dataclasses import dataclass, field

from sqlalchemy import ColumnElement, and_, or_, select
from sqlalchemy.orm import Session

from app.core.exceptions import PermissionDeniedError
from app.models.approval import ExpenseApproval
from app.models.expense import Expense
from app.models.user import APPROVER_ROLES, User, UserRole


class Action(str, enum.Enum):
    submit_expense = "submit_expense"
    list_expenses = "list_expenses"
    view_expense = "view_expense"
    view_pending_approvals = "view_pending_approvals"
    decide_approval = "decide_approval"
    override_expense = "override_expense"
    manage_rules = "manage_rules"


@dataclass(frozen=True)
class ExpenseResource:
    """What the capability check needs to know about one expense."""

    id: uuid.UUID
    company_id: uuid.UUID
    employee_id: uuid.UUID
    employee_manager_id: uuid.UUID | None = None
    approver_ids: frozenset[uuid.UUID] = field(default_factory=frozenset)


def expense_resource(db: Session, expense: Expense) -> ExpenseResource:
    manager_id = db.execute(
        select(User.manager_id).where(User.id == expense.employee_id)
    ).scalar_one_or_none()
    approver_ids = db.execute(
        select(ExpenseApproval.approver_id).where(ExpenseApproval.expense_id == expense.id)
    ).scalars().all()
    return ExpenseResource(
        id=expense.id,
        company_id=expense.company_id,
        employee_id=expense.employee_id,
        employee_manager_id=manager_id,
        approver_ids=frozenset(approver_ids),
    )


def can(user: User | None, action: Action, resource: ExpenseResource | None = None) -> bool:
    if user is None or not user.is_active:
        return False
    if resource is not None and resource.company_id != user.company_id:
        return False

    role = user.role

    if action in (Action.manage_rules, Action.override_expense):
        return role == UserRole.admin.value

    if action in (Action.view_pending_approvals, Action.decide_approval):
        return role in APPROVER_ROLES

    if action in (Action.submit_expense, Action.list_expenses):
        return True

    if action is Action.view_expense:
        if resource is None:
            return False
        if role == UserRole.admin.value or resource.employee_id == user.id:
            return True
        if user.id in resource.approver_ids:
            return True
        return role == UserRole.manager.value and resource.employee_manager_id == user.id

    return False


def expense_visibility(user: User) -> ColumnElement[bool]:
    """SQL condition selecting the expenses ``user`` may list."""
    in_company = Expense.company_id == user.company_id
    if user.role == UserRole.admin.value:
        return in_company
    if user.role == UserRole.manager.value:
        reports = select(User.id).where(User.manager_id == user.id)
        return and_(in_company, or_(Expense.employee_id == user.id, Expense.employee_id.in_(reports)))
    return and_(in_company, Expense.employee_id == user.id)


def ensure(user: User, action: Action, resource: ExpenseResource | None = None) -> None:
    if not can(user, action, resource):
        raise PermissionDeniedError(
            f"Role '{user.role}' is not permitted to {action.value.replace('_', ' ')}.",
            action=action.value,
        )
