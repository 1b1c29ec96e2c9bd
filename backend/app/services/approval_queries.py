"""Read side of the approval ledger: what awaits an approver, and an expense's trail."""
import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.approval import ApprovalStatus, ExpenseApproval
from app.models.expense import Expense, ExpenseStatus
from app.models.user import User
from app.schemas.approval import ExpenseApprovalOut, PendingApprovalOut


def get_pending_approvals(
    db: Session,
    approver_id: uuid.UUID,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[PendingApprovalOut], int]:
    """Pending ledger rows for ``approver_id`` whose expense is still open.

    Oldest expense first. Rows left pending on an expense that was vetoed or
    overridden are not "awaiting" anyone and are excluded.
    """
    conditions = (
        ExpenseApproval.approver_id == approver_id,
        ExpenseApproval.status == ApprovalStatus.pending.value,
        Expense.status == ExpenseStatus.pending.value,
    )

    stmt = (
        select(ExpenseApproval, Expense, User)
        .join(Expense, ExpenseApproval.expense_id == Expense.id)
        .join(User, Expense.employee_id == User.id)
        .where(*conditions)
        .order_by(Expense.created_at.asc(), Expense.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    items = [
        PendingApprovalOut(
            approval_id=approval.id,
            expense_id=expense.id,
            step_order=approval.step_order,
            amount=expense.amount,
            currency=expense.currency,
            converted_amount=expense.converted_amount,
            description=expense.description,
            category=expense.category,
            expense_date=expense.expense_date,
            submitted_at=expense.created_at,
            employee_name=employee.name,
            employee_email=employee.email,
        )
        for approval, expense, employee in db.execute(stmt).all()
    ]

    total = db.execute(
        select(func.count())
        .select_from(ExpenseApproval)
        .join(Expense, ExpenseApproval.expense_id == Expense.id)
        .where(*conditions)
    ).scalar_one()
    return items, total


def get_approval_history(db: Session, expense_id: uuid.UUID) -> list[ExpenseApprovalOut]:
    """Every ledger row of the expense, in step order, with approver names."""
    stmt = (
        select(ExpenseApproval, User)
        .join(User, ExpenseApproval.approver_id == User.id)
        .where(ExpenseApproval.expense_id == expense_id)
        .order_by(ExpenseApproval.step_order.asc(), ExpenseApproval.created_at.asc())
    )
    history = []
    for approval, approver in db.execute(stmt).all():
        out = ExpenseApprovalOut.model_validate(approval)
        out.approver_name = approver.name
        out.approver_email = approver.email
        history.append(out)
    return history
