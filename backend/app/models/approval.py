import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid, event, inspect
from sqlalchemy.orm import Mapped, mapped_column

from app.core.exceptions import LedgerImmutableError
from app.db.base import Base, TimestampMixin, UUIDMixin


class ApprovalStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ExpenseApproval(Base, UUIDMixin, TimestampMixin):
    """One approver's assignment on one expense (a ledger entry).

    Rows are created in bulk when the workflow is built and are never
    deleted. Each moves from pending to approved/rejected exactly once.
    """

    __tablename__ = "expense_approvals"
    __table_args__ = (
        UniqueConstraint("expense_id", "approver_id", name="uq_expense_approvals_expense_approver"),
    )

    expense_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    approver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    # sequential: the rule step's order; percentage/specific/hybrid: always 1
    step_order: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApprovalStatus.pending.value, active_history=True
    )
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ─── ORM-level append-only guards ───

@event.listens_for(ExpenseApproval, "before_update")
def prevent_redecision(mapper, connection, target):
    """A decided row never changes again."""
    previous = inspect(target).attrs.status.history.deleted
    status_before = previous[0] if previous else target.status
    if status_before != ApprovalStatus.pending.value:
        raise LedgerImmutableError(
            "Ledger entry has already been decided.",
            approval_id=target.id,
            status=status_before,
        )


@event.listens_for(ExpenseApproval, "before_delete")
def prevent_ledger_delete(mapper, connection, target):
    raise LedgerImmutableError("Ledger entries cannot be deleted.", approval_id=target.id)
