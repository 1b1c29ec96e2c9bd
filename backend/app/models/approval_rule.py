"""Company-scoped approval rules and the ordered steps of sequential rules."""
import enum
import uuid
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, TimestampMixin, UUIDMixin


class RuleType(str, enum.Enum):
    sequential = "sequential"
    percentage = "percentage"
    specific_approver = "specific_approver"
    hybrid = "hybrid"


class ApproverRole(str, enum.Enum):
    manager = "manager"
    admin = "admin"
    specific_user = "specific_user"


class ApprovalRule(Base, UUIDMixin, TimestampMixin):
    """Decides who must approve expenses whose converted amount falls in [min, max]."""

    __tablename__ = "approval_rules"

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    rule_type: Mapped[str] = mapped_column(String(20), nullable=False)
    min_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0"))
    max_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)  # null = unbounded
    percentage_required: Mapped[int | None] = mapped_column(Integer, nullable=True)
    specific_approver_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    sequence_order: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    steps: Mapped[list["ApprovalRuleStep"]] = relationship(
        "ApprovalRuleStep",
        back_populates="rule",
        cascade="all, delete-orphan",
        order_by="ApprovalRuleStep.step_order",
    )


class ApprovalRuleStep(Base, UUIDMixin, TimestampMixin):
    """One step of a sequential rule. Owned by its rule."""

    __tablename__ = "approval_rule_steps"

    rule_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("approval_rules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    approver_role: Mapped[str] = mapped_column(String(20), nullable=False)
    approver_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    rule: Mapped["ApprovalRule"] = relationship("ApprovalRule", back_populates="steps")
