"""Pydantic schemas for approval rules and their sequential steps.

These validate request shape only. Whether a rule can actually be turned
into a workflow (required fields per type, approvers that exist) is decided
by ``app.services.rule_repository.validate_rule_definition``.
"""
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.models.approval_rule import ApproverRole, RuleType


# ─── Step schemas ───

class ApprovalRuleStepIn(BaseModel):
    step_order: int = Field(ge=1)
    approver_role: ApproverRole
    approver_id: uuid.UUID | None = None
    is_required: bool = True


class ApprovalRuleStepOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    step_order: int
    approver_role: str
    approver_id: uuid.UUID | None
    is_required: bool


# ─── Rule schemas ───

class ApprovalRuleIn(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    rule_type: RuleType
    min_amount: Decimal = Field(default=Decimal("0"), ge=0)
    max_amount: Decimal | None = Field(default=None, gt=0)
    percentage_required: int | None = Field(default=None, ge=1, le=100)
    specific_approver_id: uuid.UUID | None = None
    sequence_order: int = Field(default=1, ge=1)
    is_active: bool = True
    steps: list[ApprovalRuleStepIn] = Field(default_factory=list)


class ApprovalRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    rule_type: str
    min_amount: Decimal
    max_amount: Decimal | None
    percentage_required: int | None
    specific_approver_id: uuid.UUID | None
    sequence_order: int
    is_active: bool
    steps: list[ApprovalRuleStepOut]
    created_at: datetime
    updated_at: datetime
