"""Pydantic schemas for approval workflow API endpoints."""
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# ─── Ledger row output ───

class ExpenseApprovalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    expense_id: uuid.UUID
    approver_id: uuid.UUID
    step_order: int
    status: str
    comments: str | None
    decided_at: datetime | None
    created_at: datetime

    # Approver summary (populated by the history query)
    approver_name: str | None = None
    approver_email: str | None = None


# ─── Pending queue entry ───

class PendingApprovalOut(BaseModel):
    approval_id: uuid.UUID
    expense_id: uuid.UUID
    step_order: int
    amount: Decimal
    currency: str
    converted_amount: Decimal
    description: str
    category: str | None
    expense_date: date
    submitted_at: datetime
    employee_name: str
    employee_email: str


class PendingApprovalListResponse(BaseModel):
    items: list[PendingApprovalOut]
    total: int
    page: int
    limit: int
    pages: int


# ─── Decision / override request bodies ───

class ApprovalDecisionRequest(BaseModel):
    action: Literal["approved", "rejected"]
    comments: str | None = Field(default=None, max_length=500)


class OverrideRequest(BaseModel):
    action: Literal["approved", "rejected"]
    comments: str | None = Field(default=None, max_length=500)


# ─── Decision outcome ───

class DecisionResultOut(BaseModel):
    expense_id: uuid.UUID
    updated: bool
    new_status: str | None = None
