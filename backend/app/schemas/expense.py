"""Pydantic schemas for expense submission and listing."""
import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.approval import ExpenseApprovalOut


class ExpenseCreate(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=15, decimal_places=2)
    currency: str = Field(min_length=3, max_length=3)
    category: str | None = Field(default=None, max_length=100)
    description: str = Field(min_length=1)
    expense_date: date
    merchant_name: str | None = Field(default=None, max_length=255)


class ExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    company_id: uuid.UUID
    employee_id: uuid.UUID
    category: str | None
    amount: Decimal
    currency: str
    converted_amount: Decimal
    description: str
    expense_date: date
    merchant_name: str | None
    status: str
    approval_rule_id: uuid.UUID | None
    created_at: datetime


class ExpenseDetailOut(ExpenseOut):
    approvals: list[ExpenseApprovalOut] = Field(default_factory=list)


class ExpenseListResponse(BaseModel):
    items: list[ExpenseOut]
    total: int
    page: int
    limit: int
    pages: int
