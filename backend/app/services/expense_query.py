"""Typed, parameterized expense listing.

Filters arrive as an ``ExpenseQuery`` object and are compiled into SQLAlchemy
expressions; nothing is ever concatenated into SQL text.
"""
import math
import uuid
from datetime import date

from pydantic import BaseModel, Field
from sqlalchemy import ColumnElement, Select, func, select
from sqlalchemy.orm import Session

from app.core.permissions import expense_visibility
from app.models.expense import Expense, ExpenseStatus
from app.models.user import User, UserRole


class ExpenseQuery(BaseModel):
    status: ExpenseStatus | None = None
    category: str | None = None
    employee_id: uuid.UUID | None = None
    start_date: date | None = None
    end_date: date | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)

    def conditions(self, viewer: User) -> list[ColumnElement[bool]]:
        conds = [expense_visibility(viewer)]
        if self.status is not None:
            conds.append(Expense.status == ExpenseStatus(self.status).value)
        if self.category:
            conds.append(Expense.category == self.category)
        if self.start_date is not None:
            conds.append(Expense.expense_date >= self.start_date)
        if self.end_date is not None:
            conds.append(Expense.expense_date <= self.end_date)
        # Employees are already pinned to their own expenses by visibility.
        if self.employee_id is not None and viewer.role != UserRole.employee.value:
            conds.append(Expense.employee_id == self.employee_id)
        return conds

    def statement(self, viewer: User) -> Select:
        return (
            select(Expense)
            .where(*self.conditions(viewer))
            .order_by(Expense.created_at.desc(), Expense.id.desc())
            .offset((self.page - 1) * self.limit)
            .limit(self.limit)
        )

    def count_statement(self, viewer: User) -> Select:
        return select(func.count()).select_from(Expense).where(*self.conditions(viewer))


def run_expense_query(db: Session, query: ExpenseQuery, viewer: User) -> tuple[list[Expense], int]:
    items = list(db.execute(query.statement(viewer)).scalars().all())
    total = db.execute(query.count_statement(viewer)).scalar_one()
    return items, total


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
