"""Expense submission and listing endpoints."""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.deps import get_converter, get_current_user, require_capability
from app.core.permissions import Action, ensure, expense_resource
from app.db.session import get_session
from app.models.user import User
from app.schemas.expense import ExpenseCreate, ExpenseDetailOut, ExpenseListResponse, ExpenseOut
from app.services import approval_queries
from app.services.expense_query import ExpenseQuery, page_count, run_expense_query
from app.services.expenses import get_expense, submit_expense
from app.services.fx import CurrencyConverter

router = APIRouter()


@router.post(
    "",
    response_model=ExpenseOut,
    status_code=status.HTTP_201_CREATED,
    summary="Submit an expense and start its approval workflow",
)
def create_expense(
    body: ExpenseCreate,
    db: Annotated[Session, Depends(get_session)],
    converter: Annotated[CurrencyConverter, Depends(get_converter)],
    current_user: Annotated[User, Depends(require_capability(Action.submit_expense))],
):
    expense = submit_expense(db, current_user, body, converter)
    return ExpenseOut.model_validate(expense)


@router.get(
    "",
    response_model=ExpenseListResponse,
    summary="List expenses visible to the current user",
)
def list_expenses(
    query: Annotated[ExpenseQuery, Depends()],
    db: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(require_capability(Action.list_expenses))],
):
    items, total = run_expense_query(db, query, current_user)
    return ExpenseListResponse(
        items=[ExpenseOut.model_validate(e) for e in items],
        total=total,
        page=query.page,
        limit=query.limit,
        pages=page_count(total, query.limit),
    )


@router.get(
    "/{expense_id}",
    response_model=ExpenseDetailOut,
    summary="Expense detail with its approval trail",
)
def get_expense_detail(
    expense_id: uuid.UUID,
    db: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    expense = get_expense(db, expense_id)
    ensure(current_user, Action.view_expense, expense_resource(db, expense))

    out = ExpenseDetailOut.model_validate(expense)
    out.approvals = approval_queries.get_approval_history(db, expense_id)
    return out
