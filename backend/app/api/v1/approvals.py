"""Approval workflow API endpoints.

  GET  /approvals/pending                 - ledger rows awaiting the current user
  POST /approvals/{expense_id}/decision   - approve or reject as the current user
  GET  /approvals/{expense_id}/history    - full decision trail of an expense
  POST /approvals/{expense_id}/override   - admin force-approve / force-reject
"""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_current_user, require_capability
from app.core.limiter import limiter
from app.core.permissions import Action, ensure, expense_resource
from app.db.session import get_session
from app.models.user import User
from app.schemas.approval import (
    ApprovalDecisionRequest,
    DecisionResultOut,
    ExpenseApprovalOut,
    OverrideRequest,
    PendingApprovalListResponse,
)
from app.schemas.expense import ExpenseOut
from app.services import approval_queries
from app.services.decision_processor import record_decision
from app.services.expense_query import page_count
from app.services.expenses import get_expense
from app.services.override import override_expense

router = APIRouter()


# ─── Pending queue ───

@router.get(
    "/pending",
    response_model=PendingApprovalListResponse,
    summary="List expenses awaiting the current user's decision",
)
def list_pending_approvals(
    db: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(require_capability(Action.view_pending_approvals))],
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    items, total = approval_queries.get_pending_approvals(db, current_user.id, page=page, limit=limit)
    return PendingApprovalListResponse(
        items=items, total=total, page=page, limit=limit, pages=page_count(total, limit)
    )


# ─── Decision ───

@router.post(
    "/{expense_id}/decision",
    response_model=DecisionResultOut,
    summary="Approve or reject an expense as the assigned approver",
)
@limiter.limit(settings.RATE_LIMIT_DECISIONS)
def decide(
    request: Request,
    expense_id: uuid.UUID,
    body: ApprovalDecisionRequest,
    db: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(require_capability(Action.decide_approval))],
):
    expense = get_expense(db, expense_id)
    ensure(current_user, Action.decide_approval, expense_resource(db, expense))

    result = record_decision(
        db,
        expense_id=expense_id,
        approver_id=current_user.id,
        action=body.action,
        comments=body.comments,
    )
    return DecisionResultOut(
        expense_id=result.expense_id, updated=result.updated, new_status=result.new_status
    )


# ─── History ───

@router.get(
    "/{expense_id}/history",
    response_model=list[ExpenseApprovalOut],
    summary="Approval trail of an expense",
)
def approval_history(
    expense_id: uuid.UUID,
    db: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    expense = get_expense(db, expense_id)
    ensure(current_user, Action.view_expense, expense_resource(db, expense))
    return approval_queries.get_approval_history(db, expense_id)


# ─── Admin override ───

@router.post(
    "/{expense_id}/override",
    response_model=ExpenseOut,
    summary="Force an expense to approved or rejected (ADMIN)",
)
def override(
    expense_id: uuid.UUID,
    body: OverrideRequest,
    db: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(require_capability(Action.override_expense))],
):
    expense = get_expense(db, expense_id)
    ensure(current_user, Action.override_expense, expense_resource(db, expense))

    expense = override_expense(
        db,
        expense_id=expense_id,
        actor_id=current_user.id,
        action=body.action,
        comments=body.comments,
    )
    return ExpenseOut.model_validate(expense)
