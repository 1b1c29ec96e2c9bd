"""Approval rule administration endpoints (ADMIN only, company-scoped)."""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.deps import require_capability
from app.core.permissions import Action
from app.db.session import get_session
from app.models.user import User
from app.schemas.approval_rule import ApprovalRuleIn, ApprovalRuleOut
from app.services import rule_repository

router = APIRouter()

RuleAdmin = Annotated[User, Depends(require_capability(Action.manage_rules))]
DbSession = Annotated[Session, Depends(get_session)]


@router.get(
    "",
    response_model=list[ApprovalRuleOut],
    summary="List the company's approval rules (ADMIN)",
)
def list_rules(
    db: DbSession,
    current_user: RuleAdmin,
    active_only: bool = Query(False),
):
    rules = rule_repository.list_rules(db, current_user.company_id, active_only=active_only)
    return [ApprovalRuleOut.model_validate(r) for r in rules]


@router.get(
    "/{rule_id}",
    response_model=ApprovalRuleOut,
    summary="Get one approval rule with its steps (ADMIN)",
)
def get_rule(rule_id: uuid.UUID, db: DbSession, current_user: RuleAdmin):
    return ApprovalRuleOut.model_validate(
        rule_repository.get_rule(db, current_user.company_id, rule_id)
    )


@router.post(
    "",
    response_model=ApprovalRuleOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create an approval rule (ADMIN)",
)
def create_rule(body: ApprovalRuleIn, db: DbSession, current_user: RuleAdmin):
    rule = rule_repository.create_rule(db, current_user.company_id, body)
    return ApprovalRuleOut.model_validate(rule)


@router.put(
    "/{rule_id}",
    response_model=ApprovalRuleOut,
    summary="Redefine an approval rule; steps are replaced (ADMIN)",
)
def update_rule(rule_id: uuid.UUID, body: ApprovalRuleIn, db: DbSession, current_user: RuleAdmin):
    rule = rule_repository.update_rule(db, current_user.company_id, rule_id, body)
    return ApprovalRuleOut.model_validate(rule)


@router.post(
    "/{rule_id}/deactivate",
    response_model=ApprovalRuleOut,
    summary="Stop applying a rule to new expenses (ADMIN)",
)
def deactivate_rule(rule_id: uuid.UUID, db: DbSession, current_user: RuleAdmin):
    rule = rule_repository.deactivate_rule(db, current_user.company_id, rule_id)
    return ApprovalRuleOut.model_validate(rule)


@router.delete(
    "/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an unused approval rule (ADMIN)",
)
def delete_rule(rule_id: uuid.UUID, db: DbSession, current_user: RuleAdmin):
    rule_repository.delete_rule(db, current_user.company_id, rule_id)
