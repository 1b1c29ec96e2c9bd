"""Company-scoped approval rules: reads for the engine, validated writes for admins.

Configuration problems are caught here, when an admin saves a rule, so that
the workflow builder never meets a rule it cannot express.
"""
import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.core.exceptions import ConfigurationError, NotFoundError, RuleInUseError
from app.db.session import transaction
from app.models.approval_rule import ApprovalRule, ApprovalRuleStep, ApproverRole, RuleType
from app.models.expense import Expense
from app.schemas.approval_rule import ApprovalRuleIn
from app.services import directory

logger = logging.getLogger(__name__)

PERCENTAGE_TYPES = (RuleType.percentage.value, RuleType.hybrid.value)
SPECIFIC_APPROVER_TYPES = (RuleType.specific_approver.value, RuleType.hybrid.value)


# ─── Reads ───

def list_rules(db: Session, company_id: uuid.UUID, active_only: bool = False) -> list[ApprovalRule]:
    stmt = (
        select(ApprovalRule)
        .options(selectinload(ApprovalRule.steps))
        .where(ApprovalRule.company_id == company_id)
        .order_by(ApprovalRule.sequence_order.asc(), ApprovalRule.min_amount.asc())
    )
    if active_only:
        stmt = stmt.where(ApprovalRule.is_active.is_(True))
    return list(db.execute(stmt).scalars().all())


def list_active_rules(db: Session, company_id: uuid.UUID) -> list[ApprovalRule]:
    return list_rules(db, company_id, active_only=True)


def get_rule(db: Session, company_id: uuid.UUID, rule_id: uuid.UUID) -> ApprovalRule:
    rule = db.execute(
        select(ApprovalRule)
        .options(selectinload(ApprovalRule.steps))
        .where(ApprovalRule.id == rule_id, ApprovalRule.company_id == company_id)
    ).scalars().first()
    if rule is None:
        raise NotFoundError(f"Approval rule {rule_id} not found.", rule_id=rule_id)
    return rule


def get_rule_by_id(db: Session, rule_id: uuid.UUID) -> ApprovalRule | None:
    """Unscoped lookup used by the engine, which already trusts the expense's company."""
    return db.execute(
        select(ApprovalRule)
        .options(selectinload(ApprovalRule.steps))
        .where(ApprovalRule.id == rule_id)
    ).scalars().first()


# ─── Validation ───

def validate_rule_definition(db: Session, company_id: uuid.UUID, definition: ApprovalRuleIn) -> None:
    """Raise ConfigurationError if the definition could not drive a workflow."""
    rule_type = RuleType(definition.rule_type).value

    if definition.max_amount is not None and definition.max_amount < definition.min_amount:
        raise ConfigurationError(
            "max_amount must be greater than or equal to min_amount.",
            min_amount=definition.min_amount,
            max_amount=definition.max_amount,
        )

    if rule_type in PERCENTAGE_TYPES and definition.percentage_required is None:
        raise ConfigurationError(f"A {rule_type} rule requires percentage_required.")

    if rule_type in SPECIFIC_APPROVER_TYPES:
        if definition.specific_approver_id is None:
            raise ConfigurationError(f"A {rule_type} rule requires specific_approver_id.")
        _require_active_approver(db, company_id, definition.specific_approver_id, "specific_approver_id")

    if rule_type != RuleType.sequential.value:
        if definition.steps:
            raise ConfigurationError("Only sequential rules may define steps.")
        return

    if not definition.steps:
        raise ConfigurationError("A sequential rule requires at least one step.")

    seen_orders: set[int] = set()
    for step in definition.steps:
        if step.step_order in seen_orders:
            raise ConfigurationError(
                f"Duplicate step_order {step.step_order}.", step_order=step.step_order
            )
        seen_orders.add(step.step_order)

        role = ApproverRole(step.approver_role)
        if role is ApproverRole.specific_user:
            if step.approver_id is None:
                raise ConfigurationError(
                    f"Step {step.step_order} names a specific user but has no approver_id.",
                    step_order=step.step_order,
                )
            _require_active_approver(db, company_id, step.approver_id, f"step {step.step_order} approver_id")
        elif step.approver_id is not None:
            raise ConfigurationError(
                f"Step {step.step_order} resolves its approver by role and must not set approver_id.",
                step_order=step.step_order,
            )
        elif role is ApproverRole.admin and directory.resolve_admin_approver(db, company_id) is None:
            raise ConfigurationError(
                f"Step {step.step_order} requires an admin but the company has no active admin.",
                step_order=step.step_order,
            )


def _require_active_approver(db: Session, company_id: uuid.UUID, user_id: uuid.UUID, field: str) -> None:
    if directory.get_active_approver(db, company_id, user_id) is None:
        raise ConfigurationError(
            f"{field} does not reference an active manager or admin of this company.",
            user_id=user_id,
        )


# ─── Writes ───

def _build_steps(definition: ApprovalRuleIn) -> list[ApprovalRuleStep]:
    if RuleType(definition.rule_type) is not RuleType.sequential:
        return []
    return [
        ApprovalRuleStep(
            step_order=step.step_order,
            approver_role=ApproverRole(step.approver_role).value,
            approver_id=step.approver_id,
            is_required=step.is_required,
        )
        for step in sorted(definition.steps, key=lambda s: s.step_order)
    ]


def _apply_definition(rule: ApprovalRule, definition: ApprovalRuleIn) -> None:
    rule_type = RuleType(definition.rule_type)
    rule.name = definition.name
    rule.rule_type = rule_type.value
    rule.min_amount = definition.min_amount
    rule.max_amount = definition.max_amount
    rule.percentage_required = (
        definition.percentage_required if rule_type.value in PERCENTAGE_TYPES else None
    )
    rule.specific_approver_id = (
        definition.specific_approver_id if rule_type.value in SPECIFIC_APPROVER_TYPES else None
    )
    rule.sequence_order = definition.sequence_order
    rule.is_active = definition.is_active
    # Redefinition replaces the steps wholesale; orphans are deleted.
    rule.steps = _build_steps(definition)


def create_rule(db: Session, company_id: uuid.UUID, definition: ApprovalRuleIn) -> ApprovalRule:
    with transaction(db):
        validate_rule_definition(db, company_id, definition)
        rule = ApprovalRule(company_id=company_id)
        _apply_definition(rule, definition)
        db.add(rule)
        db.flush()

    logger.info(
        "Approval rule created: id=%s company=%s type=%s range=[%s, %s]",
        rule.id, company_id, rule.rule_type, rule.min_amount, rule.max_amount,
    )
    return rule


def update_rule(
    db: Session, company_id: uuid.UUID, rule_id: uuid.UUID, definition: ApprovalRuleIn
) -> ApprovalRule:
    with transaction(db):
        rule = get_rule(db, company_id, rule_id)
        validate_rule_definition(db, company_id, definition)
        _apply_definition(rule, definition)
        db.flush()

    logger.info("Approval rule updated: id=%s company=%s", rule_id, company_id)
    return rule


def deactivate_rule(db: Session, company_id: uuid.UUID, rule_id: uuid.UUID) -> ApprovalRule:
    """Stop selecting the rule for new expenses; in-flight workflows keep using it."""
    with transaction(db):
        rule = get_rule(db, company_id, rule_id)
        rule.is_active = False

    logger.info("Approval rule deactivated: id=%s company=%s", rule_id, company_id)
    return rule


def delete_rule(db: Session, company_id: uuid.UUID, rule_id: uuid.UUID) -> None:
    with transaction(db):
        rule = get_rule(db, company_id, rule_id)
        in_use = db.execute(
            select(func.count()).select_from(Expense).where(Expense.approval_rule_id == rule_id)
        ).scalar_one()
        if in_use:
            raise RuleInUseError(
                "Cannot delete an approval rule that is in use by existing expenses; deactivate it instead.",
                rule_id=rule_id,
                expenses=in_use,
            )
        db.delete(rule)

    logger.info("Approval rule deleted: id=%s company=%s", rule_id, company_id)
