"""Pick the single approval rule that governs an expense amount.

Ranges may overlap. The most specific lower bound wins (highest
``min_amount``), then the lowest ``sequence_order``, then the rule id so that
the choice never depends on row order coming back from the database.
"""
import logging
import uuid
from collections.abc import Iterable
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from app.models.approval_rule import ApprovalRule

logger = logging.getLogger(__name__)


def rule_matches(rule: ApprovalRule, amount: Decimal) -> bool:
    if not rule.is_active:
        return False
    if amount < (rule.min_amount or Decimal("0")):
        return False
    return rule.max_amount is None or amount <= rule.max_amount


def _precedence(rule: ApprovalRule) -> tuple:
    return (-(rule.min_amount or Decimal("0")), rule.sequence_order, str(rule.id))


def pick_rule(rules: Iterable[ApprovalRule], amount: Decimal) -> ApprovalRule | None:
    """In-memory selection over an already loaded rule set."""
    candidates = [r for r in rules if rule_matches(r, amount)]
    if not candidates:
        return None
    return min(candidates, key=_precedence)


def select_rule(db: Session, amount: Decimal, company_id: uuid.UUID) -> ApprovalRule | None:
    """Return the applicable active rule for ``amount``, or None to auto-approve."""
    amount = Decimal(str(amount))
    stmt = (
        select(ApprovalRule)
        .options(selectinload(ApprovalRule.steps))
        .where(
            ApprovalRule.company_id == company_id,
            ApprovalRule.is_active.is_(True),
            ApprovalRule.min_amount <= amount,
            or_(ApprovalRule.max_amount.is_(None), ApprovalRule.max_amount >= amount),
        )
        .order_by(
            ApprovalRule.min_amount.desc(),
            ApprovalRule.sequence_order.asc(),
        )
    )
    # Re-rank in Python: the final id tie-break must not depend on how the
    # database collates UUIDs.
    rule = pick_rule(db.execute(stmt).scalars().all(), amount)

    if rule is None:
        logger.info("No approval rule matches amount=%s company=%s", amount, company_id)
    else:
        logger.info(
            "Selected approval rule %s (%s) for amount=%s company=%s",
            rule.id, rule.rule_type, amount, company_id,
        )
    return rule
