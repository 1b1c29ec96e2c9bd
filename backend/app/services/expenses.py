"""Expense submission: the entry point that starts an approval workflow."""
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.db.session import transaction
from app.models.company import Company
from app.models.expense import Expense, ExpenseStatus
from app.models.user import User
from app.schemas.expense import ExpenseCreate
from app.services import audit as audit_svc
from app.services.fx import CurrencyConverter
from app.services.rule_selector import select_rule
from app.services.workflow_builder import build_workflow

logger = logging.getLogger(__name__)


def submit_expense(
    db: Session,
    employee: User,
    data: ExpenseCreate,
    converter: CurrencyConverter,
) -> Expense:
    """Create an expense and its approval ledger in one unit of work.

    The amount is converted to the company's base currency first (outside
    the transaction; it may call the rate provider). If no rule matches the
    converted amount the expense is approved on the spot. Otherwise the
    selected rule's workflow is built; if that fails, the expense is not
    created either.
    """
    employee_id, company_id = employee.id, employee.company_id
    base_currency = db.execute(
        select(Company.base_currency).where(Company.id == company_id)
    ).scalar_one_or_none()
    if base_currency is None:
        raise NotFoundError(f"Company {company_id} not found.", company_id=company_id)

    # No connection is held while the rate provider is called.
    db.rollback()
    converted = converter.convert(data.amount, data.currency, base_currency)

    with transaction(db):
        expense = Expense(
            company_id=company_id,
            employee_id=employee_id,
            category=data.category,
            amount=data.amount,
            currency=data.currency.upper(),
            converted_amount=converted,
            description=data.description,
            expense_date=data.expense_date,
            merchant_name=data.merchant_name,
            status=ExpenseStatus.pending.value,
        )
        db.add(expense)
        db.flush()

        rule = select_rule(db, converted, company_id)
        if rule is None:
            expense.status = ExpenseStatus.approved.value
            audit_svc.log(
                db=db,
                action="expense_auto_approved",
                expense_id=expense.id,
                actor_id=None,
                after={"expense_status": expense.status, "converted_amount": converted},
                notes="No approval rule matches the amount",
            )
        else:
            expense.approval_rule_id = rule.id
            build_workflow(db, expense, rule)

    logger.info(
        "Expense submitted: id=%s employee=%s amount=%s %s (%s %s) status=%s rule=%s",
        expense.id, employee_id, data.amount, expense.currency,
        converted, base_currency, expense.status, expense.approval_rule_id,
    )
    return expense


def get_expense(db: Session, expense_id: uuid.UUID) -> Expense:
    expense = db.execute(select(Expense).where(Expense.id == expense_id)).scalars().first()
    if expense is None:
        raise NotFoundError(f"Expense {expense_id} not found.", expense_id=expense_id)
    return expense
