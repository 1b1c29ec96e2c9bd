"""Shared fixtures: an in-memory SQLite database and row factories.

SQLite stands in for Postgres here. pysqlite's own transaction handling has
to be switched off for SAVEPOINT to work, which the notification and audit
writers rely on.
"""
import itertools
import os
import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal

os.environ.setdefault("APP_ENV", "test")

import pytest  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import app.models  # noqa: E402,F401
from app.db.base import Base  # noqa: E402
from app.models.approval_rule import ApprovalRule, ApprovalRuleStep  # noqa: E402
from app.models.company import Company  # noqa: E402
from app.models.expense import Expense, ExpenseStatus  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.workflow_builder import build_workflow  # noqa: E402


# ─── Database ─────────────────────────────────────────────────────────────────

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    session = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


# ─── Factories ────────────────────────────────────────────────────────────────

@pytest.fixture
def clock():
    """Strictly increasing created_at values so 'earliest' is well defined."""
    start = datetime(2026, 1, 1, 9, 0, 0)
    counter = itertools.count()
    return lambda: start + timedelta(minutes=next(counter))


@pytest.fixture
def company(db) -> Company:
    row = Company(name="Acme Corp", base_currency="USD")
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def make_user(db, company, clock):
    def _make(role: str = "employee", manager: User | None = None, is_active: bool = True,
              company_id: uuid.UUID | None = None, name: str | None = None) -> User:
        uid = uuid.uuid4()
        user = User(
            id=uid,
            company_id=company_id or company.id,
            email=f"{role}-{uid.hex[:8]}@example.com",
            name=name or f"{role.title()} {uid.hex[:4]}",
            role=role,
            manager_id=manager.id if manager else None,
            is_active=is_active,
            created_at=clock(),
        )
        db.add(user)
        db.commit()
        return user
    return _make


@pytest.fixture
def make_rule(db, company, clock):
    def _make(rule_type: str, min_amount="0", max_amount=None, percentage_required=None,
              specific_approver_id=None, sequence_order: int = 1, steps=(),
              is_active: bool = True, name: str | None = None) -> ApprovalRule:
        rule = ApprovalRule(
            id=uuid.uuid4(),
            company_id=company.id,
            name=name or f"{rule_type} rule",
            rule_type=rule_type,
            min_amount=Decimal(min_amount),
            max_amount=Decimal(max_amount) if max_amount is not None else None,
            percentage_required=percentage_required,
            specific_approver_id=specific_approver_id,
            sequence_order=sequence_order,
            is_active=is_active,
            created_at=clock(),
        )
        rule.steps = [
            ApprovalRuleStep(step_order=order, approver_role=role, approver_id=approver_id)
            for order, role, approver_id in steps
        ]
        db.add(rule)
        db.commit()
        return rule
    return _make


@pytest.fixture
def make_expense(db, company, clock):
    """Insert a pending expense and, when a rule is given, build its ledger."""
    def _make(employee: User, amount="100.00", rule: ApprovalRule | None = None) -> Expense:
        expense = Expense(
            company_id=company.id,
            employee_id=employee.id,
            category="travel",
            amount=Decimal(amount),
            currency="USD",
            converted_amount=Decimal(amount),
            description="Client visit",
            expense_date=date(2026, 1, 15),
            status=ExpenseStatus.pending.value,
            approval_rule_id=rule.id if rule else None,
            created_at=clock(),
        )
        db.add(expense)
        db.flush()
        if rule is not None:
            build_workflow(db, expense, rule)
        db.commit()
        return expense
    return _make
