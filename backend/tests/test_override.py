"""Tests for the administrative override escape hatch."""
import json
import uuid

import pytest
from sqlalchemy import select

from app.core.exceptions import ExpenseFinalizedError, NotFoundError
from app.models.approval import ExpenseApproval
from app.models.audit import AuditLog
from app.models.notification import Notification
from app.services.decision_processor import record_decision
from app.services.override import override_expense


@pytest.fixture
def setup(make_user, make_rule, make_expense):
    admin = make_user("admin")
    manager = make_user("manager")
    employee = make_user("employee", manager=manager)
    rule = make_rule("sequential", steps=[(1, "manager", None), (2, "admin", None)])
    return make_expense(employee, rule=rule), admin, manager, employee


def _rows(db, expense):
    db.expire_all()
    return list(
        db.execute(
            select(ExpenseApproval)
            .where(ExpenseApproval.expense_id == expense.id)
            .order_by(ExpenseApproval.step_order)
        ).scalars().all()
    )


def test_override_with_no_decisions_closes_every_row(db, setup):
    expense, admin, _, employee = setup

    result = override_expense(db, expense.id, admin.id, "approved", comments="Urgent client trip")

    assert result.status == "approved"
    rows = _rows(db, expense)
    assert [r.status for r in rows] == ["approved", "approved"]
    assert all(r.comments == "Admin override: Urgent client trip" for r in rows)
    assert all(r.decided_at is not None for r in rows)


def test_override_keeps_earlier_decisions(db, setup):
    expense, admin, manager, _ = setup
    record_decision(db, expense.id, manager.id, "approved", comments="fine by me")

    override_expense(db, expense.id, admin.id, "rejected", comments="Policy breach")

    manager_row, admin_row = _rows(db, expense)
    assert (manager_row.status, manager_row.comments) == ("approved", "fine by me")
    assert (admin_row.status, admin_row.comments) == ("rejected", "Admin override: Policy breach")


def test_override_without_comment(db, setup):
    expense, admin, _, _ = setup

    override_expense(db, expense.id, admin.id, "rejected")

    assert {r.comments for r in _rows(db, expense)} == {"Admin override:"}


def test_override_applies_to_terminal_expense(db, setup):
    expense, admin, _, _ = setup
    override_expense(db, expense.id, admin.id, "approved")

    assert override_expense(db, expense.id, admin.id, "rejected").status == "rejected"


def test_override_is_audited(db, setup):
    expense, admin, _, _ = setup

    override_expense(db, expense.id, admin.id, "approved", comments="CEO asked")

    entry = db.execute(
        select(AuditLog).where(AuditLog.expense_id == expense.id, AuditLog.action == "admin_override")
    ).scalars().one()
    assert entry.actor_id == admin.id
    assert json.loads(entry.before_state) == {"expense_status": "pending"}
    after = json.loads(entry.after_state)
    assert after["expense_status"] == "approved"
    assert after["comments"] == "CEO asked"
    assert len(after["closed_approvals"]) == 2


def test_override_notifies_owner(db, setup):
    expense, admin, _, employee = setup

    override_expense(db, expense.id, admin.id, "rejected")

    notes = db.execute(
        select(Notification).where(
            Notification.expense_id == expense.id, Notification.type == "admin_override"
        )
    ).scalars().all()
    assert [(n.user_id, n.title) for n in notes] == [(employee.id, "Expense rejected by Admin")]


def test_decisions_after_override_are_refused(db, setup):
    expense, admin, manager, _ = setup
    override_expense(db, expense.id, admin.id, "approved")

    with pytest.raises(ExpenseFinalizedError):
        record_decision(db, expense.id, manager.id, "approved")


def test_invalid_action(db, setup):
    expense, admin, _, _ = setup
    with pytest.raises(ValueError):
        override_expense(db, expense.id, admin.id, "pending")


def test_missing_expense(db, setup):
    _, admin, _, _ = setup
    with pytest.raises(NotFoundError):
        override_expense(db, uuid.uuid4(), admin.id, "approved")
