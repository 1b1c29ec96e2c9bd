"""Tests for ledger construction per rule type."""
import pytest
from sqlalchemy import select

from app.core.exceptions import ConfigurationError
from app.models.approval import ExpenseApproval
from app.models.company import Company
from app.models.expense import Expense
from app.models.notification import Notification
from app.services.directory import resolve_admin_approver


def _ledger(db, expense):
    return list(
        db.execute(
            select(ExpenseApproval)
            .where(ExpenseApproval.expense_id == expense.id)
            .order_by(ExpenseApproval.step_order)
        ).scalars().all()
    )


def _requested(db, expense):
    return {
        n.user_id
        for n in db.execute(
            select(Notification).where(
                Notification.expense_id == expense.id,
                Notification.type == "approval_requested",
            )
        ).scalars().all()
    }


# ─── Sequential ───────────────────────────────────────────────────────────────

def test_sequential_resolves_each_step(db, make_user, make_rule, make_expense):
    admin = make_user("admin")
    manager = make_user("manager")
    finance = make_user("manager", name="Finance")
    employee = make_user("employee", manager=manager)
    rule = make_rule("sequential", steps=[
        (1, "manager", None),
        (2, "admin", None),
        (5, "specific_user", finance.id),
    ])

    expense = make_expense(employee, rule=rule)
    rows = _ledger(db, expense)

    assert [(r.approver_id, r.step_order) for r in rows] == [
        (manager.id, 1), (admin.id, 2), (finance.id, 5),
    ]
    assert all(r.status == "pending" for r in rows)


def test_sequential_notifies_first_step_only(db, make_user, make_rule, make_expense):
    make_user("admin")
    manager = make_user("manager")
    employee = make_user("employee", manager=manager)
    rule = make_rule("sequential", steps=[(1, "manager", None), (2, "admin", None)])

    expense = make_expense(employee, rule=rule)

    assert _requested(db, expense) == {manager.id}


def test_step_without_manager_is_skipped(db, make_user, make_rule, make_expense):
    admin = make_user("admin")
    employee = make_user("employee")
    rule = make_rule("sequential", steps=[(1, "manager", None), (2, "admin", None)])

    expense = make_expense(employee, rule=rule)
    rows = _ledger(db, expense)

    assert [(r.approver_id, r.step_order) for r in rows] == [(admin.id, 2)]
    assert _requested(db, expense) == {admin.id}


def test_inactive_manager_is_skipped(db, make_user, make_rule, make_expense):
    admin = make_user("admin")
    manager = make_user("manager", is_active=False)
    employee = make_user("employee", manager=manager)
    rule = make_rule("sequential", steps=[(1, "manager", None), (2, "admin", None)])

    rows = _ledger(db, make_expense(employee, rule=rule))

    assert [r.approver_id for r in rows] == [admin.id]


def test_inactive_specific_user_step_is_skipped(db, make_user, make_rule, make_expense):
    admin = make_user("admin")
    finance = make_user("manager", name="Finance")
    employee = make_user("employee")
    rule = make_rule("sequential", steps=[(1, "admin", None), (2, "specific_user", finance.id)])
    finance.is_active = False
    db.commit()

    rows = _ledger(db, make_expense(employee, rule=rule))

    assert [(r.approver_id, r.step_order) for r in rows] == [(admin.id, 1)]


def test_manager_without_approver_role_is_skipped(db, make_user, make_rule, make_expense):
    admin = make_user("admin")
    buddy = make_user("employee")
    employee = make_user("employee", manager=buddy)
    rule = make_rule("sequential", steps=[(1, "manager", None), (2, "admin", None)])

    rows = _ledger(db, make_expense(employee, rule=rule))

    assert [r.approver_id for r in rows] == [admin.id]


def test_specific_user_step_without_approver_role_is_skipped(db, make_user, make_rule, make_expense):
    admin = make_user("admin")
    clerk = make_user("employee", name="Clerk")
    employee = make_user("employee")
    rule = make_rule("sequential", steps=[(1, "specific_user", clerk.id), (2, "admin", None)])

    rows = _ledger(db, make_expense(employee, rule=rule))

    assert [(r.approver_id, r.step_order) for r in rows] == [(admin.id, 2)]


def test_no_resolvable_step_raises_and_persists_nothing(db, make_user, make_rule, make_expense):
    employee = make_user("employee")
    rule = make_rule("sequential", steps=[(1, "manager", None)])

    with pytest.raises(ConfigurationError):
        make_expense(employee, rule=rule)
    db.rollback()

    assert db.execute(select(Expense)).scalars().all() == []
    assert db.execute(select(ExpenseApproval)).scalars().all() == []


def test_sequential_without_steps_raises(db, make_user, make_rule, make_expense):
    employee = make_user("employee")
    rule = make_rule("sequential")

    with pytest.raises(ConfigurationError, match="no steps"):
        make_expense(employee, rule=rule)


def test_same_user_on_two_steps_gets_one_row(db, make_user, make_rule, make_expense):
    admin = make_user("admin")
    employee = make_user("employee", manager=admin)
    rule = make_rule("sequential", steps=[(1, "manager", None), (2, "admin", None)])

    rows = _ledger(db, make_expense(employee, rule=rule))

    assert [(r.approver_id, r.step_order) for r in rows] == [(admin.id, 1)]


# ─── Admin resolution ─────────────────────────────────────────────────────────

def test_admin_resolution_picks_earliest_active_admin(db, company, make_user):
    make_user("admin", is_active=False)
    first_active = make_user("admin")
    make_user("admin")

    assert resolve_admin_approver(db, company.id) == first_active.id


def test_admin_resolution_without_admin_returns_none(db, company, make_user):
    make_user("manager")
    assert resolve_admin_approver(db, company.id) is None


# ─── Percentage ───────────────────────────────────────────────────────────────

def test_percentage_assigns_every_active_approver(db, make_user, make_rule, make_expense):
    other = Company(name="Other Inc", base_currency="EUR")
    db.add(other)
    db.commit()

    approvers = {make_user("manager").id, make_user("manager").id, make_user("admin").id}
    make_user("manager", is_active=False)
    make_user("manager", company_id=other.id)
    employee = make_user("employee")
    rule = make_rule("percentage", percentage_required=60)

    expense = make_expense(employee, rule=rule)
    rows = _ledger(db, expense)

    assert {r.approver_id for r in rows} == approvers
    assert {r.step_order for r in rows} == {1}
    assert _requested(db, expense) == approvers


def test_percentage_without_threshold_raises(db, make_user, make_rule, make_expense):
    make_user("manager")
    employee = make_user("employee")
    rule = make_rule("percentage")

    with pytest.raises(ConfigurationError):
        make_expense(employee, rule=rule)


# ─── Specific approver / hybrid ───────────────────────────────────────────────

def test_specific_approver_single_row(db, make_user, make_rule, make_expense):
    cfo = make_user("manager", name="CFO")
    make_user("manager")
    employee = make_user("employee")
    rule = make_rule("specific_approver", specific_approver_id=cfo.id)

    rows = _ledger(db, make_expense(employee, rule=rule))

    assert [(r.approver_id, r.step_order) for r in rows] == [(cfo.id, 1)]


def test_specific_approver_inactive_raises(db, make_user, make_rule, make_expense):
    cfo = make_user("manager", is_active=False)
    employee = make_user("employee")
    rule = make_rule("specific_approver", specific_approver_id=cfo.id)

    with pytest.raises(ConfigurationError):
        make_expense(employee, rule=rule)


def test_specific_approver_without_approver_role_raises(db, make_user, make_rule, make_expense):
    clerk = make_user("employee", name="Clerk")
    employee = make_user("employee")
    rule = make_rule("specific_approver", specific_approver_id=clerk.id)

    with pytest.raises(ConfigurationError, match="manager or admin"):
        make_expense(employee, rule=rule)


def test_hybrid_is_union_of_both_sets(db, make_user, make_rule, make_expense):
    managers = {make_user("manager").id for _ in range(4)}
    auditor = make_user("admin", name="Controller")
    employee = make_user("employee")
    rule = make_rule("hybrid", percentage_required=50, specific_approver_id=auditor.id)

    rows = _ledger(db, make_expense(employee, rule=rule))

    assert {r.approver_id for r in rows} == managers | {auditor.id}
    assert len(rows) == 5


def test_hybrid_specific_approver_who_is_also_a_manager_gets_one_row(db, make_user, make_rule, make_expense):
    cfo = make_user("manager", name="CFO")
    make_user("manager")
    employee = make_user("employee")
    rule = make_rule("hybrid", percentage_required=50, specific_approver_id=cfo.id)

    rows = _ledger(db, make_expense(employee, rule=rule))

    assert sorted(r.approver_id for r in rows).count(cfo.id) == 1
    assert len(rows) == 2


def test_unknown_rule_type_raises(db, make_user, make_rule, make_expense):
    make_user("manager")
    employee = make_user("employee")
    rule = make_rule("round_robin")

    with pytest.raises(ConfigurationError, match="Unknown rule type"):
        make_expense(employee, rule=rule)
