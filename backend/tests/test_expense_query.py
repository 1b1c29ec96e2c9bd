"""Tests for the typed expense listing query."""
from datetime import date

import pytest
from pydantic import ValidationError

from app.services.expense_query import ExpenseQuery, page_count, run_expense_query


@pytest.fixture
def team(make_user, make_expense):
    admin = make_user("admin")
    manager = make_user("manager")
    report = make_user("employee", manager=manager)
    other = make_user("employee")
    expenses = {
        "manager": make_expense(manager, "40.00"),
        "report": make_expense(report, "50.00"),
        "other": make_expense(other, "60.00"),
    }
    return admin, manager, report, other, expenses


def _ids(items):
    return {e.id for e in items}


def test_employee_sees_only_own(db, team):
    _, _, report, _, expenses = team
    items, total = run_expense_query(db, ExpenseQuery(), report)
    assert _ids(items) == {expenses["report"].id}
    assert total == 1


def test_manager_sees_own_and_direct_reports(db, team):
    _, manager, _, _, expenses = team
    items, total = run_expense_query(db, ExpenseQuery(), manager)
    assert _ids(items) == {expenses["manager"].id, expenses["report"].id}
    assert total == 2


def test_admin_sees_whole_company(db, team):
    admin, *_, expenses = team
    items, total = run_expense_query(db, ExpenseQuery(), admin)
    assert _ids(items) == {e.id for e in expenses.values()}
    assert total == 3


def test_employee_filter_cannot_widen_employee_view(db, team):
    _, _, report, other, expenses = team
    items, _ = run_expense_query(db, ExpenseQuery(employee_id=other.id), report)
    assert _ids(items) == {expenses["report"].id}


def test_filters_combine(db, team):
    admin, _, report, _, expenses = team

    items, _ = run_expense_query(db, ExpenseQuery(employee_id=report.id, status="pending"), admin)
    assert _ids(items) == {expenses["report"].id}

    items, total = run_expense_query(db, ExpenseQuery(status="approved"), admin)
    assert items == [] and total == 0

    items, _ = run_expense_query(
        db, ExpenseQuery(start_date=date(2026, 1, 16), end_date=date(2026, 12, 31)), admin
    )
    assert items == []

    items, _ = run_expense_query(db, ExpenseQuery(category="travel"), admin)
    assert len(items) == 3


def test_pagination(db, team):
    admin, *_ = team
    first, total = run_expense_query(db, ExpenseQuery(page=1, limit=2), admin)
    second, _ = run_expense_query(db, ExpenseQuery(page=2, limit=2), admin)

    assert total == 3
    assert len(first) == 2 and len(second) == 1
    assert not _ids(first) & _ids(second)
    assert page_count(total, 2) == 2


def test_invalid_parameters_rejected():
    with pytest.raises(ValidationError):
        ExpenseQuery(status="lost")
    with pytest.raises(ValidationError):
        ExpenseQuery(limit=500)
