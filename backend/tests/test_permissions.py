"""Tests for the capability checks."""
import uuid

import pytest

from app.core.exceptions import PermissionDeniedError
from app.core.permissions import Action, ExpenseResource, can, ensure, expense_resource
from app.models.user import User

COMPANY = uuid.uuid4()


def _user(role: str, company_id=COMPANY, is_active=True) -> User:
    return User(id=uuid.uuid4(), company_id=company_id, email="u@example.com", name="U",
                role=role, is_active=is_active)


def _resource(employee_id, manager_id=None, approver_ids=(), company_id=COMPANY) -> ExpenseResource:
    return ExpenseResource(
        id=uuid.uuid4(),
        company_id=company_id,
        employee_id=employee_id,
        employee_manager_id=manager_id,
        approver_ids=frozenset(approver_ids),
    )


@pytest.mark.parametrize("role,allowed", [("admin", True), ("manager", False), ("employee", False)])
def test_rule_management_and_override_are_admin_only(role, allowed):
    user = _user(role)
    assert can(user, Action.manage_rules) is allowed
    assert can(user, Action.override_expense) is allowed


@pytest.mark.parametrize("role,allowed", [("admin", True), ("manager", True), ("employee", False)])
def test_deciding_needs_an_approver_role(role, allowed):
    assert can(_user(role), Action.decide_approval) is allowed
    assert can(_user(role), Action.view_pending_approvals) is allowed


def test_everyone_may_submit_and_list():
    for role in ("admin", "manager", "employee"):
        assert can(_user(role), Action.submit_expense)
        assert can(_user(role), Action.list_expenses)


def test_inactive_or_missing_user_may_do_nothing():
    assert not can(_user("admin", is_active=False), Action.manage_rules)
    assert not can(None, Action.submit_expense)


def test_view_expense_rules():
    owner = _user("employee")
    manager = _user("manager")
    approver = _user("manager")
    outsider = _user("employee")
    resource = _resource(owner.id, manager_id=manager.id, approver_ids=[approver.id])

    assert can(owner, Action.view_expense, resource)
    assert can(manager, Action.view_expense, resource)
    assert can(approver, Action.view_expense, resource)
    assert can(_user("admin"), Action.view_expense, resource)
    assert not can(outsider, Action.view_expense, resource)
    assert not can(_user("manager"), Action.view_expense, resource)


def test_other_company_is_always_denied():
    admin = _user("admin")
    foreign = _resource(uuid.uuid4(), company_id=uuid.uuid4())
    assert not can(admin, Action.view_expense, foreign)
    assert not can(admin, Action.override_expense, foreign)


def test_ensure_raises_permission_denied():
    with pytest.raises(PermissionDeniedError) as excinfo:
        ensure(_user("employee"), Action.manage_rules)
    assert excinfo.value.http_status == 403
    assert "manage rules" in excinfo.value.message


def test_expense_resource_collects_manager_and_approvers(db, make_user, make_rule, make_expense):
    manager = make_user("manager")
    cfo = make_user("admin")
    employee = make_user("employee", manager=manager)
    expense = make_expense(employee, rule=make_rule("specific_approver", specific_approver_id=cfo.id))

    resource = expense_resource(db, expense)

    assert resource.employee_manager_id == manager.id
    assert resource.approver_ids == frozenset({cfo.id})
