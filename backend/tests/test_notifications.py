"""Tests for notification dispatch and the Celery delivery task."""
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from app.db.session import transaction
from app.models.notification import Notification
from app.services import notifications as notification_svc
from app.workers.notification_tasks import deliver_notification


@pytest.fixture
def employee(make_user):
    return make_user("employee")


def _notify(db, user):
    with transaction(db):
        return notification_svc.notify(
            db, user_id=user.id, expense_id=None, type="expense_status_update",
            title="Expense approved", message="Your expense has been approved",
        )


def test_dispatch_happens_after_commit_only(db, employee):
    with patch.object(notification_svc, "dispatch") as dispatch:
        row = _notify(db, employee)

    dispatch.assert_called_once()
    [outbound] = dispatch.call_args.args[0]
    assert outbound.id == row.id
    assert "notification_outbox" not in db.info


def test_rollback_discards_outbox(db, employee):
    with patch.object(notification_svc, "dispatch") as dispatch:
        with pytest.raises(RuntimeError):
            with transaction(db):
                notification_svc.notify(
                    db, user_id=employee.id, expense_id=None, type="t", title="t", message="m"
                )
                raise RuntimeError("decision failed")

    dispatch.assert_not_called()
    assert db.execute(select(Notification)).scalars().all() == []


def test_celery_transport_enqueues_by_id(db, employee):
    with patch.object(notification_svc.settings, "NOTIFICATION_TRANSPORT", "celery"), \
            patch.object(deliver_notification, "delay") as delay:
        row = _notify(db, employee)

    delay.assert_called_once_with(str(row.id))


def test_deliver_notification_stamps_delivered_at(db, engine, employee):
    row = _notify(db, employee)
    factory = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)

    with patch("app.db.session.get_session_factory", return_value=factory), \
            patch("app.services.email.send_notification_email") as send:
        first = deliver_notification(str(row.id))
        second = deliver_notification(str(row.id))

    assert first == {"status": "delivered"}
    assert second == {"status": "already_delivered"}
    send.assert_called_once()
    assert send.call_args.kwargs["recipient"] == employee.email
    db.expire_all()
    assert db.get(Notification, row.id).delivered_at is not None
