"""Directory lookups the approval engine needs: managers and company approvers."""
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.user import APPROVER_ROLES, User, UserRole

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: uuid.UUID) -> User | None:
    return db.execute(select(User).where(User.id == user_id)).scalars().first()


def get_active_company_user(db: Session, company_id: uuid.UUID, user_id: uuid.UUID) -> User | None:
    """Return the user only if they are active and belong to the company."""
    return db.execute(
        select(User).where(
            User.id == user_id,
            User.company_id == company_id,
            User.is_active.is_(True),
        )
    ).scalars().first()


def get_active_approver(db: Session, company_id: uuid.UUID, user_id: uuid.UUID) -> User | None:
    """Return the user only if they can sign off: active, in the company, manager or admin."""
    user = get_active_company_user(db, company_id, user_id)
    if user is None or user.role not in APPROVER_ROLES:
        return None
    return user


def get_manager_id(db: Session, employee_id: uuid.UUID) -> uuid.UUID | None:
    """Return the employee's direct manager, if that manager can still approve."""
    employee = get_user(db, employee_id)
    if employee is None or employee.manager_id is None:
        return None

    manager = get_active_approver(db, employee.company_id, employee.manager_id)
    if manager is None:
        logger.warning(
            "Manager %s of employee %s is inactive, outside the company or not an approver.",
            employee.manager_id, employee_id,
        )
        return None
    return manager.id


def resolve_admin_approver(db: Session, company_id: uuid.UUID) -> uuid.UUID | None:
    """Pick the admin who signs off an 'admin' step.

    Policy: the active admin with the earliest ``created_at``, ties broken by
    id, so every workflow built for the company lands on the same person.
    """
    return db.execute(
        select(User.id)
        .where(
            User.company_id == company_id,
            User.role == UserRole.admin.value,
            User.is_active.is_(True),
        )
        .order_by(User.created_at.asc(), User.id.asc())
        .limit(1)
    ).scalars().first()


def list_company_approvers(db: Session, company_id: uuid.UUID) -> list[uuid.UUID]:
    """All active managers and admins of the company, in a stable order."""
    return list(
        db.execute(
            select(User.id)
            .where(
                User.company_id == company_id,
                User.role.in_(APPROVER_ROLES),
                User.is_active.is_(True),
            )
            .order_by(User.created_at.asc(), User.id.asc())
        ).scalars().all()
    )
