"""In-app notifications for the current user."""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.deps import get_current_user
from app.core.exceptions import NotFoundError
from app.db.session import get_session, transaction
from app.models.notification import Notification
from app.models.user import User
from app.schemas.notification import NotificationOut

router = APIRouter()


@router.get("", response_model=list[NotificationOut], summary="List my notifications")
def list_notifications(
    db: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_user)],
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
):
    stmt = (
        select(Notification)
        .where(Notification.user_id == current_user.id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    return [NotificationOut.model_validate(n) for n in db.execute(stmt).scalars().all()]


@router.post("/{notification_id}/read", response_model=NotificationOut, summary="Mark a notification read")
def mark_read(
    notification_id: uuid.UUID,
    db: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    with transaction(db):
        row = db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == current_user.id,
            )
        ).scalars().first()
        if row is None:
            raise NotFoundError("Notification not found.", notification_id=notification_id)
        row.is_read = True
    return NotificationOut.model_validate(row)
