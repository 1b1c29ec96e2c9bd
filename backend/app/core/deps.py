from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.permissions import Action, ensure
from app.core.security import decode_token
from app.db.session import get_session
from app.models.user import User
from app.services.fx import CurrencyConverter

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=True)


def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[Session, Depends(get_session)],
) -> User:
    """Validate JWT and return the active User ORM object."""
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise credentials_exc
        user_id = UUID(payload.get("sub") or "")
    except (JWTError, ValueError):
        raise credentials_exc

    user = db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if user is None or not user.is_active:
        raise credentials_exc
    return user


def require_capability(action: Action):
    """Dependency factory - 403 unless the user's role allows ``action``."""
    def check(user: Annotated[User, Depends(get_current_user)]) -> User:
        ensure(user, action)
        return user
    return check


def get_converter(request: Request) -> CurrencyConverter:
    """The converter (and its rate cache) created at application startup."""
    return request.app.state.converter
