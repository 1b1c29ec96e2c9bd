"""Tests for bearer token verification."""
import pytest
from fastapi import HTTPException
from jose import jwt

from app.core.config import settings
from app.core.deps import get_current_user
from app.core.security import create_access_token, decode_token


def test_token_round_trip():
    token = create_access_token("abc", role="manager")
    payload = decode_token(token)
    assert payload["sub"] == "abc"
    assert payload["role"] == "manager"
    assert payload["type"] == "access"


def test_current_user_resolved_from_token(db, make_user):
    user = make_user("manager")
    token = create_access_token(str(user.id), role=user.role)

    assert get_current_user(token, db).id == user.id


@pytest.mark.parametrize("token", [
    "not-a-jwt",
    create_access_token("not-a-uuid", role="admin"),
    create_access_token("abc", role="admin", expires_minutes=-5),
    jwt.encode({"sub": "abc", "type": "refresh"}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM),
])
def test_bad_tokens_are_401(db, token):
    with pytest.raises(HTTPException) as excinfo:
        get_current_user(token, db)
    assert excinfo.value.status_code == 401


def test_inactive_user_is_401(db, make_user):
    user = make_user("employee", is_active=False)
    with pytest.raises(HTTPException) as excinfo:
        get_current_user(create_access_token(str(user.id), role=user.role), db)
    assert excinfo.value.status_code == 401
