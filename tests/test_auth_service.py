from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import HTTPException

from auth.service import AuthService
from core.security import create_access_token
from models.user import UserCreate, UserUpdate
from conftest import PASSWORD


@pytest.fixture
def auth(users):
    return AuthService(users, secret="test-secret", expire_minutes=60)


def _new_user(email="alice@example.com", role="user"):
    return UserCreate(email=email, password=PASSWORD, first_name="Alice", last_name="Smith", role=role)


def test_register_then_login(auth, users):
    registered = auth.register(_new_user())
    result = auth.login("alice@example.com", PASSWORD)

    assert result.user.id == registered.user.id
    claims = jwt.decode(result.token, "test-secret", algorithms=["HS256"])
    assert claims["sub"] == "alice@example.com"
    assert claims["user_id"] == registered.user.id
    assert claims["role"] == "user"
    assert claims["exp"] - claims["iat"] == 3600
    assert users.find_by_id(registered.user.id).last_login_at is not None


def test_register_always_creates_plain_users(auth):
    result = auth.register(_new_user(role="admin"))
    assert result.user.role == "user"


def test_duplicate_registration_conflicts(auth, users):
    auth.register(_new_user())
    with pytest.raises(HTTPException) as err:
        auth.register(_new_user(email="ALICE@example.com"))
    assert err.value.status_code == 409
    assert len(users.find()) == 1


def test_login_failures(auth, users):
    registered = auth.register(_new_user())

    for email, password in (("alice@example.com", "wrong-pass"), ("nobody@example.com", PASSWORD)):
        with pytest.raises(HTTPException) as err:
            auth.login(email, password)
        assert err.value.status_code == 401
        assert err.value.detail == "Invalid email or password"

    users.update(registered.user.id, UserUpdate(is_active=False))
    with pytest.raises(HTTPException) as err:
        auth.login("alice@example.com", PASSWORD)
    assert err.value.status_code == 401
    assert err.value.detail == "Account is deactivated"


def test_verify_token_rechecks_the_user(auth, users):
    registered = auth.register(_new_user())
    assert auth.verify_token(registered.token).id == registered.user.id

    users.update(registered.user.id, UserUpdate(is_active=False))
    with pytest.raises(HTTPException) as err:
        auth.verify_token(registered.token)
    assert err.value.status_code == 401


def test_verify_token_rejects_bad_tokens(auth):
    registered = auth.register(_new_user())
    claims = {"sub": registered.user.email, "user_id": registered.user.id, "role": "user"}

    forged = create_access_token(claims, "another-secret")
    expired = create_access_token(claims, "test-secret", expires_delta=timedelta(seconds=-5))

    for token, detail in ((forged, "Invalid token"), (expired, "Token expired"), ("garbage", "Invalid token")):
        with pytest.raises(HTTPException) as err:
            auth.verify_token(token)
        assert err.value.status_code == 401
        assert err.value.detail == detail


def test_verify_token_for_deleted_user(auth, users):
    registered = auth.register(_new_user())
    users.delete(registered.user.id)
    with pytest.raises(HTTPException) as err:
        auth.verify_token(registered.token)
    assert err.value.detail == "User not found or inactive"


def test_refresh_token(auth, users):
    registered = auth.register(_new_user())
    token = auth.refresh_token(registered.user.id)
    assert auth.verify_token(token).id == registered.user.id

    users.update(registered.user.id, UserUpdate(is_active=False))
    with pytest.raises(HTTPException):
        auth.refresh_token(registered.user.id)


def test_legacy_bcrypt_hash_never_verifies(auth, database, users):
    registered = auth.register(_new_user())
    database.execute(
        "UPDATE users SET password = :pw WHERE id = :id",
        {"pw": "$2b$10$abcdefghijklmnopqrstuuBRQ1Hb0HxUqkR8tSlC1LxJ5m5o0Tye", "id": registered.user.id},
    )
    with pytest.raises(HTTPException) as err:
        auth.login("alice@example.com", PASSWORD)
    assert err.value.status_code == 401
