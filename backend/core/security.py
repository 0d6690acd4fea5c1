# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Central security module.  All cryptographic primitives and auth guards live
here.  No other module should touch raw crypto directly.

Responsibilities
----------------
1. Password hashing / verification          (passlib pbkdf2_sha256)
2. JWT creation / decoding                  (PyJWT / HS256)
3. FastAPI dependency guards                (get_current_user, require_admin)
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt as _jwt        # PyJWT
from passlib.hash import pbkdf2_sha256 as _pbkdf2  # pure Python, no binary deps
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from core.logger import logger

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# 1.  pbkdf2_sha256 – password hashing  (pure Python, no glibc constraint)
# ---------------------------------------------------------------------------
# The round count is fixed per deployment (Settings.password_hash_rounds).
# passlib embeds salt and rounds in the hash string, so hashes made with a
# different count still verify.
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 600_000) -> str:
    """Hash a plaintext password with PBKDF2-SHA256."""
    return _pbkdf2.using(rounds=rounds).hash(plain)


def verify_password(plain: str, stored_hash: str) -> bool:
    """
    Constant-time verification of a plaintext password against a
    pbkdf2_sha256 hash produced by :func:`hash_password`.

    Hashes of any other scheme (bcrypt rows from older deployments, the
    placeholder of a synthesized admin) never verify.
    """
    try:
        return _pbkdf2.verify(plain, stored_hash)
    except ValueError:
        logger.warning("Stored password hash has an unsupported format")
        return False


def password_is_usable(stored_hash: str) -> bool:
    """False for placeholders and foreign hash schemes that can never verify."""
    return bool(stored_hash) and _pbkdf2.identify(stored_hash)


# Stored for accounts that must not be able to log in until a password is set
UNUSABLE_PASSWORD = "!"


# ---------------------------------------------------------------------------
# 2.  JWT – access tokens
# ---------------------------------------------------------------------------


def create_access_token(
    data: dict,
    secret: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Sign a JWT with HS256.

    *data* should contain at minimum: sub (email), user_id, role.
    ``iat`` and ``exp`` claims are added automatically.
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    to_encode["iat"] = now
    to_encode["exp"] = now + (expires_delta or timedelta(hours=24))
    return _jwt.encode(to_encode, secret, algorithm=_ALGORITHM)


def decode_access_token(token: str, secret: str) -> dict:
    """
    Decode and verify a JWT.  Raises HTTP 401 on any failure (expired,
    bad signature, malformed).
    """
    try:
        return _jwt.decode(token, secret, algorithms=[_ALGORITHM])
    except _jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
        )
    except _jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )


# ---------------------------------------------------------------------------
# 3.  FastAPI dependency guards
# ---------------------------------------------------------------------------

# The tokenUrl here is only used by the auto-generated OpenAPI docs;
# the actual login endpoint takes a JSON body.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def get_auth_service(request: Request):
    """Dependency: the AuthService built by the application factory."""
    return request.app.state.auth


def get_current_user(
    token: str = Depends(oauth2_scheme),
    auth=Depends(get_auth_service),
):
    """
    Dependency: verify the bearer token and load the user it names.
    Returns a ``UserRecord``.

    Raises 401 if the token is invalid or the user is gone/disabled.
    """
    return auth.verify_token(token)


def require_admin(current_user=Depends(get_current_user)):
    """
    Dependency: wraps :func:`get_current_user` and additionally asserts
    ``role == 'admin'``.  Raises 403 otherwise.
    """
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user
