# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Authentication service: login, registration, token verification and refresh.

The routers stay thin; every credential decision is made here and surfaces
as an ``HTTPException`` (401 for authentication, 409 for a taken email).
"""

from dataclasses import dataclass
from datetime import timedelta

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError

from core.logger import logger
from core.security import create_access_token, decode_access_token
from models.user import UserCreate, UserRecord
from repositories.user import UserRepository

# Generic message used for both "no such email" and "wrong password"
_LOGIN_FAIL = "Invalid email or password"
_EMAIL_TAKEN = "User with this email already exists"
_INACTIVE = "User not found or inactive"


@dataclass
class AuthResult:
    token: str
    user: UserRecord


class AuthService:
    def __init__(self, users: UserRepository, secret: str, expire_minutes: int = 1440):
        self.users = users
        self.secret = secret
        self.expire_minutes = expire_minutes

    def login(self, email: str, password: str) -> AuthResult:
        user = self.users.find_by_email(email)

        # Unified failure path, no information leaks about whether the email exists
        if user is None or not self.users.verify_password(user, password):
            logger.info("Failed login for %s", email)
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=_LOGIN_FAIL)

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Account is deactivated",
            )

        self.users.update_last_login(user.id)
        logger.info("User %s logged in", user.id)
        return AuthResult(token=self._issue(user), user=user)

    def register(self, data: UserCreate) -> AuthResult:
        """Create a ``user``-role account and sign the caller in."""
        if self.users.find_by_email(data.email) is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_EMAIL_TAKEN)

        try:
            user = self.users.create(data.model_copy(update={"role": "user"}))
        except IntegrityError:
            # lost a race against a concurrent registration; the unique index caught it
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_EMAIL_TAKEN)

        logger.info("Registered user %s", user.id)
        return AuthResult(token=self._issue(user), user=user)

    def decode_token(self, token: str) -> dict:
        return decode_access_token(token, self.secret)

    def verify_token(self, token: str) -> UserRecord:
        """
        Decode *token* and re-read the user it names.  A deleted or disabled
        account fails even while the token itself is still valid.
        """
        payload = self.decode_token(token)
        user_id = payload.get("user_id")
        user = self.users.find_by_id(user_id) if user_id else None
        if user is None or not user.is_active:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=_INACTIVE)
        return user

    def refresh_token(self, user_id: str) -> str:
        user = self.users.find_by_id(user_id)
        if user is None or not user.is_active:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=_INACTIVE)
        return self._issue(user)

    def _issue(self, user: UserRecord) -> str:
        return create_access_token(
            {"sub": user.email, "user_id": user.id, "role": user.role},
            self.secret,
            expires_delta=timedelta(minutes=self.expire_minutes),
        )
