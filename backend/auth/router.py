# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Auth endpoints – registration, login, profile, password change, token
refresh, and the admin user listing.

Security notes
--------------
* Login returns the *same* error message whether the email doesn't exist or
  the password is wrong.  This prevents user-enumeration attacks.
* change-password verifies the current password before accepting the new
  one, so a stolen (but not yet expired) token alone cannot reset it.
"""

import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from auth.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    ProfileResponse,
    RefreshResponse,
    RegisterRequest,
    UserListResponse,
    UserPublic,
)
from auth.service import AuthService
from core.security import get_auth_service, get_current_user, require_admin
from models.user import Role, UserCreate, UserFilters, UserRecord
from repositories.user import UserRepository, get_user_repository

router = APIRouter(prefix="/api/auth", tags=["auth"])

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _validate_new_password(pw: str) -> Optional[str]:
    """
    Return an error string if the password does not meet the minimum policy,
    or None if it is acceptable.
    """
    if len(pw) < 8:
        return "Password must be at least 8 characters long"
    return None


def _public(user: UserRecord) -> UserPublic:
    return UserPublic.model_validate(user.model_dump(exclude={"password_hash"}))


# ---------------------------------------------------------------------------
# POST /api/auth/register
# ---------------------------------------------------------------------------


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(body: RegisterRequest, auth: AuthService = Depends(get_auth_service)):
    """Create a ``user`` account and return a signed JWT for it."""
    if not body.email or not body.password or not body.first_name or not body.last_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email, password, first name, and last name are required",
        )

    if not _EMAIL_RE.match(body.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please provide a valid email address",
        )

    err = _validate_new_password(body.password)
    if err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=err)

    result = auth.register(
        UserCreate(
            email=body.email,
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
        )
    )
    return AuthResponse(
        message="User registered successfully",
        token=result.token,
        user=_public(result.user),
    )


# ---------------------------------------------------------------------------
# POST /api/auth/login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=AuthResponse)
def login(body: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    """Authenticate and return a signed JWT."""
    if not body.email or not body.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email and password are required",
        )

    result = auth.login(body.email, body.password)
    return AuthResponse(message="Login successful", token=result.token, user=_public(result.user))


# ---------------------------------------------------------------------------
# GET /api/auth/profile
# ---------------------------------------------------------------------------


@router.get("/profile", response_model=ProfileResponse)
def profile(current_user: UserRecord = Depends(get_current_user)):
    """Return the authenticated user's public profile (no secrets)."""
    return ProfileResponse(user=_public(current_user))


# ---------------------------------------------------------------------------
# POST /api/auth/change-password
# ---------------------------------------------------------------------------


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    current_user: UserRecord = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repository),
):
    """Change the authenticated user's login password."""
    if _validate_new_password(body.new_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="New password must be at least 8 characters long",
        )

    if not users.verify_password(current_user, body.current_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    if not users.change_password(current_user.id, body.new_password):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    return MessageResponse(message="Password changed successfully")


# ---------------------------------------------------------------------------
# POST /api/auth/refresh
# ---------------------------------------------------------------------------


@router.post("/refresh", response_model=RefreshResponse)
def refresh(
    current_user: UserRecord = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
):
    token = auth.refresh_token(current_user.id)
    return RefreshResponse(message="Token refreshed successfully", token=token)


# ---------------------------------------------------------------------------
# GET /api/auth/users  – admin listing
# ---------------------------------------------------------------------------


@router.get("/users", response_model=UserListResponse)
def list_users(
    role: Optional[Role] = None,
    is_active: Optional[bool] = None,
    email: Optional[str] = None,
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    admin: UserRecord = Depends(require_admin),
    users: UserRepository = Depends(get_user_repository),
):
    """Return users newest-first (no password data – handled by the schema)."""
    filters = UserFilters(role=role, is_active=is_active, email=email, limit=limit, offset=offset)
    return UserListResponse(users=[_public(u) for u in users.find(filters)])
