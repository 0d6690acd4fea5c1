# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Admin endpoints – user lifecycle management.

Every endpoint in this router is guarded by ``require_admin``.  A request
that carries a valid JWT but belongs to a ``user`` role will receive 403
before any business logic runs.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError

from admin.schemas import ChangeRoleRequest, CreateUserRequest
from auth.schemas import MessageResponse, UserPublic
from core.logger import logger
from core.security import require_admin
from models.user import VALID_ROLES, UserCreate, UserRecord, UserUpdate
from repositories.user import UserRepository, get_user_repository

router = APIRouter(prefix="/api/admin", tags=["admin"])

_INVALID_ROLE = "Invalid role. Must be 'admin' or 'user'"


def _target(users: UserRepository, user_id: str) -> UserRecord:
    target = users.find_by_id(user_id)
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return target


# ---------------------------------------------------------------------------
# POST /api/admin/users  – create a new user
# ---------------------------------------------------------------------------


@router.post("/users", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
def create_user(
    body: CreateUserRequest,
    admin: UserRecord = Depends(require_admin),
    users: UserRepository = Depends(get_user_repository),
):
    """Create an account with any role; the only way besides seeding to mint admins."""
    if body.role not in VALID_ROLES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_INVALID_ROLE)

    if len(body.password) < 8:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password must be at least 8 characters long",
        )

    # Uniqueness check
    if users.find_by_email(body.email) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")

    try:
        user = users.create(
            UserCreate(
                email=body.email,
                password=body.password,
                first_name=body.first_name,
                last_name=body.last_name,
                role=body.role,
            )
        )
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")

    logger.info("Admin %s created user %s (role=%s)", admin.id, user.id, user.role)
    return UserPublic.model_validate(user.model_dump(exclude={"password_hash"}))


# ---------------------------------------------------------------------------
# PUT /api/admin/users/{id}/disable  – deactivate a user account
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}/disable", response_model=MessageResponse)
def disable_user(
    user_id: str,
    admin: UserRecord = Depends(require_admin),
    users: UserRepository = Depends(get_user_repository),
):
    """
    Set ``is_active = False``.  The user can no longer log in, and any
    existing tokens will be rejected by ``get_current_user``.

    Guard: an admin cannot disable their own account.
    """
    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot disable yourself",
        )

    _target(users, user_id)
    users.update(user_id, UserUpdate(is_active=False))
    logger.info("Admin %s disabled user %s", admin.id, user_id)
    return MessageResponse(message="User disabled")


# ---------------------------------------------------------------------------
# PUT /api/admin/users/{id}/enable  – re-activate a disabled account
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}/enable", response_model=MessageResponse)
def enable_user(
    user_id: str,
    admin: UserRecord = Depends(require_admin),
    users: UserRepository = Depends(get_user_repository),
):
    """Set ``is_active = True`` so the user can log in again."""
    _target(users, user_id)
    users.update(user_id, UserUpdate(is_active=True))
    logger.info("Admin %s enabled user %s", admin.id, user_id)
    return MessageResponse(message="User enabled")


# ---------------------------------------------------------------------------
# PUT /api/admin/users/{id}/change-role  – promote or demote a user
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}/change-role", response_model=MessageResponse)
def change_role(
    user_id: str,
    body: ChangeRoleRequest,
    admin: UserRecord = Depends(require_admin),
    users: UserRepository = Depends(get_user_repository),
):
    """
    Change the role of an existing user.  Guards:
    * Role value must be 'admin' or 'user'.
    * An admin cannot change their own role (prevents accidental self-lockout).
    """
    if body.role not in VALID_ROLES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_INVALID_ROLE)

    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot change your own role",
        )

    _target(users, user_id)
    users.update(user_id, UserUpdate(role=body.role))
    logger.info("Admin %s set role of %s to %s", admin.id, user_id, body.role)
    return MessageResponse(message="Role updated")


# ---------------------------------------------------------------------------
# DELETE /api/admin/users/{id}  – remove a user and their analyses
# ---------------------------------------------------------------------------


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: str,
    admin: UserRecord = Depends(require_admin),
    users: UserRepository = Depends(get_user_repository),
):
    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete yourself",
        )

    if not users.delete(user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    logger.info("Admin %s deleted user %s", admin.id, user_id)
    return MessageResponse(message="User deleted")
