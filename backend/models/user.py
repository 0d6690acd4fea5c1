# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""User table and the value objects the user repository speaks in."""

from datetime import datetime
from typing import Literal, Optional

import sqlalchemy as sa
from pydantic import BaseModel

from database import metadata

Role = Literal["admin", "user"]

VALID_ROLES = ("admin", "user")

users = sa.Table(
    "users",
    metadata,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("email", sa.String(255), nullable=False),
    # pbkdf2_sha256 hash string; passlib embeds the salt in it
    sa.Column("password", sa.String(255), nullable=False),
    sa.Column("first_name", sa.String(255), nullable=False, server_default=""),
    sa.Column("last_name", sa.String(255), nullable=False, server_default=""),
    sa.Column("role", sa.String(16), nullable=False, server_default="user"),
    sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    sa.Index("idx_users_email", "email", unique=True),
    sa.Index("idx_users_role", "role"),
    sa.Index("idx_users_is_active", "is_active"),
)


class UserRecord(BaseModel):
    id: str
    email: str
    password_hash: str
    first_name: str
    last_name: str
    role: Role
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class UserCreate(BaseModel):
    email: str
    password: str
    first_name: str = ""
    last_name: str = ""
    role: Role = "user"


class UserUpdate(BaseModel):
    """Only the fields that are explicitly set get written."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class UserFilters(BaseModel):
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    email: Optional[str] = None  # substring match
    limit: Optional[int] = None
    offset: Optional[int] = None
