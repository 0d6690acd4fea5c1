# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the auth endpoints."""

from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field


# -- Requests --------------------------------------------------------------


class RegisterRequest(BaseModel):
    email: str
    password: str
    # older clients send camelCase names
    first_name: str = Field(validation_alias=AliasChoices("first_name", "firstName"))
    last_name: str = Field(validation_alias=AliasChoices("last_name", "lastName"))


class LoginRequest(BaseModel):
    email: str
    password: str


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(
        validation_alias=AliasChoices("current_password", "currentPassword")
    )
    new_password: str = Field(validation_alias=AliasChoices("new_password", "newPassword"))


# -- Responses -------------------------------------------------------------


class UserPublic(BaseModel):
    """Everything about a user except the password hash."""

    id: str
    email: str
    first_name: str
    last_name: str
    role: str
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    message: str
    token: str
    token_type: str = "bearer"
    user: UserPublic


class ProfileResponse(BaseModel):
    user: UserPublic


class RefreshResponse(BaseModel):
    message: str
    token: str


class MessageResponse(BaseModel):
    message: str


class UserListResponse(BaseModel):
    users: List[UserPublic]
