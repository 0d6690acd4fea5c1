# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Pydantic request models for the admin endpoints."""

from pydantic import BaseModel


class CreateUserRequest(BaseModel):
    email: str
    password: str
    first_name: str = ""
    last_name: str = ""
    role: str = "user"  # "admin" or "user"


class ChangeRoleRequest(BaseModel):
    role: str  # "admin" or "user"
