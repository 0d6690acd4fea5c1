# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Data access for user accounts."""

from typing import List, Optional

import sqlalchemy as sa
from fastapi import Request

from core.security import hash_password, verify_password
from models.user import UserCreate, UserFilters, UserRecord, UserUpdate, users
from repositories.base import BaseRepository


class UserRepository(BaseRepository):
    def __init__(self, db, password_rounds: int = 600_000):
        super().__init__(db)
        self.password_rounds = password_rounds

    def create(self, data: UserCreate) -> UserRecord:
        user_id = self._new_id()
        now = self._now()
        self.execute(
            users.insert().values(
                id=user_id,
                email=data.email.strip().lower(),
                password=hash_password(data.password, self.password_rounds),
                first_name=data.first_name,
                last_name=data.last_name,
                role=data.role,
                is_active=True,
                last_login_at=None,
                created_at=now,
                updated_at=now,
            )
        )
        user = self.find_by_id(user_id)
        if user is None:
            raise RuntimeError("Failed to create user")
        return user

    def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        row = self.query_one(sa.select(users).where(users.c.id == user_id))
        return self._to_record(row) if row else None

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        row = self.query_one(sa.select(users).where(users.c.email == email.strip().lower()))
        return self._to_record(row) if row else None

    def update(self, user_id: str, data: UserUpdate) -> Optional[UserRecord]:
        """Rewrite only the fields present in *data*; None if no such user."""
        if self.find_by_id(user_id) is None:
            return None

        # Every user column is NOT NULL, so an explicit None means "leave as is"
        values = data.model_dump(exclude_unset=True, exclude_none=True)
        values["updated_at"] = self._now()
        self.execute(users.update().where(users.c.id == user_id).values(**values))
        return self.find_by_id(user_id)

    def update_last_login(self, user_id: str) -> None:
        now = self._now()
        self.execute(
            users.update().where(users.c.id == user_id).values(last_login_at=now, updated_at=now)
        )

    def change_password(self, user_id: str, new_password: str) -> bool:
        result = self.execute(
            users.update()
            .where(users.c.id == user_id)
            .values(
                password=hash_password(new_password, self.password_rounds),
                updated_at=self._now(),
            )
        )
        return result.rowcount > 0

    def verify_password(self, user: UserRecord, password: str) -> bool:
        return verify_password(password, user.password_hash)

    def find(self, filters: Optional[UserFilters] = None) -> List[UserRecord]:
        filters = filters or UserFilters()
        stmt = sa.select(users)

        if filters.role:
            stmt = stmt.where(users.c.role == filters.role)
        if filters.is_active is not None:
            stmt = stmt.where(users.c.is_active == filters.is_active)
        if filters.email:
            stmt = stmt.where(users.c.email.contains(filters.email.lower(), autoescape=True))

        stmt = stmt.order_by(users.c.created_at.desc())
        if filters.limit:
            stmt = stmt.limit(filters.limit)
            if filters.offset:
                stmt = stmt.offset(filters.offset)

        return [self._to_record(row) for row in self.query(stmt)]

    def delete(self, user_id: str) -> bool:
        result = self.execute(users.delete().where(users.c.id == user_id))
        return result.rowcount > 0

    def _to_record(self, row: dict) -> UserRecord:
        return UserRecord(
            id=row["id"],
            email=row["email"],
            password_hash=row["password"],
            first_name=row["first_name"] or "",
            last_name=row["last_name"] or "",
            role=row["role"],
            is_active=bool(row["is_active"]),
            last_login_at=self._aware(row["last_login_at"]),
            created_at=self._aware(row["created_at"]),
            updated_at=self._aware(row["updated_at"]),
        )


def get_user_repository(request: Request) -> UserRepository:
    """FastAPI dependency.  Use with Depends(get_user_repository)."""
    return request.app.state.users
