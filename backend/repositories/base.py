# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Common plumbing for the repositories.

A repository is built on any object with the executor interface
(``execute`` / ``query`` / ``query_one`` / ``transaction`` / ``storage``):
the process-wide :class:`database.Database`, or the executor yielded by
``Database.transaction()`` when several statements must commit together.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional, Union

from database import parse_timestamp


class BaseRepository:
    def __init__(self, db):
        self.db = db

    def execute(self, statement, params=None):
        return self.db.execute(statement, params)

    def query(self, statement, params=None):
        return self.db.query(statement, params)

    def query_one(self, statement, params=None):
        return self.db.query_one(statement, params)

    def transaction(self):
        return self.db.transaction()

    @property
    def storage(self):
        return self.db.storage

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def _aware(value: Union[datetime, str, None]) -> Optional[datetime]:
        """
        SQLite hands timestamps back without a zone; they are stored as UTC.
        Tables left by older deployments may still hold ISO-8601 text.
        """
        if value is None:
            return None
        if isinstance(value, str):
            return parse_timestamp(value)
        if value.tzinfo is not None:
            return value
        return value.replace(tzinfo=timezone.utc)

    @staticmethod
    def _utc(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
