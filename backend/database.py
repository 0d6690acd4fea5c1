# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Storage engines, the shared table metadata, and the :class:`Database`
service that every repository runs its statements through.

Engine-specific behaviour (connection options, locking, SQL date arithmetic,
how a legacy table gains a new column) lives in one :class:`StorageEngine`
subclass per backend.  Nothing above this module branches on the engine type.
"""

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import sqlalchemy as sa
from alembic import command
from alembic.config import Config as AlembicConfig
from fastapi import Request
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.exc import InvalidRequestError
from sqlalchemy.pool import StaticPool

from core.config import DatabaseConfig, ServerConfig, Settings, SqliteConfig, get_database_config
from core.logger import logger

_MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

# Every table of the application registers itself here (see models/).
metadata = sa.MetaData()


# ---------------------------------------------------------------------------
# Storage engines
# ---------------------------------------------------------------------------


class StorageEngine(ABC):
    """One concrete backend: how to connect to it and where it differs."""

    name: str = ""
    # Whether CREATE/DROP/ALTER roll back with the surrounding transaction
    transactional_ddl: bool = True

    def __init__(self, config: DatabaseConfig):
        self.config = config

    @abstractmethod
    def url(self) -> URL:
        """SQLAlchemy URL for this backend."""

    def engine_options(self) -> Dict[str, Any]:
        return {"pool_pre_ping": True}

    def create_engine(self) -> Engine:
        engine = sa.create_engine(self.url(), **self.engine_options())
        self.install_hooks(engine)
        return engine

    def install_hooks(self, engine: Engine) -> None:
        """Attach engine event listeners.  Default: none."""

    def lock(self):
        """Context manager serializing access to the connection, if needed."""
        return nullcontext()

    @abstractmethod
    def elapsed_seconds(self, start, end) -> sa.ColumnElement:
        """SQL expression for the seconds between two timestamp columns."""

    @abstractmethod
    def add_ownership_column(self, op, table: sa.Table, column: str, owner_id: Optional[str]) -> None:
        """
        Bring an existing *table* that lacks *column* up to the definition in
        *table*, assigning *owner_id* to every row already stored.
        """

    def describe(self) -> str:
        return self.name


class SqliteStorage(StorageEngine):
    """
    Embedded file engine.  One shared connection, serialized by a lock.

    pysqlite's own transaction handling skips DDL, so the driver is put in
    autocommit mode and ``BEGIN`` is emitted explicitly whenever SQLAlchemy
    starts a transaction.  That makes DDL transactional as well.
    """

    name = "sqlite"

    def __init__(self, config: SqliteConfig):
        super().__init__(config)
        self._lock = threading.RLock()

    def url(self) -> URL:
        return URL.create("sqlite", database=self.config.path)

    def engine_options(self) -> Dict[str, Any]:
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }

    def install_hooks(self, engine: Engine) -> None:
        in_memory = self.config.path in ("", ":memory:")

        @sa.event.listens_for(engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys = ON")
            if not in_memory:
                cursor.execute("PRAGMA journal_mode = WAL")
            cursor.close()

        @sa.event.listens_for(engine, "begin")
        def _on_begin(conn):
            conn.exec_driver_sql("BEGIN")

    def lock(self):
        return self._lock

    def elapsed_seconds(self, start, end) -> sa.ColumnElement:
        return (sa.func.julianday(end) - sa.func.julianday(start)) * 86400.0

    def add_ownership_column(self, op, table, column, owner_id):
        # SQLite cannot add a foreign-key column in place: export, drop,
        # recreate, reinsert.
        bind = op.get_bind()
        rows = bind.execute(sa.text(f"SELECT * FROM {table.name}")).mappings().all()
        logger.info("Rewriting table %s (%d rows) to add %s", table.name, len(rows), column)

        op.drop_table(table.name)
        table.create(bind)

        if rows:
            bind.execute(
                table.insert(),
                [_restore_row(table, row, {column: owner_id}) for row in rows],
            )

    def describe(self) -> str:
        return f"sqlite:{self.config.path}"


class _ServerStorage(StorageEngine):
    """Client/server engines accessed through a bounded connection pool."""

    driver: str = ""

    def url(self) -> URL:
        return URL.create(
            self.driver,
            username=self.config.username or None,
            password=self.config.password or None,
            host=self.config.host,
            port=self.config.port,
            database=self.config.database,
        )

    def engine_options(self) -> Dict[str, Any]:
        options = super().engine_options()
        options.update(
            pool_size=self.config.pool_min,
            max_overflow=self.config.pool_max - self.config.pool_min,
            pool_recycle=1800,
        )
        return options

    def add_ownership_column(self, op, table, column, owner_id):
        # In-place: add as nullable, backfill, then tighten.  owner_id is only
        # None when the table is empty.
        self.convert_text_timestamps(op, table)
        definition = table.c[column]
        op.add_column(table.name, sa.Column(column, definition.type, nullable=True))
        if owner_id is not None:
            op.execute(table.update().values({column: owner_id}))
        op.alter_column(table.name, column, existing_type=definition.type, nullable=False)
        op.create_foreign_key(
            f"fk_{table.name}_{column}", table.name, "users", [column], ["id"], ondelete="CASCADE"
        )
        op.create_index(f"idx_{table.name}_{column}", table.name, [column])

    def convert_text_timestamps(self, op, table: sa.Table) -> None:
        """
        Older deployments kept timestamps as ISO-8601 text.  Retype every
        such column to the DateTime declared in *table*.
        """
        reflected = {c["name"]: c for c in sa.inspect(op.get_bind()).get_columns(table.name)}
        for col in table.columns:
            existing = reflected.get(col.name)
            if existing is None or not isinstance(col.type, sa.DateTime):
                continue
            if isinstance(existing["type"], sa.String):
                logger.info("Converting %s.%s from text to timestamp", table.name, col.name)
                self.retype_timestamp(op, table.name, col, existing)

    @abstractmethod
    def retype_timestamp(self, op, table_name: str, column: sa.Column, existing: Dict[str, Any]) -> None:
        """Alter one text column holding ISO-8601 strings to *column*'s type."""

    def describe(self) -> str:
        return f"{self.name}://{self.config.host}:{self.config.port}/{self.config.database}"


class PostgresStorage(_ServerStorage):
    name = "postgresql"
    driver = "postgresql+psycopg"

    def engine_options(self) -> Dict[str, Any]:
        options = super().engine_options()
        options["connect_args"] = {
            "sslmode": "require" if self.config.ssl else "prefer",
            "connect_timeout": 2,
        }
        return options

    def elapsed_seconds(self, start, end) -> sa.ColumnElement:
        return sa.extract("epoch", end - start)

    def retype_timestamp(self, op, table_name, column, existing):
        op.alter_column(
            table_name,
            column.name,
            type_=column.type,
            existing_type=existing["type"],
            existing_nullable=existing["nullable"],
            postgresql_using=f"{column.name}::timestamptz",
        )


class MySQLStorage(_ServerStorage):
    """MySQL / MariaDB.  DDL statements commit implicitly."""

    name = "mysql"
    driver = "mysql+pymysql"
    transactional_ddl = False

    def url(self) -> URL:
        return super().url().update_query_dict({"charset": "utf8mb4"})

    def engine_options(self) -> Dict[str, Any]:
        options = super().engine_options()
        connect_args: Dict[str, Any] = {"connect_timeout": 2}
        if self.config.ssl:
            connect_args["ssl"] = {"check_hostname": False}
        options["connect_args"] = connect_args
        return options

    def elapsed_seconds(self, start, end) -> sa.ColumnElement:
        return sa.func.timestampdiff(sa.literal_column("MICROSECOND"), start, end) / 1000000.0

    def retype_timestamp(self, op, table_name, column, existing):
        # MySQL only casts 'YYYY-MM-DD HH:MM:SS[.ffffff]'; rewrite the text
        # as UTC in that form first.
        bind = op.get_bind()
        raw = sa.table(table_name, sa.column("id"), sa.column(column.name))
        rows = bind.execute(
            sa.select(raw.c.id, raw.c[column.name]).where(raw.c[column.name].is_not(None))
        ).all()
        for row_id, value in rows:
            bind.execute(
                raw.update()
                .where(raw.c.id == row_id)
                .values({column.name: parse_timestamp(value).strftime("%Y-%m-%d %H:%M:%S.%f")})
            )
        op.alter_column(
            table_name,
            column.name,
            type_=column.type,
            existing_type=existing["type"],
            existing_nullable=existing["nullable"],
        )


def create_storage(config: DatabaseConfig) -> StorageEngine:
    if isinstance(config, ServerConfig):
        return PostgresStorage(config) if config.engine == "postgresql" else MySQLStorage(config)
    return SqliteStorage(config)


def _restore_row(table: sa.Table, row, overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map an exported row onto *table*'s columns.  Older deployments wrote
    timestamps as ISO-8601 text, which the DateTime type does not accept.
    """
    values = {}
    for col in table.columns:
        if col.name in overrides:
            values[col.name] = overrides[col.name]
        elif col.name in row:
            value = row[col.name]
            if isinstance(value, str) and isinstance(col.type, sa.DateTime):
                value = parse_timestamp(value)
            values[col.name] = value
    return values


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Executor – the three primitives every repository relies on
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExecuteResult:
    rowcount: int
    last_id: Any = None


def _as_statement(statement):
    return sa.text(statement) if isinstance(statement, str) else statement


def _is_textual_insert(statement) -> bool:
    return isinstance(statement, sa.TextClause) and statement.text.lstrip().upper().startswith("INSERT")


def _generated_id(statement, result) -> Any:
    if result.is_insert:
        try:
            key = result.inserted_primary_key
        except InvalidRequestError:
            # executemany
            return None
        if key and key[0] is not None:
            return key[0]
    elif not _is_textual_insert(statement):
        return None
    # The driver's cursor id; psycopg reports 0 when there is none
    return result.lastrowid or None


class Executor:
    """Runs statements on one open connection."""

    def __init__(self, connection: Connection, storage: StorageEngine):
        self.connection = connection
        self.storage = storage

    def execute(self, statement, params=None) -> ExecuteResult:
        statement = _as_statement(statement)
        result = self.connection.execute(statement, params)
        return ExecuteResult(rowcount=result.rowcount, last_id=_generated_id(statement, result))

    def query(self, statement, params=None) -> List[Dict[str, Any]]:
        result = self.connection.execute(_as_statement(statement), params)
        return [dict(row) for row in result.mappings()]

    def query_one(self, statement, params=None) -> Optional[Dict[str, Any]]:
        result = self.connection.execute(_as_statement(statement), params)
        row = result.mappings().first()
        return dict(row) if row is not None else None

    @contextmanager
    def transaction(self) -> Iterator["Executor"]:
        # Already inside one
        yield self


# ---------------------------------------------------------------------------
# Database service
# ---------------------------------------------------------------------------


class Database:
    """
    Process-wide connection manager.  Built once by the application factory
    and handed to the repositories; :meth:`connect` must succeed before the
    service accepts requests.
    """

    def __init__(self, app_settings: Settings):
        self.settings = app_settings
        self.config = get_database_config(app_settings)
        self.storage = create_storage(self.config)
        self._engine: Optional[Engine] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call connect() first.")
        return self._engine

    # -- lifecycle ---------------------------------------------------------

    def connect(self) -> None:
        """Open the engine, verify it with a round trip, then migrate."""
        logger.info("Connecting to %s", self.storage.describe())
        self._engine = self.storage.create_engine()
        try:
            self.query_one("SELECT 1 AS health")
            self.migrate()
        except Exception:
            logger.critical("Database initialization failed", exc_info=True)
            self._engine.dispose()
            self._engine = None
            raise
        logger.info("Database ready (%s)", self.storage.name)

    def migrate(self) -> None:
        """Apply every pending schema revision, one transaction per revision."""
        if not self.storage.transactional_ddl:
            logger.warning(
                "%s commits DDL implicitly; an interrupted migration can leave a partial schema",
                self.storage.name,
            )
        cfg = AlembicConfig()
        cfg.set_main_option("script_location", str(_MIGRATIONS_DIR))
        cfg.attributes["engine"] = self.engine
        cfg.attributes["storage"] = self.storage
        cfg.attributes["settings"] = self.settings
        with self.storage.lock():
            command.upgrade(cfg, "head")
        logger.info("Database migrations completed")

    def health_check(self) -> bool:
        try:
            return self.query_one("SELECT 1 AS health") is not None
        except Exception:
            logger.error("Database health check failed", exc_info=True)
            return False

    def close(self) -> None:
        if self._engine is None:
            return
        try:
            with self.storage.lock():
                self._engine.dispose()
            logger.info("Database connection closed")
        except Exception:
            logger.critical("Error closing database connection", exc_info=True)
        finally:
            self._engine = None

    # -- primitives --------------------------------------------------------

    def execute(self, statement, params=None) -> ExecuteResult:
        with self.transaction() as tx:
            return tx.execute(statement, params)

    def query(self, statement, params=None) -> List[Dict[str, Any]]:
        with self.transaction() as tx:
            return tx.query(statement, params)

    def query_one(self, statement, params=None) -> Optional[Dict[str, Any]]:
        with self.transaction() as tx:
            return tx.query_one(statement, params)

    @contextmanager
    def transaction(self) -> Iterator[Executor]:
        """Commit on success, roll back on error."""
        with self.storage.lock(), self.engine.begin() as conn:
            yield Executor(conn, self.storage)


def get_database(request: Request) -> Database:
    """FastAPI dependency.  Use with Depends(get_database)."""
    return request.app.state.db
