import sqlalchemy as sa

from core.config import ServerConfig
from database import Database, MySQLStorage, PostgresStorage
from models.analysis import AnalysisFilters
from models.analysis import analyses as analyses_table
from repositories.analysis import AnalysisRepository
from repositories.user import UserRepository

_LEGACY_ANALYSES = """
CREATE TABLE analyses (
  id TEXT PRIMARY KEY,
  url TEXT NOT NULL,
  page_title TEXT,
  analysis TEXT,
  pdf_path TEXT,
  metadata TEXT NOT NULL DEFAULT '{}',
  status TEXT NOT NULL DEFAULT 'pending',
  error_message TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
)
"""

_LEGACY_USERS = """
CREATE TABLE users (
  id TEXT PRIMARY KEY,
  email TEXT UNIQUE NOT NULL,
  password TEXT NOT NULL,
  first_name TEXT NOT NULL,
  last_name TEXT NOT NULL,
  role TEXT NOT NULL DEFAULT 'user',
  is_active BOOLEAN NOT NULL DEFAULT 1,
  last_login_at TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
)
"""


def _legacy_database(path, rows=3, with_user=False):
    engine = sa.create_engine(f"sqlite:///{path}")
    with engine.begin() as conn:
        conn.exec_driver_sql(_LEGACY_ANALYSES)
        conn.exec_driver_sql("CREATE INDEX idx_analyses_status ON analyses(status)")
        for i in range(rows):
            conn.execute(
                sa.text(
                    "INSERT INTO analyses (id, url, analysis, metadata, status, created_at, updated_at) "
                    "VALUES (:id, :url, 'done', :meta, 'completed', :created, :updated)"
                ),
                {
                    "id": f"legacy-{i}",
                    "url": f"https://site{i}.test",
                    "meta": '{"wordCount": 12, "pageSize": 340, "analysisTokens": 4}',
                    "created": f"2024-01-0{i + 1}T10:00:00.000Z",
                    "updated": f"2024-01-0{i + 1}T10:00:30.000Z",
                },
            )
        if with_user:
            conn.exec_driver_sql(_LEGACY_USERS)
            conn.exec_driver_sql(
                "INSERT INTO users (id, email, password, first_name, last_name, role, created_at, updated_at) "
                "VALUES ('old-user', 'old@example.com', '$2b$10$abcdefghijklmnopqrstuv', 'Old', 'User', "
                "'user', '2023-05-01T00:00:00.000Z', '2023-05-01T00:00:00.000Z')"
            )
    engine.dispose()


def test_bring_up_twice_is_a_noop(app_settings, make_user, database):
    make_user()
    database.migrate()
    database.migrate()

    assert len(database.query("SELECT id FROM users")) == 1
    assert database.query_one("SELECT version_num FROM alembic_version")["version_num"] == "0002_analyses_ownership"
    index_names = {ix["name"] for ix in sa.inspect(database.engine).get_indexes("users")}
    assert {"idx_users_email", "idx_users_role", "idx_users_is_active"} <= index_names


def test_legacy_rows_without_users_get_one_synthesized_admin(app_settings):
    _legacy_database(app_settings.db_path, rows=3)

    db = Database(app_settings)
    db.connect()
    try:
        users = UserRepository(db).find()
        assert len(users) == 1
        admin = users[0]
        assert admin.role == "admin"
        assert admin.email == "admin@example.com"

        records = AnalysisRepository(db).find(AnalysisFilters())
        assert len(records) == 3
        assert {r.user_id for r in records} == {admin.id}
        # camelCase metadata and ISO text timestamps survive the rewrite
        first = next(r for r in records if r.id == "legacy-0")
        assert first.metadata.word_count == 12
        assert first.metadata.page_size == 340
        assert first.created_at.year == 2024

        index_names = {ix["name"] for ix in sa.inspect(db.engine).get_indexes("analyses")}
        assert {
            "idx_analyses_user_id",
            "idx_analyses_status",
            "idx_analyses_created_at",
            "idx_analyses_url",
        } <= index_names
    finally:
        db.close()

    # a second start changes nothing
    db = Database(app_settings)
    db.connect()
    try:
        assert len(UserRepository(db).find()) == 1
        assert len(AnalysisRepository(db).find()) == 3
    finally:
        db.close()


def test_synthesized_admin_cannot_log_in_without_configured_password(app_settings):
    _legacy_database(app_settings.db_path, rows=1)
    db = Database(app_settings)
    db.connect()
    try:
        repo = UserRepository(db)
        admin = repo.find()[0]
        assert repo.verify_password(admin, "") is False
        assert repo.verify_password(admin, "!") is False
    finally:
        db.close()


def test_synthesized_admin_uses_configured_password(app_settings):
    configured = app_settings.model_copy(update={"first_admin_password": "Adm1nPassw0rd"})
    _legacy_database(configured.db_path, rows=2)
    db = Database(configured)
    db.connect()
    try:
        repo = UserRepository(db)
        admin = repo.find_by_email("admin@example.com")
        assert repo.verify_password(admin, "Adm1nPassw0rd") is True
    finally:
        db.close()


def test_legacy_rows_go_to_oldest_existing_user(app_settings):
    _legacy_database(app_settings.db_path, rows=2, with_user=True)
    db = Database(app_settings)
    db.connect()
    try:
        assert [u.id for u in UserRepository(db).find()] == ["old-user"]
        assert {r.user_id for r in AnalysisRepository(db).find()} == {"old-user"}
    finally:
        db.close()


def test_empty_legacy_table_synthesizes_no_one(app_settings):
    _legacy_database(app_settings.db_path, rows=0)
    db = Database(app_settings)
    db.connect()
    try:
        assert UserRepository(db).find() == []
        columns = {c["name"] for c in sa.inspect(db.engine).get_columns("analyses")}
        assert "user_id" in columns
    finally:
        db.close()


class _RecordingOp:
    """Stands in for alembic.op: DDL calls are recorded, reads hit a real connection."""

    def __init__(self, bind):
        self.bind = bind
        self.calls = []

    def get_bind(self):
        return self.bind

    def __getattr__(self, name):
        def _record(*args, **kwargs):
            self.calls.append((name, args, kwargs))

        return _record


def _server_storage(cls, engine):
    return cls(
        ServerConfig(
            engine=engine,
            host="db.internal",
            port=5432,
            database="cro",
            username="cro",
            password="secret",
        )
    )


def _upgrade_in_place(path, storage, owner_id):
    engine = sa.create_engine(f"sqlite:///{path}")
    try:
        with engine.begin() as conn:
            op = _RecordingOp(conn)
            storage.add_ownership_column(op, analyses_table, "user_id", owner_id)
            stored = conn.exec_driver_sql("SELECT created_at, updated_at FROM analyses ORDER BY id").all()
    finally:
        engine.dispose()
    return op.calls, stored


def test_postgres_upgrade_retypes_timestamps_then_adds_owner(tmp_path):
    path = tmp_path / "legacy.db"
    _legacy_database(path, rows=2)

    calls, _ = _upgrade_in_place(path, _server_storage(PostgresStorage, "postgresql"), "owner-1")

    assert [name for name, _, _ in calls] == [
        "alter_column",
        "alter_column",
        "add_column",
        "execute",
        "alter_column",
        "create_foreign_key",
        "create_index",
    ]

    for (_, args, kwargs), column in zip(calls[:2], ("created_at", "updated_at")):
        assert args == ("analyses", column)
        assert isinstance(kwargs["type_"], sa.DateTime)
        assert kwargs["postgresql_using"] == f"{column}::timestamptz"

    _, (table_name, added), _ = calls[2]
    assert table_name == "analyses"
    assert added.name == "user_id"
    assert added.nullable is True

    backfill = calls[3][1][0]
    assert isinstance(backfill, sa.sql.Update)
    assert backfill.compile().params == {"user_id": "owner-1"}

    assert calls[4][1] == ("analyses", "user_id")
    assert calls[4][2]["nullable"] is False
    assert calls[5][1] == ("fk_analyses_user_id", "analyses", "users", ["user_id"], ["id"])
    assert calls[5][2]["ondelete"] == "CASCADE"
    assert calls[6][1] == ("idx_analyses_user_id", "analyses", ["user_id"])


def test_server_upgrade_of_empty_table_skips_backfill(tmp_path):
    path = tmp_path / "legacy.db"
    _legacy_database(path, rows=0)

    calls, _ = _upgrade_in_place(path, _server_storage(PostgresStorage, "postgresql"), None)

    assert [name for name, _, _ in calls] == [
        "alter_column",
        "alter_column",
        "add_column",
        "alter_column",
        "create_foreign_key",
        "create_index",
    ]


def test_mysql_upgrade_rewrites_iso_text_before_retyping(tmp_path):
    path = tmp_path / "legacy.db"
    _legacy_database(path, rows=2)

    calls, stored = _upgrade_in_place(path, _server_storage(MySQLStorage, "mysql"), "owner-1")

    assert stored == [
        ("2024-01-01 10:00:00.000000", "2024-01-01 10:00:30.000000"),
        ("2024-01-02 10:00:00.000000", "2024-01-02 10:00:30.000000"),
    ]
    retyped = [(args[1], kwargs) for name, args, kwargs in calls[:2]]
    assert [column for column, _ in retyped] == ["created_at", "updated_at"]
    for _, kwargs in retyped:
        assert isinstance(kwargs["type_"], sa.DateTime)
        assert kwargs["existing_nullable"] is False
        assert "postgresql_using" not in kwargs
    assert [name for name, _, _ in calls[2:]] == [
        "add_column",
        "execute",
        "alter_column",
        "create_foreign_key",
        "create_index",
    ]


def test_server_upgrade_leaves_real_timestamp_columns_alone(tmp_path):
    path = tmp_path / "legacy.db"
    engine = sa.create_engine(f"sqlite:///{path}")
    with engine.begin() as conn:
        conn.exec_driver_sql(
            "CREATE TABLE analyses (id TEXT PRIMARY KEY, url TEXT NOT NULL, metadata TEXT NOT NULL, "
            "status TEXT NOT NULL, created_at TIMESTAMP NOT NULL, updated_at TIMESTAMP NOT NULL)"
        )
    engine.dispose()

    calls, _ = _upgrade_in_place(path, _server_storage(PostgresStorage, "postgresql"), None)

    assert [name for name, _, _ in calls] == [
        "add_column",
        "alter_column",
        "create_foreign_key",
        "create_index",
    ]
