import pytest
import sqlalchemy as sa

from database import Database, ExecuteResult, SqliteStorage


def test_connect_brings_up_schema(database):
    tables = set(sa.inspect(database.engine).get_table_names())
    assert {"users", "analyses", "alembic_version"} <= tables
    assert isinstance(database.storage, SqliteStorage)


def test_raw_sql_primitives(database):
    result = database.execute(
        "INSERT INTO users (id, email, password, first_name, last_name, role, is_active, created_at, updated_at) "
        "VALUES (:id, :email, 'x', 'A', 'B', 'user', 1, '2024-01-01 00:00:00', '2024-01-01 00:00:00')",
        {"id": "u-1", "email": "raw@example.com"},
    )
    assert result.rowcount == 1

    rows = database.query("SELECT email FROM users WHERE id = :id", {"id": "u-1"})
    assert rows == [{"email": "raw@example.com"}]
    assert database.query_one("SELECT email FROM users WHERE id = :id", {"id": "nope"}) is None


def test_transaction_rolls_back_on_error(database):
    with pytest.raises(RuntimeError):
        with database.transaction() as tx:
            tx.execute(
                "INSERT INTO users (id, email, password, role, is_active, created_at, updated_at) "
                "VALUES ('u-2', 'tx@example.com', 'x', 'user', 1, '2024-01-01', '2024-01-01')"
            )
            raise RuntimeError("boom")

    assert database.query_one("SELECT id FROM users WHERE id = 'u-2'") is None


def test_foreign_keys_are_enforced(database):
    with pytest.raises(sa.exc.IntegrityError):
        database.execute(
            "INSERT INTO analyses (id, user_id, url, metadata, status, created_at, updated_at) "
            "VALUES ('a-1', 'missing-user', 'https://x.test', '{}', 'pending', '2024-01-01', '2024-01-01')"
        )


def test_health_check_and_close(app_settings):
    db = Database(app_settings)
    db.connect()
    assert db.health_check() is True

    db.close()
    assert db.health_check() is False
    # closing twice is harmless
    db.close()


def test_engine_requires_connect(app_settings):
    with pytest.raises(RuntimeError):
        Database(app_settings).engine


def test_connect_failure_propagates(app_settings, tmp_path):
    broken = app_settings.model_copy(update={"db_path": str(tmp_path / "missing" / "dir" / "x.db")})
    db = Database(broken)
    with pytest.raises(sa.exc.OperationalError):
        db.connect()
    with pytest.raises(RuntimeError):
        db.engine


def test_execute_reports_generated_ids(database):
    database.execute("CREATE TABLE counters (id INTEGER PRIMARY KEY AUTOINCREMENT, x INTEGER)")

    first = database.execute("INSERT INTO counters (x) VALUES (:x)", {"x": 10})
    second = database.execute("INSERT INTO counters (x) VALUES (:x)", {"x": 20})
    assert (first.last_id, second.last_id) == (1, 2)

    counters = sa.Table(
        "counters", sa.MetaData(), sa.Column("id", sa.Integer, primary_key=True), sa.Column("x", sa.Integer)
    )
    third = database.execute(counters.insert().values(x=30))
    assert third.last_id == 3

    updated = database.execute("UPDATE counters SET x = 0 WHERE id = :id", {"id": 2})
    assert updated == ExecuteResult(rowcount=1, last_id=None)
