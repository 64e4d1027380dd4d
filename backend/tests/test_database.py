from contextlib import contextmanager
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from licence_admin import main
from licence_admin.database import Database, QueryResult
from licence_admin.errors import SchemaInitializationError


class RecordingConnection:
    def __init__(self):
        self.calls = []

    def exec_driver_sql(self, sql):
        self.calls.append(sql)

    def execute(self, statement, params=None):
        self.calls.append(str(statement))
        return SimpleNamespace(returns_rows=False)


class RecordingEngine:
    def __init__(self, conn, dialect):
        self.conn = conn
        self.dialect = SimpleNamespace(name=dialect)

    @contextmanager
    def begin(self):
        yield self.conn


def _database_on(tmp_path, dialect):
    db = Database(f"sqlite:///{tmp_path / 'unused.db'}", statement_timeout_ms=5000)
    db.engine.dispose()
    conn = RecordingConnection()
    db.engine = RecordingEngine(conn, dialect)
    return db, conn


def test_statement_timeout_is_set_before_each_postgres_statement(tmp_path):
    db, conn = _database_on(tmp_path, "postgresql")
    db.execute("SELECT 1", label="Timeout check")
    assert conn.calls == ["SET LOCAL statement_timeout = 5000", "SELECT 1"]


def test_no_statement_timeout_on_sqlite(tmp_path):
    db, conn = _database_on(tmp_path, "sqlite")
    db.execute("SELECT 1")
    assert conn.calls == ["SELECT 1"]


def test_query_result_accessors():
    assert QueryResult().first() is None
    assert QueryResult().scalar(7) == 7
    assert QueryResult(rows=[{"n": 3}, {"n": 4}]).scalar() == 3


def test_log_format_carries_timestamp_and_logger_name():
    assert "%(asctime)s" in main.LOG_FORMAT
    assert "%(name)s" in main.LOG_FORMAT


def test_startup_fails_when_schema_cannot_be_initialised(database, monkeypatch):
    def failing_init(db):
        raise SchemaInitializationError("Failed to initialize database tables: boom")

    monkeypatch.setattr(main, "initialize_schema", failing_init)
    with pytest.raises(SchemaInitializationError, match="boom"):
        with TestClient(main.create_app(database)):
            pass
