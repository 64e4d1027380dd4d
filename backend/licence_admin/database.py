"""Database engine and the query-execution primitive.

Every statement the application runs goes through `Database.execute`,
which borrows a pooled connection for exactly one transaction, bounds the
statement with a server-side timeout, logs the outcome under the caller's
label and translates constraint violations into domain errors. The
`Database` instance is created by the application factory and handed to
request handlers through `get_database`.

PostgreSQL is the production target; SQLite is supported for local
development and the test-suite.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .config import settings
from .errors import ConstraintViolationError, StorageError

logger = logging.getLogger("licence_admin.db")

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
NOT_NULL_VIOLATION = "23502"

CONSTRAINT_MESSAGES = {
    UNIQUE_VIOLATION: "Duplicate entry: Record already exists",
    FOREIGN_KEY_VIOLATION: "Referenced record does not exist",
    NOT_NULL_VIOLATION: "Required field is missing",
}

# sqlite3 has no SQLSTATE codes; match on the error text instead
_SQLITE_CONSTRAINT_MARKERS = (
    ("UNIQUE constraint failed", UNIQUE_VIOLATION),
    ("FOREIGN KEY constraint failed", FOREIGN_KEY_VIOLATION),
    ("NOT NULL constraint failed", NOT_NULL_VIOLATION),
)


@dataclass
class QueryResult:
    """Rows of a finished statement, materialised before the connection is released."""
    rows: List[Dict[str, Any]] = field(default_factory=list)

    def first(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None

    def scalar(self, default: Any = None) -> Any:
        row = self.first()
        if not row:
            return default
        return next(iter(row.values()))


def constraint_code(exc: IntegrityError) -> Optional[str]:
    """Return the SQLSTATE-style code for an integrity error, if recognised."""
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return code
    message = str(orig)
    for marker, mapped in _SQLITE_CONSTRAINT_MARKERS:
        if marker in message:
            return mapped
    return None


def translate_integrity_error(exc: IntegrityError) -> Exception:
    message = CONSTRAINT_MESSAGES.get(constraint_code(exc))
    if message:
        return ConstraintViolationError(message)
    return StorageError(str(exc.orig))


def dialect_insert(dialect: str, table):
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise StorageError(f"upserts are not supported on the {dialect} dialect")


def _create_engine(url: str, pool_size: int, max_overflow: int) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(url, echo=False, connect_args={"check_same_thread": False})
        _configure_sqlite(engine)
        return engine
    connect_args = {}
    if url.startswith("postgresql"):
        connect_args["options"] = "-c timezone=utc"
    return create_engine(
        url,
        echo=False,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def _configure_sqlite(engine: Engine) -> None:
    """Enforce foreign keys and let SQLAlchemy own BEGIN so DDL is transactional."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class Database:
    """Owns the connection pool and runs every statement for the access layer."""

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        pool_size: Optional[int] = None,
        max_overflow: Optional[int] = None,
        statement_timeout_ms: Optional[int] = None,
    ):
        self.url = url or settings.DATABASE_URL
        self.statement_timeout_ms = statement_timeout_ms or settings.DB_STATEMENT_TIMEOUT_MS
        self.engine = _create_engine(
            self.url,
            pool_size or settings.DB_POOL_SIZE,
            max_overflow if max_overflow is not None else settings.DB_MAX_OVERFLOW,
        )

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def _apply_statement_timeout(self, conn: Connection) -> None:
        # SQLite has no server-side statement timeout
        if self.dialect == "postgresql":
            conn.exec_driver_sql(f"SET LOCAL statement_timeout = {int(self.statement_timeout_ms)}")

    def execute(self, statement, params: Optional[Dict[str, Any]] = None, label: str = "Query") -> QueryResult:
        """Run one statement in its own transaction and return its rows.

        `statement` is a SQLAlchemy Core construct or a SQL string with
        named bind parameters supplied through `params`.
        """
        if isinstance(statement, str):
            statement = text(statement)
        try:
            with self.engine.begin() as conn:
                self._apply_statement_timeout(conn)
                result = conn.execute(statement, params) if params else conn.execute(statement)
                rows = [dict(row._mapping) for row in result] if result.returns_rows else []
                outcome = QueryResult(rows=rows)
        except IntegrityError as exc:
            logger.error("%s failed: %s", label, exc.orig)
            raise translate_integrity_error(exc) from exc
        except SQLAlchemyError as exc:
            logger.error("%s failed: %s", label, exc)
            raise StorageError(str(getattr(exc, "orig", None) or exc)) from exc
        logger.info("%s completed successfully", label)
        return outcome

    def execute_concurrently(self, *queries: Tuple[Any, Optional[Dict[str, Any]], str]) -> List[QueryResult]:
        """Run independent `(statement, params, label)` queries on separate pooled connections."""
        with ThreadPoolExecutor(max_workers=len(queries)) as pool:
            futures = [pool.submit(self.execute, stmt, params, label) for stmt, params, label in queries]
            return [f.result() for f in futures]

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Yield a connection whose statements commit or roll back together."""
        with self.engine.begin() as conn:
            yield conn

    def insert(self, table):
        """Return an INSERT construct for `table` that supports ON CONFLICT upserts."""
        return dialect_insert(self.dialect, table)

    def dispose(self) -> None:
        self.engine.dispose()


def get_database(request: Request) -> Database:
    """FastAPI dependency returning the application's `Database`."""
    return request.app.state.database
