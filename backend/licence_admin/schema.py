"""Schema creation and seeding.

`initialize_schema` brings a database to the shape the access layer
expects. It is safe to run on every startup: each table is created only
when absent, triggers are (re)declared idempotently and the default
licence categories are upserted. Everything happens in one transaction,
so a failure leaves no partial schema behind.
"""

import logging

from sqlalchemy import func, text
from sqlalchemy.engine import Connection

from . import models
from .database import Database, dialect_insert
from .errors import SchemaInitializationError

logger = logging.getLogger("licence_admin.schema")

DEFAULT_LICENCE_CATEGORIES = [
    {"category_code": "A1", "category_label": "A1", "description": "Light Motor Cycle (up to 125cc)",
     "fee": 1500.00, "min_age": 18, "vehicle_type": "Motorcycle"},
    {"category_code": "A", "category_label": "A", "description": "Motor Cycle (above 125cc)",
     "fee": 1500.00, "min_age": 18, "vehicle_type": "Motorcycle"},
    {"category_code": "B1", "category_label": "B1", "description": "Motor Tricycle",
     "fee": 2000.00, "min_age": 18, "vehicle_type": "Three-wheeler"},
    {"category_code": "B", "category_label": "B", "description": "Light Motor Car (up to 3500 kg)",
     "fee": 2500.00, "min_age": 18, "vehicle_type": "Light Vehicle"},
    {"category_code": "C1", "category_label": "C1", "description": "Light Motor Lorry (3500 kg to 7500 kg)",
     "fee": 3000.00, "min_age": 21, "vehicle_type": "Medium Vehicle"},
    {"category_code": "C", "category_label": "C", "description": "Heavy Motor Lorry (above 7500 kg)",
     "fee": 3500.00, "min_age": 25, "vehicle_type": "Heavy Vehicle"},
    {"category_code": "D1", "category_label": "D1", "description": "Mini Bus (up to 16 passengers)",
     "fee": 4000.00, "min_age": 21, "vehicle_type": "Passenger Vehicle"},
    {"category_code": "D", "category_label": "D", "description": "Heavy Bus (above 16 passengers)",
     "fee": 4500.00, "min_age": 25, "vehicle_type": "Passenger Vehicle"},
]

_POSTGRES_SESSION_TRIGGER = (
    """
    CREATE OR REPLACE FUNCTION calculate_expires_at()
    RETURNS TRIGGER AS $$
    BEGIN
      NEW.expires_at = NEW.created_at + (NEW.expires_in || ' seconds')::INTERVAL;
      RETURN NEW;
    END;
    $$ LANGUAGE plpgsql
    """,
    "DROP TRIGGER IF EXISTS set_expires_at ON user_sessions",
    """
    CREATE TRIGGER set_expires_at
      BEFORE INSERT OR UPDATE ON user_sessions
      FOR EACH ROW
      EXECUTE FUNCTION calculate_expires_at()
    """,
)

# SQLite cannot assign NEW in a BEFORE trigger, so the row is patched after the write
_SQLITE_SESSION_TRIGGER = (
    """
    CREATE TRIGGER IF NOT EXISTS set_expires_at_on_insert
    AFTER INSERT ON user_sessions
    BEGIN
      UPDATE user_sessions
      SET expires_at = datetime(NEW.created_at, '+' || NEW.expires_in || ' seconds')
      WHERE id = NEW.id;
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS set_expires_at_on_update
    AFTER UPDATE OF created_at, expires_in ON user_sessions
    BEGIN
      UPDATE user_sessions
      SET expires_at = datetime(NEW.created_at, '+' || NEW.expires_in || ' seconds')
      WHERE id = NEW.id;
    END
    """,
)

_POSTGRES_DOCUMENT_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_applications_categories ON applications USING GIN (selected_categories)",
    "CREATE INDEX IF NOT EXISTS idx_applications_written_test ON applications USING GIN (written_test)",
    "CREATE INDEX IF NOT EXISTS idx_applications_practical_test ON applications USING GIN (practical_test)",
)


def _run_all(conn: Connection, statements) -> None:
    for sql in statements:
        conn.exec_driver_sql(sql)


def create_users_table(conn: Connection) -> None:
    models.User.__table__.create(conn, checkfirst=True)


def create_licence_categories_table(conn: Connection) -> None:
    models.LicenceCategory.__table__.create(conn, checkfirst=True)


def create_sessions_table(conn: Connection) -> None:
    """Create `user_sessions` and the trigger that derives `expires_at`."""
    models.UserSession.__table__.create(conn, checkfirst=True)
    if conn.dialect.name == "postgresql":
        _run_all(conn, _POSTGRES_SESSION_TRIGGER)
    elif conn.dialect.name == "sqlite":
        _run_all(conn, _SQLITE_SESSION_TRIGGER)


def create_applications_table(conn: Connection) -> None:
    models.Application.__table__.create(conn, checkfirst=True)
    if conn.dialect.name == "postgresql":
        _run_all(conn, _POSTGRES_DOCUMENT_INDEXES)


def create_medical_certificates_table(conn: Connection) -> None:
    models.MedicalCertificate.__table__.create(conn, checkfirst=True)


def seed_licence_categories(conn: Connection) -> None:
    """Upsert the fixed licence categories keyed by `category_code`.

    `is_active` is left alone so a category retired by an administrator
    stays retired across restarts.
    """
    table = models.LicenceCategory.__table__
    stmt = dialect_insert(conn.dialect.name, table).values(DEFAULT_LICENCE_CATEGORIES)
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.category_code],
        set_={
            "category_label": stmt.excluded.category_label,
            "description": stmt.excluded.description,
            "fee": stmt.excluded.fee,
            "min_age": stmt.excluded.min_age,
            "vehicle_type": stmt.excluded.vehicle_type,
            "updated_at": func.current_timestamp(),
        },
    )
    conn.execute(stmt)
    logger.info("Licence categories seeding completed successfully")


def initialize_schema(database: Database) -> None:
    """Create all tables, indexes and triggers and seed categories in one transaction.

    Raises `SchemaInitializationError` if any step fails; the transaction
    is rolled back in that case.
    """
    try:
        with database.transaction() as conn:
            conn.execute(text("SELECT 1"))
            create_users_table(conn)
            create_licence_categories_table(conn)
            create_sessions_table(conn)
            create_applications_table(conn)
            create_medical_certificates_table(conn)
            seed_licence_categories(conn)
    except Exception as exc:
        logger.error("Database tables initialization failed: %s", exc)
        raise SchemaInitializationError(f"Failed to initialize database tables: {exc}") from exc
    logger.info("Database tables initialization completed successfully")
