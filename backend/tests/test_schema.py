import pytest
from sqlalchemy import inspect

from licence_admin import services
from licence_admin.database import Database
from licence_admin.errors import SchemaInitializationError
from licence_admin.schema import DEFAULT_LICENCE_CATEGORIES, initialize_schema


def test_creates_every_table(database):
    names = set(inspect(database.engine).get_table_names())
    assert {"users", "licence_categories", "user_sessions", "medical_certificates", "applications"} <= names


def test_session_expiry_triggers_installed(database):
    rows = database.execute("SELECT name FROM sqlite_master WHERE type = 'trigger'").rows
    assert {r["name"] for r in rows} == {"set_expires_at_on_insert", "set_expires_at_on_update"}


def test_seeds_default_categories(database):
    rows = services.LicenceCategoryService(database).get_licence_categories()
    assert [r["id"] for r in rows] == sorted(c["category_code"] for c in DEFAULT_LICENCE_CATEGORIES)
    heavy = next(r for r in rows if r["id"] == "C")
    assert heavy["fee"] == 3500.0
    assert heavy["min_age"] == 25
    assert heavy["is_active"] is True


def test_initialisation_is_idempotent(database):
    initialize_schema(database)
    initialize_schema(database)
    count = database.execute("SELECT COUNT(*) AS n FROM licence_categories").scalar()
    assert count == 8


def test_reinitialisation_keeps_retired_categories_retired(database):
    svc = services.LicenceCategoryService(database)
    svc.delete_licence_category("D")
    initialize_schema(database)
    assert svc.get_licence_category_by_code("D")["is_active"] is False


def test_reinitialisation_keeps_existing_data(database, applicant):
    initialize_schema(database)
    assert services.UserService(database).find_by_sub(applicant)["name"] == "Nimal Perera"


def test_unreachable_database_is_fatal(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}")
    with pytest.raises(SchemaInitializationError, match="Failed to initialize database tables"):
        initialize_schema(db)
    db.dispose()


def test_failed_initialisation_leaves_no_partial_schema(tmp_path, monkeypatch):
    from licence_admin import schema

    def failing_seed(conn):
        raise RuntimeError("seed exploded")

    monkeypatch.setattr(schema, "seed_licence_categories", failing_seed)
    db = Database(f"sqlite:///{tmp_path / 'partial.db'}")
    with pytest.raises(SchemaInitializationError, match="seed exploded"):
        initialize_schema(db)
    assert inspect(db.engine).get_table_names() == []
    db.dispose()
