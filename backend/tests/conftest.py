import pytest
from fastapi.testclient import TestClient

from licence_admin import services
from licence_admin.database import Database
from licence_admin.main import create_app
from licence_admin.schema import initialize_schema


@pytest.fixture
def database(tmp_path):
    """A fresh, initialised SQLite database file per test."""
    db = Database(f"sqlite:///{tmp_path / 'licence_admin.db'}")
    initialize_schema(db)
    yield db
    db.dispose()


@pytest.fixture
def client(database):
    with TestClient(create_app(database)) as c:
        yield c


@pytest.fixture
def applicant(database):
    """Sub of a saved user that applications can reference."""
    services.UserService(database).save_user(
        {"sub": "user-1", "name": "Nimal Perera", "email": "nimal@example.com", "address": "12 Galle Road"}
    )
    return "user-1"


@pytest.fixture
def application_payload(applicant):
    """Factory for a valid submission payload; keyword arguments override fields."""
    def make(**overrides):
        payload = {
            "sub": applicant,
            "application_id": "APP-1",
            "medical_certificate_id": "MED-1",
            "selectCategories": [{"code": "B", "label": "Car"}],
            "fullName": "Nimal Perera",
            "email": "nimal@example.com",
            "phone": "+94771234567",
            "dob": "1995-04-12",
            "gender": "Male",
            "bloodGroup": "O+",
            "doctorName": "Dr. Silva",
            "hospital": "General Hospital",
            "issuedDate": "2026-01-10",
            "expiryDate": "2027-01-10",
            "total_amount": 2500,
        }
        payload.update(overrides)
        return payload
    return make
