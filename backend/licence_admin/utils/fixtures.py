"""Static sample applications served by the `/test/data` endpoint."""

from datetime import date, datetime, timedelta, timezone


def sample_applications() -> dict:
    """Return two fixed applications in the listing envelope.

    Dates are relative to today so the sample certificates are always valid.
    """
    today = date.today()
    expiry = today + timedelta(days=365)
    now = datetime.now(timezone.utc).isoformat()
    applications = [
        {
            "id": 1,
            "sub": "user123",
            "application_id": "APP001",
            "medical_certificate_id": "MED001",
            "full_name": "John Doe",
            "email": "john@example.com",
            "phone": "+1234567890",
            "date_of_birth": "1990-01-01",
            "gender": "Male",
            "blood_group": "O+",
            "doctor_name": "Dr. Smith",
            "hospital": "City Hospital",
            "issued_date": today.isoformat(),
            "expiry_date": expiry.isoformat(),
            "is_fit_to_drive": True,
            "vision": "20/20",
            "hearing": "Normal",
            "remarks": "No issues",
            "photo_url": None,
            "written_test": {"score": 85, "passed": True},
            "practical_test": {"score": 90, "passed": True},
            "selected_categories": [{"code": "B", "label": "Car"}],
            "total_amount": 150.00,
            "payment_reference_id": "PAY001",
            "payment_transaction_id": "TXN001",
            "status": "pending",
            "created_at": now,
            "updated_at": now,
        },
        {
            "id": 2,
            "sub": "user456",
            "application_id": "APP002",
            "medical_certificate_id": "MED002",
            "full_name": "Jane Smith",
            "email": "jane@example.com",
            "phone": "+0987654321",
            "date_of_birth": "1992-05-15",
            "gender": "Female",
            "blood_group": "A+",
            "doctor_name": "Dr. Johnson",
            "hospital": "General Hospital",
            "issued_date": today.isoformat(),
            "expiry_date": expiry.isoformat(),
            "is_fit_to_drive": True,
            "vision": "20/20",
            "hearing": "Normal",
            "remarks": "All clear",
            "photo_url": None,
            "written_test": {"score": 92, "passed": True},
            "practical_test": {"score": 88, "passed": True},
            "selected_categories": [{"code": "A", "label": "Motorcycle"}, {"code": "B", "label": "Car"}],
            "total_amount": 200.00,
            "payment_reference_id": "PAY002",
            "payment_transaction_id": "TXN002",
            "status": "approved",
            "created_at": now,
            "updated_at": now,
        },
    ]
    return {
        "applications": applications,
        "pagination": {
            "currentPage": 1,
            "totalPages": 1,
            "totalCount": len(applications),
            "hasNext": False,
            "hasPrev": False,
        },
    }
