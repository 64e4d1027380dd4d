"""Business logic services used by HTTP controllers.

Services are the public operations of the access layer. Each one
validates its input before any statement runs, delegates the SQL to a
repository and shapes the returned rows (structured documents decoded,
aggregate counts as ints). Public methods are wrapped with
`operation_context` so errors read ``Failed to <operation>: <cause>``.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from . import models, repositories
from .config import settings
from .database import Database
from .errors import NotFoundError, StorageError, ValidationError, operation_context
from .utils.documents import parse_int, shape_application
from .utils.validators import (
    parse_date,
    parse_number,
    validate_choice,
    validate_document,
    validate_email,
    validate_required_fields,
)

logger = logging.getLogger("licence_admin.services")

MAX_PAGE_SIZE = 1000


def page_window(page: Any, limit: Any, default_limit: int) -> tuple:
    """Return `(page, limit, offset)` with page >= 1 and 1 <= limit <= MAX_PAGE_SIZE."""
    page = max(1, parse_int(page, 1))
    limit = min(max(1, parse_int(limit, default_limit)), MAX_PAGE_SIZE)
    return page, limit, (page - 1) * limit


def paginate(rows: List[Dict[str, Any]], total: int, page: int, limit: int) -> dict:
    """Wrap a page of application rows in the listing envelope."""
    total = parse_int(total)
    total_pages = math.ceil(total / limit)
    return {
        "applications": [shape_application(r) for r in rows],
        "pagination": {
            "currentPage": page,
            "totalPages": total_pages,
            "totalCount": total,
            "hasNext": page < total_pages,
            "hasPrev": page > 1,
        },
    }


class UserService:
    """Applicant records keyed by `sub`."""
    def __init__(self, db: Database):
        self.repo = repositories.UserRepository(db)

    @operation_context("save user")
    def save_user(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert the user or update every mutable field of the existing one.

        `created_at` is kept on update; `updated_at` is refreshed.
        """
        validate_required_fields(data, ["sub", "name"])
        validate_email(data.get("email"))
        values = {
            "sub": data["sub"],
            "name": data["name"],
            "email": data.get("email"),
            "phone": data.get("phone"),
            "date_of_birth": parse_date(data.get("date_of_birth"), "date_of_birth"),
            "address": data.get("address"),
        }
        return self.repo.upsert(values)

    @operation_context("find user")
    def find_by_sub(self, sub: str) -> Optional[Dict[str, Any]]:
        """Return the user or `None`."""
        if not sub:
            raise ValidationError("sub is required")
        return self.repo.get_by_sub(sub)


class MedicalCertificateService:
    """Medical certificates owned by a user."""
    REQUIRED = ["certificate_id", "issued_date", "expiry_date", "doctor_name", "hospital"]

    def __init__(self, db: Database):
        self.repo = repositories.MedicalCertificateRepository(db)

    @operation_context("save medical certificate")
    def save_medical_certificate(self, sub: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if not sub:
            raise ValidationError("sub is required")
        validate_required_fields(data, self.REQUIRED)
        is_fit = data.get("is_fit_to_drive")
        values = {
            "sub": sub,
            "certificate_id": data["certificate_id"],
            "issued_date": parse_date(data["issued_date"], "issued_date"),
            "expiry_date": parse_date(data["expiry_date"], "expiry_date"),
            "doctor_name": data["doctor_name"],
            "hospital": data["hospital"],
            "blood_group": data.get("blood_group"),
            "is_fit_to_drive": True if is_fit is None else bool(is_fit),
            "vision_status": data.get("vision_status"),
            "hearing_status": data.get("hearing_status"),
            "remarks": data.get("remarks"),
        }
        return self.repo.upsert(values)

    @operation_context("find medical certificate")
    def find_by_certificate_id(self, certificate_id: str) -> Dict[str, Any]:
        if not certificate_id:
            raise ValidationError("certificate_id is required")
        row = self.repo.get_by_certificate_id(certificate_id)
        if not row:
            raise NotFoundError(f"Medical certificate '{certificate_id}' not found")
        return row


def _min_age(value: Any) -> int:
    age = parse_int(value, -1)
    if age < 16 or age > 100:
        raise ValidationError("Minimum age must be between 16 and 100")
    return age


def _positive_fee(value: Any) -> float:
    fee = parse_number(value, "fee")
    if fee <= 0:
        raise ValidationError("Fee must be a positive number")
    return fee


class LicenceCategoryService:
    """Licence category catalogue with soft delete."""
    REQUIRED = ["category_code", "category_label", "description", "fee"]
    UPDATABLE = ("category_label", "description", "fee", "min_age", "vehicle_type", "is_active")

    def __init__(self, db: Database):
        self.repo = repositories.LicenceCategoryRepository(db)

    @operation_context("get licence categories")
    def get_licence_categories(self, include_inactive: bool = False) -> List[Dict[str, Any]]:
        return self.repo.list_all(include_inactive=include_inactive)

    @operation_context("get licence category")
    def get_licence_category_by_code(self, category_code: str) -> Dict[str, Any]:
        """Return the category even when it has been soft-deleted."""
        if not category_code:
            raise ValidationError("categoryCode is required")
        row = self.repo.get_by_code(category_code)
        if not row:
            raise NotFoundError(f"Licence category '{category_code}' not found")
        return row

    @operation_context("add licence category")
    def add_licence_category(self, data: Dict[str, Any]) -> Dict[str, Any]:
        validate_required_fields(data, self.REQUIRED)
        values = {
            "category_code": data["category_code"],
            "category_label": data["category_label"],
            "description": data["description"],
            "fee": _positive_fee(data["fee"]),
            "min_age": 18 if data.get("min_age") is None else _min_age(data["min_age"]),
            "vehicle_type": data.get("vehicle_type"),
        }
        return self.repo.insert(values)

    @operation_context("update licence category")
    def update_licence_category(self, category_code: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply the supplied fields; anything absent or `None` keeps its stored value."""
        if not category_code:
            raise ValidationError("categoryCode is required")
        values = {k: data[k] for k in self.UPDATABLE if data.get(k) is not None}
        if "fee" in values:
            values["fee"] = _positive_fee(values["fee"])
        if "min_age" in values:
            values["min_age"] = _min_age(values["min_age"])
        if "is_active" in values:
            values["is_active"] = bool(values["is_active"])
        row = self.repo.update(category_code, values)
        if not row:
            raise NotFoundError(f"Licence category '{category_code}' not found")
        return row

    @operation_context("delete licence category")
    def delete_licence_category(self, category_code: str) -> Dict[str, Any]:
        if not category_code:
            raise ValidationError("categoryCode is required")
        row = self.repo.deactivate(category_code)
        if not row:
            raise NotFoundError(f"Licence category '{category_code}' not found")
        return row


class SessionService:
    """Identity-provider sessions and their expiry cleanup."""
    def __init__(self, db: Database):
        self.repo = repositories.SessionRepository(db)

    @operation_context("save user session")
    def save_user_session(self, sub: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Upsert a session by `session_id` and return it with its computed `expires_at`."""
        if not sub:
            raise ValidationError("sub is required")
        validate_required_fields(data, ["session_id", "access_token"])
        expires_in = data.get("expires_in")
        expires_in = 3600 if expires_in is None else parse_int(expires_in, -1)
        if expires_in < 0:
            raise ValidationError("expires_in must be a non-negative number of seconds")
        self.repo.upsert({
            "sub": sub,
            "session_id": data["session_id"],
            "access_token": data["access_token"],
            "token_type": data.get("token_type"),
            "expires_in": expires_in,
            "scope": data.get("scope"),
        })
        # re-read: RETURNING does not see values written by the expiry trigger on SQLite
        return self.repo.get_by_session_id(data["session_id"])

    @operation_context("cleanup expired sessions")
    def cleanup_expired_sessions(self, max_age_days: Optional[int] = None) -> List[str]:
        """Delete expired or stale sessions and return their `session_id`s."""
        days = settings.SESSION_MAX_AGE_DAYS if max_age_days is None else max_age_days
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        removed = self.repo.delete_expired(now, now - timedelta(days=days))
        logger.info("Cleaned up %d expired sessions", len(removed))
        return removed


def _as_text(value: Any, field: str) -> Optional[str]:
    return None if value is None else str(value)


def _as_email(value: Any, field: str) -> Optional[str]:
    validate_email(value)
    return value


def _as_date(value: Any, field: str):
    return parse_date(value, field)


def _as_flag(value: Any, field: str) -> Optional[bool]:
    if value is None or isinstance(value, bool):
        return value
    raise ValidationError(f"{field} must be a boolean")


def _as_document(value: Any, field: str) -> Any:
    validate_document(value, field)
    return value


def _as_categories(value: Any, field: str) -> Any:
    if value is None:
        raise ValidationError(f"{field} cannot be empty")
    validate_document(value, field, allow_array=True)
    return value


def _as_amount(value: Any, field: str) -> float:
    amount = parse_number(value, field)
    if amount < 0:
        raise ValidationError("Total amount must be a non-negative number")
    return amount


def _as_status(value: Any, field: str) -> str:
    return validate_choice(value, models.APPLICATION_STATUSES, "status")


def _as_admin_status(value: Any, field: str) -> str:
    return validate_choice(value, models.ADMIN_STATUSES, "admin_status")


# The only columns a partial update may touch, each with its coercer
UPDATABLE_FIELDS: Dict[str, Callable[[Any, str], Any]] = {
    "full_name": _as_text,
    "email": _as_email,
    "phone": _as_text,
    "date_of_birth": _as_date,
    "gender": _as_text,
    "blood_group": _as_text,
    "doctor_name": _as_text,
    "hospital": _as_text,
    "issued_date": _as_date,
    "expiry_date": _as_date,
    "is_fit_to_drive": _as_flag,
    "vision": _as_text,
    "hearing": _as_text,
    "remarks": _as_text,
    "photo_url": _as_text,
    "written_test": _as_document,
    "practical_test": _as_document,
    "selected_categories": _as_categories,
    "total_amount": _as_amount,
    "payment_reference_id": _as_text,
    "payment_transaction_id": _as_text,
    "status": _as_status,
    "admin_status": _as_admin_status,
}


class ApplicationService:
    """Licence applications: submission, lookup, status changes, listings and statistics."""
    REQUIRED = [
        "sub",
        "application_id",
        "selectCategories",
        "fullName",
        "email",
        "dob",
        "doctorName",
        "hospital",
        "issuedDate",
        "expiryDate",
    ]

    def __init__(self, db: Database, fallback_on_error: Optional[bool] = None):
        self.repo = repositories.ApplicationRepository(db)
        if fallback_on_error is None:
            fallback_on_error = settings.LIST_FALLBACK_ON_ERROR
        self.fallback_on_error = fallback_on_error

    @operation_context("save application")
    def save_application(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a new application from a submission payload.

        The payload uses the submission form's camelCase keys for the
        personal and medical snapshot. Applications are never upserted: a
        second submission with the same `application_id` is a duplicate.
        """
        validate_required_fields(data, self.REQUIRED)
        validate_document(data["selectCategories"], "selected_categories", allow_array=True)
        amount = data.get("total_amount")
        amount = 0 if amount is None else parse_number(amount, "total_amount")
        if amount < 0:
            raise ValidationError("Total amount must be a non-negative number")
        status = data.get("status") or "pending"
        validate_choice(status, models.APPLICATION_STATUSES, "status")
        validate_document(data.get("writtenTest"), "writtenTest")
        validate_document(data.get("practicalTest"), "practicalTest")
        validate_email(data["email"])
        is_fit = data.get("isFitToDrive")

        values = {
            "sub": data["sub"],
            "application_id": data["application_id"],
            "medical_certificate_id": data.get("medical_certificate_id"),
            "selected_categories": data["selectCategories"],
            "status": status,
            "total_amount": amount,
            "payment_reference_id": data.get("payment_reference_id"),
            "payment_transaction_id": data.get("payment_transaction_id"),
            "full_name": data["fullName"],
            "email": data["email"],
            "phone": data.get("phone"),
            "date_of_birth": parse_date(data["dob"], "dob"),
            "gender": data.get("gender"),
            "blood_group": data.get("bloodGroup"),
            "doctor_name": data["doctorName"],
            "hospital": data["hospital"],
            "issued_date": parse_date(data["issuedDate"], "issuedDate"),
            "expiry_date": parse_date(data["expiryDate"], "expiryDate"),
            "is_fit_to_drive": True if is_fit is None else bool(is_fit),
            "vision": data.get("vision"),
            "hearing": data.get("hearing"),
            "remarks": data.get("remarks"),
            "photo_url": data.get("photoUrl"),
            "written_test": data.get("writtenTest"),
            "practical_test": data.get("practicalTest"),
        }
        return shape_application(self.repo.insert(values))

    @operation_context("find application")
    def find_application_by_id(self, application_id: str) -> Dict[str, Any]:
        """Return the application joined with its owner's profile (`user_*` keys)."""
        if not application_id:
            raise ValidationError("applicationId is required")
        row = self.repo.get_with_user(application_id)
        if not row:
            raise NotFoundError(f"Application '{application_id}' not found")
        return shape_application(row)

    @operation_context("find application")
    def find_application(self, identifier: str) -> Optional[Dict[str, Any]]:
        """Look up by application id, numeric id or medical certificate id; `None` if absent."""
        return shape_application(self.repo.find_by_identifier(str(identifier)))

    @operation_context("update application status")
    def update_application_status(self, application_id: str, status: str) -> Dict[str, Any]:
        if not application_id or not status:
            raise ValidationError("applicationId and status are required")
        validate_choice(status, models.APPLICATION_STATUSES, "status")
        row = self.repo.update_status(application_id, status)
        if not row:
            raise NotFoundError(f"Application '{application_id}' not found")
        return shape_application(row)

    @operation_context("update application status")
    def set_status(self, identifier: str, status: str) -> Optional[Dict[str, Any]]:
        """Set `status` on the row matching any identifier column; `None` if nothing matched."""
        validate_choice(status, models.APPLICATION_STATUSES, "status")
        row = self.repo.update_by_identifier(str(identifier), {"status": status}, label="Update application status")
        return shape_application(row)

    @operation_context("update application")
    def update_application(self, identifier: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Apply a partial update restricted to `UPDATABLE_FIELDS`; `None` if nothing matched."""
        unknown = sorted(set(fields) - set(UPDATABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(unknown)}")
        if not fields:
            raise ValidationError("No valid fields to update")
        values = {name: UPDATABLE_FIELDS[name](value, name) for name, value in fields.items()}
        return shape_application(self.repo.update_by_identifier(str(identifier), values))

    @operation_context("list applications")
    def list_applications(
        self,
        page: Any = 1,
        limit: Any = 100,
        status: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "DESC",
    ) -> dict:
        """Return one filtered, sorted page plus pagination metadata.

        When the filtered query fails in storage and fallback is enabled,
        the unfiltered newest-first page is returned instead.
        """
        page, limit, offset = page_window(page, limit, 100)
        flt = repositories.ApplicationFilter(status=status, search=search, sort_by=sort_by, sort_order=sort_order)
        try:
            rows, total = self.repo.list_filtered(flt, limit, offset)
        except StorageError:
            if not self.fallback_on_error:
                raise
            logger.warning("Falling back to simple applications query", exc_info=True)
            rows, total = self.repo.list_unfiltered(limit, offset)
        return paginate(rows, total, page, limit)

    @operation_context("get user applications")
    def list_user_applications(
        self, sub: str, page: Any = 1, limit: Any = 10, status: Optional[str] = None
    ) -> dict:
        if not sub:
            raise ValidationError("sub is required")
        page, limit, offset = page_window(page, limit, 10)
        rows, total = self.repo.list_for_user(sub, limit, offset, status=status)
        return paginate(rows, total, page, limit)

    @operation_context("get application stats")
    def get_application_stats(self) -> Dict[str, int]:
        row = self.repo.stats()
        return {key: parse_int(row.get(key)) for key in ("total", "pending", "approved", "rejected")}

    @operation_context("get application stats")
    def get_status_summary(self) -> Dict[str, Any]:
        """Return the total and a per-status breakdown, largest group first."""
        rows = self.repo.count_by_status()
        by_status = {r["status"]: parse_int(r["count"]) for r in rows}
        return {"total": sum(by_status.values()), "byStatus": by_status}
