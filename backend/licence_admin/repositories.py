"""Repository classes building the access layer's SQL.

Each repository is small and focused on a single table. Statements are
SQLAlchemy Core constructs with bound parameters; every one of them is
run through `Database.execute` under a label that names the operation in
the logs. Repositories return plain dict rows and leave validation and
shaping to the services.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import String, asc, case, cast, delete, desc, func, or_, select, update

from . import models
from .database import Database

users = models.User.__table__
categories = models.LicenceCategory.__table__
sessions = models.UserSession.__table__
certificates = models.MedicalCertificate.__table__
applications = models.Application.__table__

SORTABLE_COLUMNS = (
    "created_at",
    "updated_at",
    "full_name",
    "status",
    "expiry_date",
    "application_id",
    "medical_certificate_id",
)
SEARCHABLE_COLUMNS = ("application_id", "medical_certificate_id", "sub", "full_name", "email")


def escape_like(value: str) -> str:
    """Escape LIKE metacharacters so `value` matches as a literal substring."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _excluded(stmt, columns) -> Dict[str, Any]:
    return {name: stmt.excluded[name] for name in columns}


class UserRepository:
    """Upserts and lookups on `users`."""
    MUTABLE = ("name", "email", "phone", "date_of_birth", "address")

    def __init__(self, db: Database):
        self.db = db

    def upsert(self, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        stmt = self.db.insert(users).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[users.c.sub],
            set_={**_excluded(stmt, self.MUTABLE), "updated_at": func.current_timestamp()},
        ).returning(*users.c)
        return self.db.execute(stmt, label="Save/update user").first()

    def get_by_sub(self, sub: str) -> Optional[Dict[str, Any]]:
        stmt = select(users).where(users.c.sub == sub)
        return self.db.execute(stmt, label="Find user by sub").first()


class LicenceCategoryRepository:
    """Queries on `licence_categories`; deletes are soft."""

    def __init__(self, db: Database):
        self.db = db

    def list_all(self, include_inactive: bool = False) -> List[Dict[str, Any]]:
        stmt = select(
            categories.c.category_code.label("id"),
            categories.c.category_label.label("label"),
            categories.c.description,
            categories.c.fee,
            categories.c.min_age,
            categories.c.vehicle_type,
            categories.c.is_active,
        ).order_by(categories.c.category_code)
        if not include_inactive:
            stmt = stmt.where(categories.c.is_active.is_(True))
        return self.db.execute(stmt, label="Get licence categories").rows

    def get_by_code(self, code: str) -> Optional[Dict[str, Any]]:
        stmt = select(categories).where(categories.c.category_code == code)
        return self.db.execute(stmt, label="Get licence category by code").first()

    def insert(self, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        stmt = categories.insert().values(**values).returning(*categories.c)
        return self.db.execute(stmt, label="Add licence category").first()

    def update(self, code: str, values: Dict[str, Any], label: str = "Update licence category") -> Optional[Dict[str, Any]]:
        stmt = (
            update(categories)
            .where(categories.c.category_code == code)
            .values(**values, updated_at=func.current_timestamp())
            .returning(*categories.c)
        )
        return self.db.execute(stmt, label=label).first()

    def deactivate(self, code: str) -> Optional[Dict[str, Any]]:
        return self.update(code, {"is_active": False}, label="Delete licence category")


class SessionRepository:
    """Token sessions; `expires_at` is maintained by the database trigger."""
    MUTABLE = ("access_token", "token_type", "expires_in", "scope")

    def __init__(self, db: Database):
        self.db = db

    def upsert(self, values: Dict[str, Any]) -> None:
        stmt = self.db.insert(sessions).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[sessions.c.session_id],
            set_={**_excluded(stmt, self.MUTABLE), "created_at": func.current_timestamp()},
        )
        self.db.execute(stmt, label="Save user session")

    def get_by_session_id(self, session_id: str) -> Optional[Dict[str, Any]]:
        stmt = select(sessions).where(sessions.c.session_id == session_id)
        return self.db.execute(stmt, label="Find user session").first()

    def delete_expired(self, now: datetime, created_before: datetime) -> List[str]:
        stmt = (
            delete(sessions)
            .where(or_(sessions.c.expires_at < now, sessions.c.created_at < created_before))
            .returning(sessions.c.session_id)
        )
        rows = self.db.execute(stmt, label="Cleanup expired sessions").rows
        return [r["session_id"] for r in rows]


class MedicalCertificateRepository:
    """Upserts and lookups on `medical_certificates`."""
    MUTABLE = (
        "issued_date",
        "expiry_date",
        "doctor_name",
        "hospital",
        "blood_group",
        "is_fit_to_drive",
        "vision_status",
        "hearing_status",
        "remarks",
    )

    def __init__(self, db: Database):
        self.db = db

    def upsert(self, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        stmt = self.db.insert(certificates).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[certificates.c.certificate_id],
            set_={**_excluded(stmt, self.MUTABLE), "updated_at": func.current_timestamp()},
        ).returning(*certificates.c)
        return self.db.execute(stmt, label="Save medical certificate").first()

    def get_by_certificate_id(self, certificate_id: str) -> Optional[Dict[str, Any]]:
        stmt = select(certificates).where(certificates.c.certificate_id == certificate_id)
        return self.db.execute(stmt, label="Find medical certificate").first()


@dataclass
class ApplicationFilter:
    """Listing predicate: optional exact status plus optional substring search."""
    status: Optional[str] = None
    search: Optional[str] = None
    sort_by: str = "created_at"
    sort_order: str = "DESC"

    def conditions(self) -> list:
        clauses = []
        if self.status and self.status != "all":
            clauses.append(applications.c.status == self.status)
        if self.search:
            pattern = f"%{escape_like(self.search)}%"
            clauses.append(
                or_(*(applications.c[name].ilike(pattern, escape="\\") for name in SEARCHABLE_COLUMNS))
            )
        return clauses

    def ordering(self) -> tuple:
        column = applications.c[self.sort_by] if self.sort_by in SORTABLE_COLUMNS else applications.c.created_at
        direction = asc if str(self.sort_order).upper() == "ASC" else desc
        # id breaks ties between rows written in the same clock tick
        return direction(column), direction(applications.c.id)


def _matches_identifier(identifier: str):
    return or_(
        applications.c.application_id == identifier,
        cast(applications.c.id, String) == identifier,
        applications.c.medical_certificate_id == identifier,
    )


class ApplicationRepository:
    """Inserts, lookups, partial updates, listings and aggregates on `applications`."""

    def __init__(self, db: Database):
        self.db = db

    def insert(self, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        stmt = applications.insert().values(**values).returning(*applications.c)
        return self.db.execute(stmt, label="Save application").first()

    def get_with_user(self, application_id: str) -> Optional[Dict[str, Any]]:
        stmt = (
            select(
                applications,
                users.c.name.label("user_name"),
                users.c.email.label("user_email"),
                users.c.phone.label("user_phone"),
                users.c.date_of_birth.label("user_date_of_birth"),
                users.c.address.label("user_address"),
            )
            .join(users, applications.c.sub == users.c.sub)
            .where(applications.c.application_id == application_id)
        )
        return self.db.execute(stmt, label="Find application by ID").first()

    def find_by_identifier(self, identifier: str) -> Optional[Dict[str, Any]]:
        stmt = select(applications).where(_matches_identifier(identifier)).limit(1)
        return self.db.execute(
            stmt, label="Find application by ID, application_id, or medical_certificate_id"
        ).first()

    def update_status(self, application_id: str, status: str) -> Optional[Dict[str, Any]]:
        stmt = (
            update(applications)
            .where(applications.c.application_id == application_id)
            .values(status=status, updated_at=func.current_timestamp())
            .returning(*applications.c)
        )
        return self.db.execute(stmt, label="Update application status").first()

    def update_by_identifier(
        self, identifier: str, values: Dict[str, Any], label: str = "Update application"
    ) -> Optional[Dict[str, Any]]:
        stmt = (
            update(applications)
            .where(_matches_identifier(identifier))
            .values(**values, updated_at=func.current_timestamp())
            .returning(*applications.c)
        )
        return self.db.execute(stmt, label=label).first()

    def list_filtered(self, flt: ApplicationFilter, limit: int, offset: int) -> Tuple[List[Dict[str, Any]], int]:
        """Return one page plus the total row count; both queries share the predicate and run concurrently."""
        page_stmt = select(applications).order_by(*flt.ordering()).limit(limit).offset(offset)
        count_stmt = select(func.count()).select_from(applications)
        conditions = flt.conditions()
        if conditions:
            page_stmt = page_stmt.where(*conditions)
            count_stmt = count_stmt.where(*conditions)
        page, count = self.db.execute_concurrently(
            (page_stmt, None, "Get applications"),
            (count_stmt, None, "Count applications"),
        )
        return page.rows, count.scalar(0)

    def list_unfiltered(self, limit: int, offset: int) -> Tuple[List[Dict[str, Any]], int]:
        page_stmt = (
            select(applications)
            .order_by(desc(applications.c.created_at), desc(applications.c.id))
            .limit(limit)
            .offset(offset)
        )
        count_stmt = select(func.count()).select_from(applications)
        page, count = self.db.execute_concurrently(
            (page_stmt, None, "Get applications simple"),
            (count_stmt, None, "Count applications simple"),
        )
        return page.rows, count.scalar(0)

    def list_for_user(
        self, sub: str, limit: int, offset: int, status: Optional[str] = None
    ) -> Tuple[List[Dict[str, Any]], int]:
        conditions = [applications.c.sub == sub]
        if status:
            conditions.append(applications.c.status == status)
        page_stmt = (
            select(applications)
            .where(*conditions)
            .order_by(desc(applications.c.created_at), desc(applications.c.id))
            .limit(limit)
            .offset(offset)
        )
        count_stmt = select(func.count()).select_from(applications).where(*conditions)
        page, count = self.db.execute_concurrently(
            (page_stmt, None, "Get user applications"),
            (count_stmt, None, "Count user applications"),
        )
        return page.rows, count.scalar(0)

    def stats(self) -> Dict[str, Any]:
        def count_of(status: str):
            return func.count(case((applications.c.status == status, 1))).label(status)

        stmt = select(
            count_of("pending"),
            count_of("approved"),
            count_of("rejected"),
            func.count(applications.c.id).label("total"),
        ).select_from(applications)
        return self.db.execute(stmt, label="Get application statistics").first() or {}

    def count_by_status(self) -> List[Dict[str, Any]]:
        count = func.count().label("count")
        stmt = select(applications.c.status, count).group_by(applications.c.status).order_by(desc(count))
        return self.db.execute(stmt, label="Get application stats").rows
