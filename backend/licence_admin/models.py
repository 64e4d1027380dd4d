"""SQLModel table definitions.

Each class maps to one table. Columns use explicit SQLAlchemy `Column`
objects so the tables carry server-side defaults, check constraints and
the foreign keys on `users.sub`; the access layer builds Core statements
against `Model.__table__` rather than loading ORM instances.
"""

from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

APPLICATION_STATUSES = ("pending", "submitted", "approved", "rejected", "cancelled")
ADMIN_STATUSES = ("unverified", "verified", "on_hold")

# JSONB on PostgreSQL so the GIN indexes in schema.py apply
Document = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


def _quoted(values) -> str:
    return ", ".join(f"'{v}'" for v in values)


def _created_at() -> Column:
    return Column(DateTime, nullable=False, server_default=func.current_timestamp(), index=True)


def _updated_at() -> Column:
    return Column(DateTime, nullable=False, server_default=func.current_timestamp())


def _owner() -> Column:
    return Column(String(100), ForeignKey("users.sub", ondelete="CASCADE"), nullable=False, index=True)


class User(SQLModel, table=True):
    """An applicant, identified by the identity provider's `sub`."""
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    sub: str = Field(sa_column=Column(String(255), unique=True, nullable=False))
    name: str = Field(sa_column=Column(String(255), nullable=False))
    email: Optional[str] = Field(default=None, sa_column=Column(String(255), index=True))
    phone: Optional[str] = Field(default=None, sa_column=Column(String(50)))
    date_of_birth: Optional[date] = Field(default=None, sa_column=Column(Date))
    address: Optional[str] = Field(default=None, sa_column=Column(Text))
    created_at: Optional[datetime] = Field(default=None, sa_column=_created_at())
    updated_at: Optional[datetime] = Field(default=None, sa_column=_updated_at())


class LicenceCategory(SQLModel, table=True):
    """A licence category such as `B` (light motor car).

    `is_active` is the soft-delete marker: inactive categories are still
    found by code but are hidden from the default listing.
    """
    __tablename__ = "licence_categories"
    __table_args__ = (
        CheckConstraint("fee > 0", name="ck_licence_categories_fee_positive"),
        CheckConstraint("min_age BETWEEN 16 AND 100", name="ck_licence_categories_min_age"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    category_code: str = Field(sa_column=Column(String(10), unique=True, nullable=False))
    category_label: str = Field(sa_column=Column(String(50), nullable=False))
    description: str = Field(sa_column=Column(Text, nullable=False))
    fee: float = Field(sa_column=Column(Numeric(10, 2, asdecimal=False), nullable=False))
    min_age: Optional[int] = Field(default=None, sa_column=Column(Integer, server_default=text("18")))
    vehicle_type: Optional[str] = Field(default=None, sa_column=Column(String(100), index=True))
    is_active: Optional[bool] = Field(default=None, sa_column=Column(Boolean, server_default=text("true"), index=True))
    created_at: Optional[datetime] = Field(default=None, sa_column=_created_at())
    updated_at: Optional[datetime] = Field(default=None, sa_column=_updated_at())


class UserSession(SQLModel, table=True):
    """A stored identity-provider token set.

    `expires_at` is written by a database trigger from `created_at` and
    `expires_in`; application code never sets it.
    """
    __tablename__ = "user_sessions"

    id: Optional[int] = Field(default=None, primary_key=True)
    sub: str = Field(sa_column=_owner())
    session_id: str = Field(sa_column=Column(String(255), unique=True, nullable=False))
    access_token: Optional[str] = Field(default=None, sa_column=Column(Text))
    token_type: Optional[str] = Field(default=None, sa_column=Column(String(50)))
    expires_in: Optional[int] = Field(default=None, sa_column=Column(Integer, server_default=text("3600")))
    scope: Optional[str] = Field(default=None, sa_column=Column(Text))
    created_at: Optional[datetime] = Field(default=None, sa_column=_created_at())
    expires_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, index=True))


class MedicalCertificate(SQLModel, table=True):
    """A medical fitness certificate issued to a user."""
    __tablename__ = "medical_certificates"

    id: Optional[int] = Field(default=None, primary_key=True)
    sub: str = Field(sa_column=_owner())
    certificate_id: str = Field(sa_column=Column(String(100), unique=True, nullable=False))
    issued_date: date = Field(sa_column=Column(Date, nullable=False))
    expiry_date: date = Field(sa_column=Column(Date, nullable=False, index=True))
    doctor_name: str = Field(sa_column=Column(String(255), nullable=False))
    hospital: str = Field(sa_column=Column(String(255), nullable=False))
    blood_group: Optional[str] = Field(default=None, sa_column=Column(String(10)))
    is_fit_to_drive: Optional[bool] = Field(default=None, sa_column=Column(Boolean, server_default=text("true")))
    vision_status: Optional[str] = Field(default=None, sa_column=Column(Text))
    hearing_status: Optional[str] = Field(default=None, sa_column=Column(Text))
    remarks: Optional[str] = Field(default=None, sa_column=Column(Text))
    created_at: Optional[datetime] = Field(default=None, sa_column=_created_at())
    updated_at: Optional[datetime] = Field(default=None, sa_column=_updated_at())


class Application(SQLModel, table=True):
    """A licence application with a snapshot of the applicant's personal and medical data.

    `written_test`, `practical_test` and `selected_categories` are opaque
    structured documents. `status` follows the application lifecycle and
    `admin_status` tracks back-office verification independently.
    """
    __tablename__ = "applications"
    __table_args__ = (
        CheckConstraint(f"status IN ({_quoted(APPLICATION_STATUSES)})", name="ck_applications_status"),
        CheckConstraint(f"admin_status IN ({_quoted(ADMIN_STATUSES)})", name="ck_applications_admin_status"),
        CheckConstraint("total_amount >= 0", name="ck_applications_total_amount"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    sub: str = Field(sa_column=_owner())
    application_id: str = Field(sa_column=Column(String(100), unique=True, nullable=False))
    medical_certificate_id: str = Field(sa_column=Column(String(100), nullable=False, index=True))

    full_name: str = Field(sa_column=Column(String(255), nullable=False))
    email: str = Field(sa_column=Column(String(255), nullable=False, index=True))
    phone: Optional[str] = Field(default=None, sa_column=Column(String(50)))
    date_of_birth: date = Field(sa_column=Column(Date, nullable=False))
    gender: Optional[str] = Field(default=None, sa_column=Column(String(20)))
    blood_group: Optional[str] = Field(default=None, sa_column=Column(String(10)))

    doctor_name: str = Field(sa_column=Column(String(255), nullable=False))
    hospital: str = Field(sa_column=Column(String(255), nullable=False))
    issued_date: date = Field(sa_column=Column(Date, nullable=False))
    expiry_date: date = Field(sa_column=Column(Date, nullable=False, index=True))
    is_fit_to_drive: Optional[bool] = Field(default=None, sa_column=Column(Boolean, server_default=text("true")))
    vision: Optional[str] = Field(default=None, sa_column=Column(String(100)))
    hearing: Optional[str] = Field(default=None, sa_column=Column(String(100)))
    remarks: Optional[str] = Field(default=None, sa_column=Column(Text))
    photo_url: Optional[str] = Field(default=None, sa_column=Column(Text))

    written_test: Optional[Any] = Field(default=None, sa_column=Column(Document))
    practical_test: Optional[Any] = Field(default=None, sa_column=Column(Document))

    selected_categories: Any = Field(sa_column=Column(Document, nullable=False))
    total_amount: Optional[float] = Field(
        default=None, sa_column=Column(Numeric(10, 2, asdecimal=False), server_default=text("0"))
    )
    payment_reference_id: Optional[str] = Field(default=None, sa_column=Column(String(100)))
    payment_transaction_id: Optional[str] = Field(default=None, sa_column=Column(String(100)))
    status: Optional[str] = Field(default=None, sa_column=Column(String(50), server_default="pending", index=True))
    admin_status: Optional[str] = Field(default=None, sa_column=Column(String(20), server_default="unverified"))

    created_at: Optional[datetime] = Field(default=None, sa_column=_created_at())
    updated_at: Optional[datetime] = Field(default=None, sa_column=_updated_at())
