"""Pydantic request schemas used by the API.

Fields are optional at this layer so that missing-field and format
errors are reported by the services with their own messages; pydantic
only guards the JSON types.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ApplicationIn(BaseModel):
    """Application submission payload (camelCase keys as sent by the submission form)."""
    model_config = ConfigDict(populate_by_name=True)

    sub: Optional[str] = None
    application_id: Optional[str] = None
    medical_certificate_id: Optional[str] = None
    select_categories: Any = Field(default=None, alias="selectCategories")
    status: Optional[str] = None
    total_amount: Optional[float] = None
    payment_reference_id: Optional[str] = None
    payment_transaction_id: Optional[str] = None
    full_name: Optional[str] = Field(default=None, alias="fullName")
    email: Optional[str] = None
    phone: Optional[str] = None
    dob: Optional[str] = None
    gender: Optional[str] = None
    blood_group: Optional[str] = Field(default=None, alias="bloodGroup")
    doctor_name: Optional[str] = Field(default=None, alias="doctorName")
    hospital: Optional[str] = None
    issued_date: Optional[str] = Field(default=None, alias="issuedDate")
    expiry_date: Optional[str] = Field(default=None, alias="expiryDate")
    is_fit_to_drive: Optional[bool] = Field(default=None, alias="isFitToDrive")
    vision: Optional[str] = None
    hearing: Optional[str] = None
    remarks: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoUrl")
    written_test: Any = Field(default=None, alias="writtenTest")
    practical_test: Any = Field(default=None, alias="practicalTest")


class ApplicationUpdateIn(BaseModel):
    """Partial application update; keys outside this model are dropped."""
    model_config = ConfigDict(extra="ignore")

    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    blood_group: Optional[str] = None
    doctor_name: Optional[str] = None
    hospital: Optional[str] = None
    issued_date: Optional[str] = None
    expiry_date: Optional[str] = None
    is_fit_to_drive: Optional[bool] = None
    vision: Optional[str] = None
    hearing: Optional[str] = None
    remarks: Optional[str] = None
    photo_url: Optional[str] = None
    written_test: Any = None
    practical_test: Any = None
    selected_categories: Any = None
    total_amount: Optional[float] = None
    payment_reference_id: Optional[str] = None
    payment_transaction_id: Optional[str] = None
    status: Optional[str] = None
    admin_status: Optional[str] = None


class StatusUpdateIn(BaseModel):
    status: Optional[str] = None


class LicenceCategoryIn(BaseModel):
    """Payload for creating a licence category."""
    category_code: Optional[str] = None
    category_label: Optional[str] = None
    description: Optional[str] = None
    fee: Optional[float] = None
    min_age: Optional[int] = None
    vehicle_type: Optional[str] = None


class LicenceCategoryUpdateIn(BaseModel):
    category_label: Optional[str] = None
    description: Optional[str] = None
    fee: Optional[float] = None
    min_age: Optional[int] = None
    vehicle_type: Optional[str] = None
    is_active: Optional[bool] = None
