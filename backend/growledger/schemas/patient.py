"""Pydantic schemas for patient records."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

PatientStatus = Literal["active", "inactive", "pending"]
DocumentType = Literal["cpf", "rg", "passport", "other"]


class PatientCreate(BaseModel):
    association_id: str
    name: str = Field(..., min_length=1, max_length=255)
    document_type: DocumentType
    document_number: str = Field(..., min_length=1, max_length=50)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=30)
    join_date: date | None = None
    status: PatientStatus = "active"
    medical_condition: str | None = None
    prescribing_doctor: str | None = Field(None, max_length=255)
    prescription_expiration_date: date | None = None
    allowance_flower_grams: float | None = Field(None, ge=0)
    notes: str | None = None


class PatientUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    document_type: DocumentType | None = None
    document_number: str | None = Field(None, min_length=1, max_length=50)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=30)
    status: PatientStatus | None = None
    medical_condition: str | None = None
    prescribing_doctor: str | None = Field(None, max_length=255)
    prescription_expiration_date: date | None = None
    allowance_flower_grams: float | None = Field(None, ge=0)
    notes: str | None = None

    model_config = {"extra": "forbid"}


class PatientOut(BaseModel):
    id: str
    association_id: str
    name: str
    document_type: str
    document_number: str
    email: str | None
    phone: str | None
    join_date: date | None
    status: str
    medical_condition: str | None
    prescribing_doctor: str | None
    prescription_expiration_date: date | None
    allowance_flower_grams: float | None
    notes: str | None
    created_by: str | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}
