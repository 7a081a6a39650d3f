"""Pydantic schemas for harvests, weight recordings and availability."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

from growledger.models.harvest import HarvestPurpose

QualityGrade = Literal["A", "B", "C"]


class HarvestCreate(BaseModel):
    plant_id: str
    harvest_date: date
    wet_weight_grams: float = Field(..., gt=0)
    trim_weight_grams: float | None = Field(None, ge=0)
    purpose: HarvestPurpose = Field(HarvestPurpose.PATIENT, validate_default=True)
    destination_patient_id: str | None = None
    quality_grade: QualityGrade | None = None
    storage_location: str | None = Field(None, max_length=255)
    notes: str | None = None

    model_config = {"use_enum_values": True}


class HarvestWeightRecord(BaseModel):
    """Payload for POST /api/harvests/{harvest_id}/weights."""
    stage: Literal["dry", "final"]
    grams: float = Field(..., gt=0)


class HarvestStatusUpdate(BaseModel):
    """Payload for POST /api/harvests/{harvest_id}/status.

    Any known status is accepted, including backwards moves.
    """
    status: str
    notes: str | None = None


class HarvestUpdate(BaseModel):
    """Editable harvest fields.

    Weights, consumption totals and status have their own endpoints.
    """
    harvest_date: date | None = None
    trim_weight_grams: float | None = Field(None, ge=0)
    purpose: HarvestPurpose | None = None
    destination_patient_id: str | None = None
    quality_grade: QualityGrade | None = None
    storage_location: str | None = Field(None, max_length=255)
    notes: str | None = None

    model_config = {"extra": "forbid", "use_enum_values": True}


class HarvestOut(BaseModel):
    id: str
    control_number: str
    plant_id: str
    environment_id: str
    association_id: str
    harvest_date: date
    wet_weight_grams: float
    dry_weight_grams: float | None
    final_weight_grams: float | None
    trim_weight_grams: float | None
    distributed_grams: float
    extracted_grams: float
    status: str
    purpose: str
    destination_patient_id: str | None
    quality_grade: str | None
    storage_location: str | None
    notes: str | None
    version: int
    created_by: str | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}


class HarvestAvailability(BaseModel):
    harvest_id: str
    control_number: str
    status: str
    best_available_grams: float
    distributed_grams: float
    extracted_grams: float
    available_grams: float


class HarvestDetail(HarvestOut):
    availability: HarvestAvailability
