"""Pydantic schemas for plants and clones."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

SourceType = Literal["seed", "clone", "cutting", "tissue_culture"]


class PlantCreate(BaseModel):
    environment_id: str
    name: str = Field(..., min_length=1, max_length=255)
    strain: str = Field(..., min_length=1, max_length=255)
    start_date: date
    current_stage: str | None = Field(None, max_length=30)
    source_type: SourceType = "seed"
    mother_plant_id: str | None = None
    genetic_lineage: str | None = Field(None, max_length=255)
    is_mother_plant: bool = False
    notes: str | None = None


class PlantCloneRequest(BaseModel):
    """Payload for POST /api/plants/{plant_id}/clones."""
    count: int = Field(1, ge=1, le=100)
    start_date: date | None = None
    environment_id: str | None = None  # defaults to the mother's environment
    notes: str | None = None


class PlantUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    strain: str | None = Field(None, min_length=1, max_length=255)
    start_date: date | None = None
    current_stage: str | None = Field(None, max_length=30)
    genetic_lineage: str | None = Field(None, max_length=255)
    is_mother_plant: bool | None = None
    notes: str | None = None

    model_config = {"extra": "forbid"}


class PlantOut(BaseModel):
    id: str
    control_number: str
    environment_id: str
    association_id: str
    name: str
    strain: str
    start_date: date
    current_stage: str | None
    source_type: str
    mother_plant_id: str | None
    parent_control_number: str | None
    genetic_lineage: str | None
    is_mother_plant: bool
    notes: str | None
    created_by: str | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}
