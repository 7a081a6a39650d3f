"""Pydantic schemas for extracts."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from growledger.schemas.common import AllocationOut, AllocationSource

ExtractType = Literal[
    "oil", "tincture", "concentrate", "isolate",
    "full_spectrum", "broad_spectrum", "other",
]
ExtractionMethod = Literal[
    "co2", "ethanol", "butane", "rosin", "ice_water", "olive_oil", "other",
]


class ExtractCreate(BaseModel):
    """Payload for POST /api/extracts.

    Input material is given per harvest in ``sources``, or as a total
    ``input_weight_grams`` over ``harvest_ids``, split equally.
    """
    association_id: str
    name: str = Field(..., min_length=1, max_length=255)
    extract_type: ExtractType
    extraction_method: ExtractionMethod
    extraction_date: date

    sources: list[AllocationSource] = Field(default_factory=list)
    harvest_ids: list[str] = Field(default_factory=list)
    input_weight_grams: float | None = Field(None, gt=0)

    output_volume_ml: float | None = Field(None, ge=0)
    output_weight_grams: float | None = Field(None, ge=0)
    storage_location: str | None = Field(None, max_length=255)
    expiration_date: date | None = None
    notes: str | None = None
    request_id: str | None = Field(None, min_length=1, max_length=64)

    @model_validator(mode="after")
    def _check_input(self):
        if self.sources and self.harvest_ids:
            raise ValueError("Give either sources or harvest_ids, not both")
        if not self.sources and not self.harvest_ids:
            raise ValueError("At least one source harvest is required")
        if self.harvest_ids and self.input_weight_grams is None:
            raise ValueError("input_weight_grams is required with harvest_ids")
        ids = [s.harvest_id for s in self.sources] or self.harvest_ids
        if len(set(ids)) != len(ids):
            raise ValueError("Each source harvest may appear only once")
        return self


class ExtractUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    storage_location: str | None = Field(None, max_length=255)
    expiration_date: date | None = None
    notes: str | None = None

    model_config = {"extra": "forbid"}


class ExtractOut(BaseModel):
    id: str
    control_number: str
    request_id: str | None
    association_id: str
    name: str
    extract_type: str
    extraction_method: str
    extraction_date: date
    input_weight_grams: float
    output_volume_ml: float | None
    output_weight_grams: float | None
    storage_location: str | None
    expiration_date: date | None
    notes: str | None
    sources: list[AllocationOut] = []
    created_by: str | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}
