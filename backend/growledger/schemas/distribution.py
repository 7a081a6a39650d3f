"""Pydantic schemas for distributions to patients."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from growledger.schemas.common import AllocationOut, AllocationSource

ProductType = Literal["flower", "extract", "oil", "edible", "topical", "other"]


class DistributionCreate(BaseModel):
    """Payload for POST /api/distributions.

    Flower is drawn from harvests: either ``sources`` (one entry per
    harvest) or the single-harvest shorthand ``harvest_id`` +
    ``quantity_grams``.  Extract products reference ``extract_id`` and
    carry millilitres instead.
    """
    association_id: str
    patient_id: str
    product_type: ProductType
    product_description: str | None = None

    sources: list[AllocationSource] = Field(default_factory=list)
    harvest_id: str | None = None
    quantity_grams: float | None = Field(None, gt=0)

    extract_id: str | None = None
    quantity_ml: float | None = Field(None, gt=0)
    quantity_units: int | None = Field(None, ge=1)

    distribution_date: date
    received_by: str | None = Field(None, max_length=255)
    notes: str | None = None
    request_id: str | None = Field(None, min_length=1, max_length=64)

    @model_validator(mode="after")
    def _normalize_sources(self):
        if self.harvest_id is not None:
            if self.sources:
                raise ValueError("Give either sources or harvest_id, not both")
            if self.quantity_grams is None:
                raise ValueError("quantity_grams is required with harvest_id")
            self.sources = [
                AllocationSource(harvest_id=self.harvest_id, grams=self.quantity_grams)
            ]
            self.harvest_id = None
        if len({s.harvest_id for s in self.sources}) != len(self.sources):
            raise ValueError("Each source harvest may appear only once")
        if self.product_type == "flower" and not self.sources:
            raise ValueError("Flower distributions need at least one source harvest")
        if self.product_type == "extract" and not self.extract_id:
            raise ValueError("Extract distributions need extract_id")
        return self


class DistributionUpdate(BaseModel):
    """Only display fields change after a distribution is recorded."""
    patient_name: str | None = Field(None, min_length=1, max_length=255)
    product_description: str | None = None
    notes: str | None = None

    model_config = {"extra": "forbid"}


class DistributionOut(BaseModel):
    id: str
    distribution_number: str
    request_id: str | None
    association_id: str
    patient_id: str
    patient_name: str
    product_type: str
    product_description: str | None
    extract_id: str | None
    extract_control_number: str | None
    quantity_grams: float | None
    quantity_ml: float | None
    quantity_units: int | None
    distribution_date: date
    received_by: str | None
    notes: str | None
    sources: list[AllocationOut] = []
    created_by: str | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}
