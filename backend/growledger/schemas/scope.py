"""Pydantic schemas for associations and growing environments."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class AssociationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class AssociationOut(BaseModel):
    id: str
    name: str
    created_by: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Environments ─────────────────────────────────────────────

EnvironmentType = Literal["indoor", "outdoor", "greenhouse"]


class EnvironmentCreate(BaseModel):
    association_id: str
    name: str = Field(..., min_length=1, max_length=255)
    type: EnvironmentType = "indoor"
    notes: str | None = None


class EnvironmentUpdate(BaseModel):
    """Renaming never rewrites control numbers already issued."""
    name: str | None = Field(None, min_length=1, max_length=255)
    type: EnvironmentType | None = None
    notes: str | None = None

    model_config = {"extra": "forbid"}


class EnvironmentOut(BaseModel):
    id: str
    association_id: str
    name: str
    type: str
    notes: str | None
    created_by: str | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}
