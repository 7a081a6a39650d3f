"""Common schemas used across the application."""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class CursorPaginatedResponse(BaseModel, Generic[T]):
    """Cursor-based paginated response for the time-ordered audit log.

    ``next_cursor`` encodes the last item's ``created_at`` and id; pass it
    back unchanged to get the next (older) page.
    """
    items: list[T]
    total: int
    limit: int
    next_cursor: str | None = None
    has_more: bool


class AllocationSource(BaseModel):
    """Grams drawn from one harvest."""
    harvest_id: str
    grams: float = Field(..., gt=0)


class AllocationOut(BaseModel):
    id: str
    harvest_id: str
    harvest_control_number: str
    kind: str
    grams: float
    created_at: datetime
    released_at: datetime | None = None

    model_config = {"from_attributes": True}
