"""Pydantic schemas for audit log entries."""

from datetime import datetime

from pydantic import BaseModel


class AuditLogOut(BaseModel):
    id: int
    actor_id: str
    actor_email: str | None
    action: str
    entity_type: str
    entity_id: str
    entity_display_name: str | None
    changed_fields: list[str] | None
    previous_value: dict | None
    new_value: dict | None
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
