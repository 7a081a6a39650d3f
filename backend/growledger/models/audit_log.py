"""AuditLogEntry — immutable audit trail for regulated entities.

One row per create / update / delete of a plant, harvest, patient,
distribution, extract or environment.  Updates store the changed top-level
field names plus both full snapshots, so any historical state can be read
from a single row.

Append-only: the ORM refuses to UPDATE or DELETE an entry once it has been
written.  The integer primary key follows insertion order and breaks ties
between entries with the same ``created_at``.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, JSON, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from growledger.database import Base


class AuditLogEntry(Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # ── Who ────────────────────────────────────────────────────
    actor_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    actor_email: Mapped[str | None] = mapped_column(String(255))

    # ── What ───────────────────────────────────────────────────
    # create | update | delete
    action: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    # ── Target ─────────────────────────────────────────────────
    # plant | harvest | patient | distribution | extract | environment
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    entity_display_name: Mapped[str | None] = mapped_column(String(255))

    # ── Diff ───────────────────────────────────────────────────
    changed_fields: Mapped[list | None] = mapped_column(JSON)
    previous_value: Mapped[dict | None] = mapped_column(JSON)
    new_value: Mapped[dict | None] = mapped_column(JSON)
    notes: Mapped[str | None] = mapped_column(Text)

    # ── Timestamp ──────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )


class AuditLogImmutableError(Exception):
    """Raised when code tries to modify or remove a written audit entry."""


@event.listens_for(AuditLogEntry, "before_update")
def _refuse_update(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit entry {target.id} is immutable")


@event.listens_for(AuditLogEntry, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit entry {target.id} cannot be deleted")
