"""HarvestAllocation — grams drawn from one harvest by one consumer.

Exactly one of ``distribution_id`` / ``extract_id`` is set, matching
``kind``.  ``harvest_control_number`` is denormalized at allocation time
and never rewritten.  When the consumer is deleted the row stays and gets
``released_at``; the grams go back to the harvest.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from growledger.database import Base


class HarvestAllocation(Base):
    __tablename__ = "harvest_allocations"
    __table_args__ = (
        CheckConstraint("grams > 0", name="ck_harvest_allocations_grams_positive"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    harvest_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("harvests.id"), nullable=False, index=True
    )
    harvest_control_number: Mapped[str] = mapped_column(String(50), nullable=False)

    # distribution | extraction
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    distribution_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("distributions.id"), index=True
    )
    extract_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("extracts.id"), index=True
    )

    grams: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    released_at: Mapped[datetime | None] = mapped_column(DateTime)

    harvest = relationship("Harvest", back_populates="allocations")
    distribution = relationship("Distribution", back_populates="sources")
    extract = relationship("Extract", back_populates="sources")
