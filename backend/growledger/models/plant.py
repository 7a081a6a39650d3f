"""Plant — a tracked individual, seed-grown or cloned.

Control numbers: ``A-{ENV}-{YYYY}-{NNNNN}`` for plants,
``CL-{ENV}-{YYYY}-{NNNNN}`` for clones; both draw from the environment's
``plant`` counter.

Deletion is a tombstone (``deleted_at``): harvests keep pointing at the
plant and still resolve it.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from growledger.database import Base


class Plant(Base):
    __tablename__ = "plants"
    __table_args__ = (
        UniqueConstraint("environment_id", "control_number", name="uq_plants_environment_number"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    control_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # ── Location ─────────────────────────────────────────────
    environment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("environments.id"), nullable=False, index=True
    )
    association_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("associations.id"), nullable=False, index=True
    )

    # ── Identity / cultivation ───────────────────────────────
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    strain: Mapped[str] = mapped_column(String(255), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    # Seedling | Veg | Flower | Drying | Curing
    current_stage: Mapped[str | None] = mapped_column(String(30))

    # ── Genetics ─────────────────────────────────────────────
    # seed | clone | cutting | tissue_culture
    source_type: Mapped[str] = mapped_column(String(30), default="seed")
    mother_plant_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("plants.id")
    )
    parent_control_number: Mapped[str | None] = mapped_column(String(50))
    genetic_lineage: Mapped[str | None] = mapped_column(String(255))
    is_mother_plant: Mapped[bool] = mapped_column(Boolean, default=False)

    # ── Metadata ─────────────────────────────────────────────
    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime)

    environment = relationship("Environment")
    harvests = relationship("Harvest", back_populates="plant")
