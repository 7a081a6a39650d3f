"""Harvest — one cultivation yield and the weight drawn from it.

A Harvest is created with its wet weight and refined over time (dry, then
final weight).  Distributions and extractions draw grams from it; the
running totals live in ``distributed_grams`` / ``extracted_grams``.

Invariant:  distributed_grams + extracted_grams <= best_available_weight
            (final > dry > wet, first one present and positive)

Only growledger.services.weights writes the weight, consumption and status
columns.  Every UPDATE is guarded by ``version`` (SQLAlchemy ``version_id_col``),
so a writer holding a stale snapshot fails with StaleDataError instead of
overwriting a concurrent allocation.

Lifecycle:  fresh → drying → curing → processed → distributed
"""

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint, Date, DateTime, Float, ForeignKey,
    Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from growledger.database import Base


class HarvestStatus(str, enum.Enum):
    FRESH = "fresh"
    DRYING = "drying"
    CURING = "curing"
    PROCESSED = "processed"
    DISTRIBUTED = "distributed"


class HarvestPurpose(str, enum.Enum):
    PATIENT = "patient"
    RESEARCH = "research"
    EXTRACT = "extract"
    PERSONAL = "personal"
    DONATION = "donation"
    OTHER = "other"


class Harvest(Base):
    __tablename__ = "harvests"
    __table_args__ = (
        CheckConstraint("wet_weight_grams > 0", name="ck_harvests_wet_positive"),
        CheckConstraint("distributed_grams >= 0", name="ck_harvests_distributed_nonneg"),
        CheckConstraint("extracted_grams >= 0", name="ck_harvests_extracted_nonneg"),
        UniqueConstraint("environment_id", "control_number", name="uq_harvests_environment_number"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # H-{ENV}-{YYYY}-{NNNNN}
    control_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # ── Origin traceability ──────────────────────────────────
    plant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("plants.id"), nullable=False, index=True
    )
    environment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("environments.id"), nullable=False, index=True
    )
    association_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("associations.id"), nullable=False, index=True
    )
    harvest_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    # ── Weights (grams) ──────────────────────────────────────
    wet_weight_grams: Mapped[float] = mapped_column(Float, nullable=False)
    dry_weight_grams: Mapped[float | None] = mapped_column(Float)
    final_weight_grams: Mapped[float | None] = mapped_column(Float)
    trim_weight_grams: Mapped[float | None] = mapped_column(Float)

    # ── Consumption ──────────────────────────────────────────
    distributed_grams: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    extracted_grams: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # ── Status / purpose ─────────────────────────────────────
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=HarvestStatus.FRESH.value, index=True
    )
    purpose: Mapped[str] = mapped_column(String(30), nullable=False)
    destination_patient_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("patients.id")
    )
    # A | B | C
    quality_grade: Mapped[str | None] = mapped_column(String(1))
    storage_location: Mapped[str | None] = mapped_column(String(255))

    # ── Metadata ─────────────────────────────────────────────
    notes: Mapped[str | None] = mapped_column(Text)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime)

    __mapper_args__ = {"version_id_col": version}

    # ── Relationships ────────────────────────────────────────
    plant = relationship("Plant", back_populates="harvests")
    allocations = relationship(
        "HarvestAllocation", back_populates="harvest",
        order_by="HarvestAllocation.created_at",
    )

    @property
    def consumed_grams(self) -> float:
        return (self.distributed_grams or 0.0) + (self.extracted_grams or 0.0)
