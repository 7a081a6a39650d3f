"""Distribution — material handed to a patient.

Flower distributions draw grams from one or more harvests (see
HarvestAllocation); extract distributions reference an Extract and carry
millilitres.  Once created, only the display fields (patient_name,
product_description, notes) may change.

``request_id`` is the caller's allocation id, unique within an association:
replaying a request with the same id returns the existing distribution
instead of allocating again.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from growledger.database import Base


class Distribution(Base):
    __tablename__ = "distributions"
    __table_args__ = (
        UniqueConstraint(
            "association_id", "distribution_number", name="uq_distributions_association_number",
        ),
        UniqueConstraint("association_id", "request_id", name="uq_distributions_association_request"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # D-{YYYY}-{NNNNN}
    distribution_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    request_id: Mapped[str | None] = mapped_column(String(64))

    association_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("associations.id"), nullable=False, index=True
    )
    patient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("patients.id"), nullable=False, index=True
    )
    patient_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # flower | extract | oil | edible | topical | other
    product_type: Mapped[str] = mapped_column(String(30), nullable=False)
    product_description: Mapped[str | None] = mapped_column(Text)
    extract_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("extracts.id"), index=True
    )
    extract_control_number: Mapped[str | None] = mapped_column(String(50))

    # ── Quantity ─────────────────────────────────────────────
    quantity_grams: Mapped[float | None] = mapped_column(Float)
    quantity_ml: Mapped[float | None] = mapped_column(Float)
    quantity_units: Mapped[int | None] = mapped_column(Integer)

    distribution_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    received_by: Mapped[str | None] = mapped_column(String(255))
    notes: Mapped[str | None] = mapped_column(Text)

    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime)

    sources = relationship(
        "HarvestAllocation", back_populates="distribution",
        order_by="HarvestAllocation.created_at", lazy="selectin",
    )
