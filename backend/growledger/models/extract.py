"""Extract — a derived product made from one or more harvests.

Control number: ``EX-{YYYY}-{NNNNN}``, issued from the association's
``extract`` counter (no scope tag).  Input grams are drawn from the source
harvests through HarvestAllocation rows.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from growledger.database import Base


class Extract(Base):
    __tablename__ = "extracts"
    __table_args__ = (
        UniqueConstraint("association_id", "control_number", name="uq_extracts_association_number"),
        UniqueConstraint("association_id", "request_id", name="uq_extracts_association_request"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    control_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    request_id: Mapped[str | None] = mapped_column(String(64))

    association_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("associations.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # oil | tincture | concentrate | isolate | full_spectrum | broad_spectrum | other
    extract_type: Mapped[str] = mapped_column(String(30), nullable=False)
    # co2 | ethanol | butane | rosin | ice_water | olive_oil | other
    extraction_method: Mapped[str] = mapped_column(String(30), nullable=False)
    extraction_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    # ── Input / output ───────────────────────────────────────
    input_weight_grams: Mapped[float] = mapped_column(Float, nullable=False)
    output_volume_ml: Mapped[float | None] = mapped_column(Float)
    output_weight_grams: Mapped[float | None] = mapped_column(Float)

    storage_location: Mapped[str | None] = mapped_column(String(255))
    expiration_date: Mapped[date | None] = mapped_column(Date)
    notes: Mapped[str | None] = mapped_column(Text)

    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime)

    sources = relationship(
        "HarvestAllocation", back_populates="extract",
        order_by="HarvestAllocation.created_at", lazy="selectin",
    )
