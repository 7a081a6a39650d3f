import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from growledger.database import Base


class Patient(Base):
    __tablename__ = "patients"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    association_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("associations.id"), nullable=False, index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    # cpf | rg | passport | other
    document_type: Mapped[str] = mapped_column(String(20), nullable=False)
    document_number: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(30))
    join_date: Mapped[date | None] = mapped_column(Date)
    # active | inactive | pending
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)

    # ── Prescription ─────────────────────────────────────────
    medical_condition: Mapped[str | None] = mapped_column(Text)
    prescribing_doctor: Mapped[str | None] = mapped_column(String(255))
    prescription_expiration_date: Mapped[date | None] = mapped_column(Date)
    # Monthly allowance in grams (flower)
    allowance_flower_grams: Mapped[float | None] = mapped_column(Float)

    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime)
