"""Scope entities — what sequence counters and control numbers are namespaced to.

Association  the tenant; extract and distribution numbers run per association.
Environment  a growing environment (room, tent, greenhouse) inside an
             association; plant, clone and harvest numbers run per environment
             and carry the environment's initials.

Counters are NOT stored on these rows (see SequenceCounter).
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from growledger.database import Base


class Association(Base):
    __tablename__ = "associations"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    environments = relationship("Environment", back_populates="association")


class Environment(Base):
    __tablename__ = "environments"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    association_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("associations.id"), nullable=False, index=True
    )
    # Display name; its initials become the control-number scope tag
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # indoor | outdoor | greenhouse
    type: Mapped[str] = mapped_column(String(30), default="indoor")
    notes: Mapped[str | None] = mapped_column(Text)

    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime)

    association = relationship("Association", back_populates="environments")
