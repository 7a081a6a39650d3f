"""SequenceCounter — one row per (scope, counter name).

The only write path is SequenceIssuer, which advances ``value`` with a
single ``UPDATE ... SET value = value + n ... RETURNING value``.  Rows are
created lazily at first issuance and never reset or deleted.
"""

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from growledger.database import Base


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"
    __table_args__ = (
        CheckConstraint("value >= 0", name="ck_sequence_counters_value_nonneg"),
    )

    # Environment id or association id (no FK: either table)
    scope_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    # plant | harvest | extract | distribution
    counter_name: Mapped[str] = mapped_column(String(50), primary_key=True)

    value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
