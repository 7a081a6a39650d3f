"""Sequence issuance — atomic per-scope counters turned into control numbers.

Counting existing rows (``COUNT(*) LIKE 'prefix%'``) hands the same number
to two concurrent callers.  Instead every (scope, counter) pair owns one
SequenceCounter row, advanced with a single statement:

    UPDATE sequence_counters SET value = value + :n
     WHERE scope_id = :scope AND counter_name = :name
    RETURNING value

The database serializes concurrent UPDATEs of one row, so each caller sees
a distinct value.  The first issuance for a scope inserts the row inside a
savepoint; losing that insert race (IntegrityError) just retries the
UPDATE.  The increment joins the caller's transaction: rolled back with it,
committed with it, never reused once committed.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from growledger.config import settings
from growledger.middleware.exceptions import IssuanceConflict, ScopeNotFound
from growledger.models.scope import Association, Environment
from growledger.models.sequence_counter import SequenceCounter
from growledger.utils.numbering import (
    KIND_BY_PREFIX,
    ControlNumber,
    InvalidControlNumber,
)

logger = logging.getLogger("growledger.sequence")


class SequenceIssuer:
    def __init__(
        self,
        max_attempts: int | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.max_attempts = max_attempts or settings.sequence_max_attempts
        self.clock = clock

    async def _ensure_scope(self, session: AsyncSession, scope_id: str) -> None:
        env = await session.scalar(
            select(Environment.id).where(
                Environment.id == scope_id,
                Environment.deleted_at.is_(None),
            )
        )
        if env is not None:
            return
        assoc = await session.scalar(
            select(Association.id).where(Association.id == scope_id)
        )
        if assoc is None:
            raise ScopeNotFound(scope_id)

    async def reserve(
        self,
        session: AsyncSession,
        scope_id: str,
        counter_name: str,
        count: int = 1,
    ) -> int:
        """Advance the counter by ``count``; return the new (last reserved) value."""
        if count < 1:
            raise ValueError("count must be >= 1")
        await self._ensure_scope(session, scope_id)

        for attempt in range(1, self.max_attempts + 1):
            result = await session.execute(
                update(SequenceCounter)
                .where(
                    SequenceCounter.scope_id == scope_id,
                    SequenceCounter.counter_name == counter_name,
                )
                .values(
                    value=SequenceCounter.value + count,
                    updated_at=datetime.utcnow(),
                )
                .returning(SequenceCounter.value)
                .execution_options(synchronize_session=False)
            )
            value = result.scalar_one_or_none()
            if value is not None:
                return value

            # First issuance for this scope: create the row
            try:
                async with session.begin_nested():
                    session.add(SequenceCounter(
                        scope_id=scope_id,
                        counter_name=counter_name,
                        value=count,
                    ))
                return count
            except IntegrityError:
                logger.info(
                    "Counter %s/%s created concurrently, retrying (attempt %d)",
                    scope_id, counter_name, attempt,
                )

        logger.warning(
            "Giving up on counter %s/%s after %d attempts",
            scope_id, counter_name, self.max_attempts,
        )
        raise IssuanceConflict()

    def _build(self, prefix: str, scope_tag: str | None, year: int, sequence: int) -> ControlNumber:
        kind = KIND_BY_PREFIX.get(prefix)
        if kind is None:
            raise InvalidControlNumber(f"Unknown control-number prefix: {prefix!r}")
        return ControlNumber(kind=kind, scope=scope_tag, year=year, sequence=sequence)

    async def issue(
        self,
        session: AsyncSession,
        scope_id: str,
        counter_name: str,
        prefix: str,
        scope_tag: str | None = None,
    ) -> ControlNumber:
        """Reserve the next value of ``(scope_id, counter_name)`` and format it."""
        # Validate the prefix/tag combination before touching the counter
        year = self.clock().year
        self._build(prefix, scope_tag, year, 1)

        sequence = await self.reserve(session, scope_id, counter_name)
        number = self._build(prefix, scope_tag, year, sequence)
        logger.info("Issued %s (%s/%s)", number, scope_id, counter_name)
        return number

    async def issue_many(
        self,
        session: AsyncSession,
        scope_id: str,
        counter_name: str,
        prefix: str,
        count: int,
        scope_tag: str | None = None,
    ) -> list[ControlNumber]:
        """Reserve ``count`` consecutive values in one atomic step."""
        year = self.clock().year
        self._build(prefix, scope_tag, year, 1)

        last = await self.reserve(session, scope_id, counter_name, count)
        numbers = [
            self._build(prefix, scope_tag, year, seq)
            for seq in range(last - count + 1, last + 1)
        ]
        logger.info(
            "Issued %s..%s (%s/%s)", numbers[0], numbers[-1], scope_id, counter_name
        )
        return numbers
