"""Audit recorder — the only write path to the audit log.

Every ledger mutation calls ``record()`` inside its own transaction, after
the entity change has been flushed.  If the append cannot be flushed the
recorder raises PersistenceError and the whole operation rolls back: a
mutation without its audit entry never becomes durable.

Snapshots are plain JSON dicts (see ``snapshot()``).  For updates the entry
stores the sorted list of top-level keys whose serialized value differs,
plus both full snapshots.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from growledger.config import settings
from growledger.middleware.exceptions import LedgerValidationError, PersistenceError
from growledger.models.audit_log import AuditLogEntry

logger = logging.getLogger("growledger.audit")

ACTIONS = ("create", "update", "delete")

# Bookkeeping columns that change on every write and say nothing about the entity
SNAPSHOT_EXCLUDED_FIELDS = {"updated_at", "version"}


@dataclass(frozen=True)
class Actor:
    """The current user, as far as the ledger cares."""
    user_id: str
    email: str | None = None


@dataclass
class AuditPage:
    items: list[AuditLogEntry]
    total: int
    limit: int
    next_cursor: str | None = None
    has_more: bool = False


@dataclass
class AuditFilters:
    entity_type: str | None = None
    entity_id: str | None = None
    action: str | None = None
    actor_id: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    limit: int | None = None
    cursor: str | None = None


def snapshot(schema: type[BaseModel], entity) -> dict:
    """Serialize an ORM entity through its response schema."""
    data = schema.model_validate(entity).model_dump(mode="json")
    for name in SNAPSHOT_EXCLUDED_FIELDS:
        data.pop(name, None)
    return data


def _canonical(value) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def changed_fields(before: dict | None, after: dict | None) -> list[str]:
    before = before or {}
    after = after or {}
    keys = set(before) | set(after)
    return sorted(
        key for key in keys
        if _canonical(before.get(key)) != _canonical(after.get(key))
    )


def encode_cursor(entry: AuditLogEntry) -> str:
    return f"{entry.created_at.isoformat()}_{entry.id}"


def decode_cursor(cursor: str) -> tuple[datetime, int]:
    try:
        ts, entry_id = cursor.rsplit("_", 1)
        return datetime.fromisoformat(ts), int(entry_id)
    except ValueError:
        raise LedgerValidationError(f"Invalid cursor: {cursor!r}", error_code="INVALID_CURSOR") from None


class AuditRecorder:
    async def record(
        self,
        session: AsyncSession,
        action: str,
        entity_type: str,
        entity_id: str,
        actor: Actor,
        before: dict | None = None,
        after: dict | None = None,
        display_name: str | None = None,
        notes: str | None = None,
    ) -> AuditLogEntry:
        if action not in ACTIONS:
            raise LedgerValidationError(f"Unknown audit action: {action!r}")

        entry = AuditLogEntry(
            actor_id=actor.user_id,
            actor_email=actor.email,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            entity_display_name=display_name,
            notes=notes,
        )
        if action == "create":
            entry.new_value = after
        elif action == "delete":
            entry.previous_value = before
        else:
            entry.changed_fields = changed_fields(before, after)
            entry.previous_value = before
            entry.new_value = after

        session.add(entry)
        try:
            await session.flush()
        except StaleDataError:
            # Belongs to the entity write, not the append; let the caller retry
            raise
        except SQLAlchemyError as exc:
            logger.error(
                "Audit append failed for %s %s/%s", action, entity_type, entity_id,
                exc_info=True,
            )
            raise PersistenceError() from exc

        logger.info(
            "[audit] %s %s/%s by %s%s",
            action, entity_type, entity_id, actor.user_id,
            f" fields={entry.changed_fields}" if entry.changed_fields else "",
        )
        return entry

    async def search(self, session: AsyncSession, filters: AuditFilters) -> AuditPage:
        """Filter the log; newest first, ties broken by insertion order."""
        limit = filters.limit or settings.audit_default_limit
        if limit < 1:
            raise LedgerValidationError("limit must be at least 1", error_code="INVALID_LIMIT")
        limit = min(limit, settings.audit_max_limit)
        if filters.action is not None and filters.action not in ACTIONS:
            raise LedgerValidationError(
                f"Unknown audit action: {filters.action!r}", error_code="INVALID_ACTION",
            )
        if filters.start and filters.end and filters.start > filters.end:
            raise LedgerValidationError(
                "start must not be after end", error_code="INVALID_DATE_RANGE",
            )

        base_stmt = select(AuditLogEntry)
        if filters.entity_type:
            base_stmt = base_stmt.where(AuditLogEntry.entity_type == filters.entity_type)
        if filters.entity_id:
            base_stmt = base_stmt.where(AuditLogEntry.entity_id == filters.entity_id)
        if filters.action:
            base_stmt = base_stmt.where(AuditLogEntry.action == filters.action)
        if filters.actor_id:
            base_stmt = base_stmt.where(AuditLogEntry.actor_id == filters.actor_id)
        if filters.start:
            base_stmt = base_stmt.where(AuditLogEntry.created_at >= filters.start)
        if filters.end:
            base_stmt = base_stmt.where(AuditLogEntry.created_at <= filters.end)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = await session.scalar(count_stmt) or 0

        page_stmt = base_stmt
        if filters.cursor:
            ts, entry_id = decode_cursor(filters.cursor)
            page_stmt = page_stmt.where(
                or_(
                    AuditLogEntry.created_at < ts,
                    and_(AuditLogEntry.created_at == ts, AuditLogEntry.id < entry_id),
                )
            )

        result = await session.execute(
            page_stmt
            .order_by(AuditLogEntry.created_at.desc(), AuditLogEntry.id.desc())
            .limit(limit + 1)
        )
        rows = list(result.scalars().all())
        has_more = len(rows) > limit
        items = rows[:limit]

        return AuditPage(
            items=items,
            total=total,
            limit=limit,
            next_cursor=encode_cursor(items[-1]) if has_more and items else None,
            has_more=has_more,
        )
