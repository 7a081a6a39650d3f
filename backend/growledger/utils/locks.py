"""Downstream locking — refuse deletes that would orphan live records.

Each check function returns a DeleteLock describing what blocks the
delete and how to clear it, or None.  It never raises; the ledger decides
whether to refuse the request.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from growledger.models.allocation import HarvestAllocation
from growledger.models.distribution import Distribution
from growledger.models.extract import Extract
from growledger.models.harvest import Harvest
from growledger.models.plant import Plant
from growledger.models.scope import Environment

MAX_BLOCKER_REFS = 3


# ── Data structures ────────────────────────────────────────────


@dataclass
class DeleteLock:
    reason: str
    blocker_refs: list[str]  # human-readable references (e.g. "D-2025-00014")
    unlock_hint: str
    blocker_count: int = 0

    def refs_for_message(self) -> list[str]:
        refs = list(self.blocker_refs)
        if self.blocker_count > len(refs):
            refs.append(f"+{self.blocker_count - len(refs)} more")
        return refs


# ── Harvest (downstream: active allocations) ──────────────────


async def get_harvest_delete_lock(db: AsyncSession, harvest: Harvest) -> DeleteLock | None:
    """A harvest with distributed or extracted weight cannot be deleted."""
    count = await db.scalar(
        select(func.count(HarvestAllocation.id)).where(
            HarvestAllocation.harvest_id == harvest.id,
            HarvestAllocation.released_at.is_(None),
        )
    ) or 0

    if count == 0 and harvest.consumed_grams <= 0:
        return None

    result = await db.execute(
        select(Distribution.distribution_number, Extract.control_number)
        .select_from(HarvestAllocation)
        .outerjoin(Distribution, HarvestAllocation.distribution_id == Distribution.id)
        .outerjoin(Extract, HarvestAllocation.extract_id == Extract.id)
        .where(
            HarvestAllocation.harvest_id == harvest.id,
            HarvestAllocation.released_at.is_(None),
        )
        .order_by(HarvestAllocation.created_at)
        .limit(MAX_BLOCKER_REFS)
    )
    refs = [dist_number or extract_number for dist_number, extract_number in result.all()]

    return DeleteLock(
        reason=f"{harvest.consumed_grams:g}g of {harvest.control_number} already consumed",
        blocker_refs=[ref for ref in refs if ref],
        unlock_hint="Delete the distributions and extracts drawing from it first.",
        blocker_count=count,
    )


# ── Environment (downstream: live plants) ──────────────────────


async def get_environment_delete_lock(
    db: AsyncSession, environment: Environment,
) -> DeleteLock | None:
    """An environment still holding live plants cannot be deleted."""
    count = await db.scalar(
        select(func.count(Plant.id)).where(
            Plant.environment_id == environment.id,
            Plant.deleted_at.is_(None),
        )
    ) or 0
    if count == 0:
        return None

    result = await db.execute(
        select(Plant.control_number)
        .where(
            Plant.environment_id == environment.id,
            Plant.deleted_at.is_(None),
        )
        .order_by(Plant.created_at)
        .limit(MAX_BLOCKER_REFS)
    )
    return DeleteLock(
        reason=f"{count} live plant(s) still in it",
        blocker_refs=list(result.scalars().all()),
        unlock_hint="Delete the plants first.",
        blocker_count=count,
    )


# ── Extract (downstream: live distributions) ───────────────────


async def get_extract_delete_lock(db: AsyncSession, extract: Extract) -> DeleteLock | None:
    """An extract already handed out to patients cannot be deleted."""
    result = await db.execute(
        select(Distribution.distribution_number)
        .where(
            Distribution.extract_id == extract.id,
            Distribution.deleted_at.is_(None),
        )
        .order_by(Distribution.created_at)
    )
    refs = list(result.scalars().all())
    if not refs:
        return None

    return DeleteLock(
        reason=f"already handed out in {len(refs)} distribution(s)",
        blocker_refs=refs[:MAX_BLOCKER_REFS],
        unlock_hint="Delete the distributions first.",
        blocker_count=len(refs),
    )
