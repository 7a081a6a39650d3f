"""Weight ledger — the only write path for a harvest's weights, consumption
totals and status.

Conservation invariant, checked on every write:

    distributed_grams + extracted_grams <= best_available_weight(harvest)

where the best available weight is the most refined measurement present
(final > dry > wet).  The check and the write happen on the ORM object
loaded in the caller's transaction; the harvest's ``version`` column makes
the UPDATE fail with StaleDataError if another transaction changed the row
in between, so two allocations can never both pass the check against the
same snapshot.  The ledger retries such a conflict from a fresh read.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from growledger.middleware.exceptions import (
    EntityNotFound,
    InsufficientAvailableWeight,
    InvalidWeight,
    LedgerValidationError,
)
from growledger.models.harvest import Harvest
from growledger.services import status as status_machine

logger = logging.getLogger("growledger.weights")

WEIGHT_PRECISION = 3  # grams, i.e. milligram resolution

RECORDABLE_STAGES = ("dry", "final")

# consumer kind -> (harvest column, verb for messages)
CONSUMER_KINDS = {
    "distribution": ("distributed_grams", "distribute"),
    "extraction": ("extracted_grams", "extract"),
}


def quantize(grams: float) -> float:
    return round(float(grams), WEIGHT_PRECISION)


def best_available_weight(harvest: Harvest) -> float:
    for grams in (
        harvest.final_weight_grams,
        harvest.dry_weight_grams,
        harvest.wet_weight_grams,
    ):
        if grams is not None and grams > 0:
            return quantize(grams)
    return 0.0


def available_weight(harvest: Harvest) -> float:
    return quantize(best_available_weight(harvest) - harvest.consumed_grams)


def split_evenly(total: float, parts: int) -> list[float]:
    """Split ``total`` grams into ``parts`` shares that sum back to ``total``.

    The last share absorbs the rounding remainder:
    split_evenly(10, 3) -> [3.333, 3.333, 3.334]
    """
    if parts < 1:
        raise LedgerValidationError("At least one source harvest is required")
    total = validate_grams(total, "Input weight")
    share = quantize(total / parts)
    shares = [share] * (parts - 1)
    shares.append(quantize(total - share * (parts - 1)))
    if min(shares) <= 0:
        raise InvalidWeight(
            f"{total:g}g is too small to split across {parts} harvests "
            f"(every share must be at least 0.001g)",
            total=total,
            parts=parts,
        )
    return shares


# ── Pre-store validation ─────────────────────────────────────


def validate_grams(grams: float, what: str = "Weight") -> float:
    if grams is None or grams <= 0:
        raise InvalidWeight(f"{what} must be greater than 0g (got {grams}g)", grams=grams)
    return quantize(grams)


def validate_stage(stage: str) -> str:
    if stage not in RECORDABLE_STAGES:
        raise LedgerValidationError(
            f"Unknown weight stage: {stage!r} (expected dry or final)",
            error_code="INVALID_STAGE",
        )
    return stage


def validate_consumer_kind(kind: str) -> str:
    if kind not in CONSUMER_KINDS:
        raise LedgerValidationError(
            f"Unknown consumer kind: {kind!r} (expected distribution or extraction)",
            error_code="INVALID_CONSUMER_KIND",
        )
    return kind


# ── Mutations on a loaded harvest ────────────────────────────


def apply_weight(harvest: Harvest, stage: str, grams: float) -> Harvest:
    """Record a dry or final weight, then advance status if a rule applies."""
    validate_stage(stage)
    grams = validate_grams(grams)
    wet = harvest.wet_weight_grams
    dry = harvest.dry_weight_grams
    final = harvest.final_weight_grams

    if stage == "dry":
        if grams > wet:
            raise InvalidWeight(
                f"Dry weight {grams:g}g exceeds wet weight {wet:g}g",
                grams=grams, wet_weight_grams=wet,
            )
        if final is not None and grams < final:
            raise InvalidWeight(
                f"Dry weight {grams:g}g is below the recorded final weight {final:g}g",
                grams=grams, final_weight_grams=final,
            )
    else:
        ceiling = dry if dry is not None else wet
        if grams > ceiling:
            raise InvalidWeight(
                f"Final weight {grams:g}g exceeds {'dry' if dry is not None else 'wet'} "
                f"weight {ceiling:g}g",
                grams=grams, ceiling_grams=ceiling,
            )

    # The new measurement must still cover what was already handed out
    new_best = grams if stage == "final" or final is None else best_available_weight(harvest)
    consumed = quantize(harvest.consumed_grams)
    if new_best < consumed:
        raise InvalidWeight(
            f"Cannot record {stage} weight {grams:g}g for {harvest.control_number}: "
            f"{consumed:g}g already distributed or extracted",
            grams=grams, consumed_grams=consumed,
        )

    if stage == "dry":
        harvest.dry_weight_grams = grams
    else:
        harvest.final_weight_grams = grams

    new_status = status_machine.after_weight_recorded(harvest.status, stage)
    if new_status.value != harvest.status:
        logger.info(
            "Harvest %s status %s -> %s after %s weight",
            harvest.control_number, harvest.status, new_status.value, stage,
        )
        harvest.status = new_status.value
    return harvest


def apply_allocation(harvest: Harvest, kind: str, grams: float) -> Harvest:
    """Draw ``grams`` from the harvest for a distribution or extraction."""
    validate_consumer_kind(kind)
    grams = validate_grams(grams, "Allocated weight")
    column, verb = CONSUMER_KINDS[kind]

    available = available_weight(harvest)
    if grams > available:
        raise InsufficientAvailableWeight(harvest.control_number, verb, grams, available)

    setattr(harvest, column, quantize(getattr(harvest, column) + grams))
    return harvest


def apply_release(harvest: Harvest, kind: str, grams: float) -> Harvest:
    """Return previously allocated grams (consumer deleted)."""
    validate_consumer_kind(kind)
    grams = validate_grams(grams, "Released weight")
    column, _ = CONSUMER_KINDS[kind]
    current = getattr(harvest, column)
    if grams > quantize(current):
        # More released than recorded means the totals drifted; clamp and say so
        logger.warning(
            "Harvest %s: releasing %sg of %s but only %sg recorded",
            harvest.control_number, grams, column, current,
        )
        grams = quantize(current)
    setattr(harvest, column, quantize(current - grams))
    return harvest


def apply_status(harvest: Harvest, target: str) -> bool:
    """Operator override; returns False when the status is already ``target``."""
    new_status = status_machine.override(harvest.status, target, harvest.control_number)
    if new_status.value == harvest.status:
        return False
    logger.info(
        "Harvest %s status %s -> %s (override)",
        harvest.control_number, harvest.status, new_status.value,
    )
    harvest.status = new_status.value
    return True


# ── Loading ──────────────────────────────────────────────────


async def load_harvest(
    session: AsyncSession, harvest_id: str, include_deleted: bool = False,
) -> Harvest:
    """Load a harvest into the caller's transaction.

    The apply_* functions then mutate it in place; the change is written,
    and its version checked, when the caller flushes or commits.
    Tombstoned harvests are only returned with ``include_deleted`` (grams
    released by a deleted consumer still go back to them).
    """
    stmt = select(Harvest).where(Harvest.id == harvest_id)
    if not include_deleted:
        stmt = stmt.where(Harvest.deleted_at.is_(None))
    harvest = await session.scalar(stmt)
    if harvest is None:
        raise EntityNotFound("harvest", harvest_id)
    return harvest


def availability(harvest: Harvest) -> dict:
    return {
        "harvest_id": harvest.id,
        "control_number": harvest.control_number,
        "status": harvest.status,
        "best_available_grams": best_available_weight(harvest),
        "distributed_grams": quantize(harvest.distributed_grams),
        "extracted_grams": quantize(harvest.extracted_grams),
        "available_grams": available_weight(harvest),
    }
