"""Harvest status machine.

    fresh → drying → curing → processed → distributed

Automatic transitions come only from weight recordings:
  dry weight   while fresh   → drying
  final weight while drying  → curing

Operators may override to any known state, including backwards (correcting
mistakes).  Backward moves are logged, never rejected.  Nothing moves a
harvest to ``distributed`` automatically, not even full consumption.
"""

from __future__ import annotations

import logging

from growledger.middleware.exceptions import InvalidStatus
from growledger.models.harvest import HarvestStatus

logger = logging.getLogger("growledger.status")

STATUS_ORDER = [
    HarvestStatus.FRESH,
    HarvestStatus.DRYING,
    HarvestStatus.CURING,
    HarvestStatus.PROCESSED,
    HarvestStatus.DISTRIBUTED,
]

# (current status, recorded stage) -> next status
WEIGHT_TRANSITIONS = {
    (HarvestStatus.FRESH, "dry"): HarvestStatus.DRYING,
    (HarvestStatus.DRYING, "final"): HarvestStatus.CURING,
}


def parse_status(value: str | HarvestStatus) -> HarvestStatus:
    if isinstance(value, HarvestStatus):
        return value
    try:
        return HarvestStatus(value)
    except ValueError:
        raise InvalidStatus(str(value), [s.value for s in STATUS_ORDER]) from None


def rank(status: str | HarvestStatus) -> int:
    return STATUS_ORDER.index(parse_status(status))


def after_weight_recorded(current: str, stage: str) -> HarvestStatus:
    """Status after a weight recording; unchanged when no rule applies."""
    status = parse_status(current)
    return WEIGHT_TRANSITIONS.get((status, stage), status)


def override(current: str, target: str | HarvestStatus, control_number: str = "") -> HarvestStatus:
    """Validate an explicit operator status change."""
    new = parse_status(target)
    old = parse_status(current)
    if rank(new) < rank(old):
        logger.warning(
            "Harvest %s moved backwards: %s -> %s",
            control_number or "?", old.value, new.value,
        )
    return new
