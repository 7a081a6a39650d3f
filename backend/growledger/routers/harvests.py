"""Harvest router — harvests, weight recordings and status.

Endpoints:
    POST   /api/harvests                        Create a harvest (H- number)
    GET    /api/harvests/{harvest_id}           Detail with availability
    GET    /api/harvests/{harvest_id}/availability  Available grams only
    POST   /api/harvests/{harvest_id}/weights   Record dry / final weight
    POST   /api/harvests/{harvest_id}/status    Override status
    PATCH  /api/harvests/{harvest_id}           Update descriptive fields
    DELETE /api/harvests/{harvest_id}           Tombstone (nothing consumed)
"""

from fastapi import APIRouter, Depends, status

from growledger.auth.deps import get_current_actor
from growledger.schemas.harvest import (
    HarvestAvailability,
    HarvestCreate,
    HarvestDetail,
    HarvestOut,
    HarvestStatusUpdate,
    HarvestUpdate,
    HarvestWeightRecord,
)
from growledger.services.audit import Actor
from growledger.services.ledger import Ledger, get_ledger
from growledger.services.weights import availability

router = APIRouter()


# ── Create ───────────────────────────────────────────────────

@router.post("/", response_model=HarvestOut, status_code=status.HTTP_201_CREATED)
async def create_harvest(
    body: HarvestCreate,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    return await ledger.create_harvest(body, actor)


# ── Detail ───────────────────────────────────────────────────

@router.get("/{harvest_id}", response_model=HarvestDetail)
async def get_harvest(
    harvest_id: str,
    ledger: Ledger = Depends(get_ledger),
    _actor: Actor = Depends(get_current_actor),
):
    harvest = await ledger.get_harvest(harvest_id)
    return HarvestDetail(
        **HarvestOut.model_validate(harvest).model_dump(),
        availability=HarvestAvailability(**availability(harvest)),
    )


@router.get("/{harvest_id}/availability", response_model=HarvestAvailability)
async def get_harvest_availability(
    harvest_id: str,
    ledger: Ledger = Depends(get_ledger),
    _actor: Actor = Depends(get_current_actor),
):
    return await ledger.harvest_availability(harvest_id)


# ── Weights / status ─────────────────────────────────────────

@router.post("/{harvest_id}/weights", response_model=HarvestOut)
async def record_weight(
    harvest_id: str,
    body: HarvestWeightRecord,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    """Record a dry or final weight.

    Dry weight moves a fresh harvest to drying; final weight moves a drying
    harvest to curing.
    """
    return await ledger.record_harvest_weight(harvest_id, body.stage, body.grams, actor)


@router.post("/{harvest_id}/status", response_model=HarvestOut)
async def set_status(
    harvest_id: str,
    body: HarvestStatusUpdate,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    return await ledger.set_harvest_status(harvest_id, body.status, actor, notes=body.notes)


# ── Update / delete ──────────────────────────────────────────

@router.patch("/{harvest_id}", response_model=HarvestOut)
async def update_harvest(
    harvest_id: str,
    body: HarvestUpdate,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    return await ledger.update_entity("harvest", harvest_id, body, actor)


@router.delete("/{harvest_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_harvest(
    harvest_id: str,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    """Refused with 409 while any weight is distributed or extracted."""
    await ledger.delete_entity("harvest", harvest_id, actor)
