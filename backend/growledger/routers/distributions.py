"""Distribution router — material handed to patients.

Endpoints:
    POST   /api/distributions                    Record a distribution (D- number)
    GET    /api/distributions/{distribution_id}  Single distribution
    PATCH  /api/distributions/{distribution_id}  Update display fields
    DELETE /api/distributions/{distribution_id}  Tombstone, releasing its grams
"""

from fastapi import APIRouter, Depends, status

from growledger.auth.deps import get_current_actor
from growledger.schemas.distribution import DistributionCreate, DistributionOut, DistributionUpdate
from growledger.services.audit import Actor
from growledger.services.ledger import Ledger, get_ledger

router = APIRouter()


@router.post("/", response_model=DistributionOut, status_code=status.HTTP_201_CREATED)
async def create_distribution(
    body: DistributionCreate,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    """Draw grams from the source harvests and record the hand-over.

    Sending the same ``request_id`` again returns the existing record.
    """
    return await ledger.create_distribution(body, actor)


@router.get("/{distribution_id}", response_model=DistributionOut)
async def get_distribution(
    distribution_id: str,
    ledger: Ledger = Depends(get_ledger),
    _actor: Actor = Depends(get_current_actor),
):
    return await ledger.get_entity("distribution", distribution_id)


@router.patch("/{distribution_id}", response_model=DistributionOut)
async def update_distribution(
    distribution_id: str,
    body: DistributionUpdate,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    return await ledger.update_entity("distribution", distribution_id, body, actor)


@router.delete("/{distribution_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_distribution(
    distribution_id: str,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    await ledger.delete_entity("distribution", distribution_id, actor)
