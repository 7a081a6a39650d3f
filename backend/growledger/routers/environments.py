"""Environment router — growing environments (rooms, tents, greenhouses).

Endpoints:
    POST   /api/environments                  Create an environment
    GET    /api/environments/{environment_id} Single environment
    PATCH  /api/environments/{environment_id} Rename / update
    DELETE /api/environments/{environment_id} Tombstone (no live plants)
"""

from fastapi import APIRouter, Depends, status

from growledger.auth.deps import get_current_actor
from growledger.schemas.scope import EnvironmentCreate, EnvironmentOut, EnvironmentUpdate
from growledger.services.audit import Actor
from growledger.services.ledger import Ledger, get_ledger

router = APIRouter()


@router.post("/", response_model=EnvironmentOut, status_code=status.HTTP_201_CREATED)
async def create_environment(
    body: EnvironmentCreate,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    return await ledger.create_environment(body, actor)


@router.get("/{environment_id}", response_model=EnvironmentOut)
async def get_environment(
    environment_id: str,
    ledger: Ledger = Depends(get_ledger),
    _actor: Actor = Depends(get_current_actor),
):
    return await ledger.get_entity("environment", environment_id)


@router.patch("/{environment_id}", response_model=EnvironmentOut)
async def update_environment(
    environment_id: str,
    body: EnvironmentUpdate,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    """Renaming keeps every control number already issued unchanged."""
    return await ledger.rename_environment(environment_id, body, actor)


@router.delete("/{environment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_environment(
    environment_id: str,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    await ledger.delete_entity("environment", environment_id, actor)
