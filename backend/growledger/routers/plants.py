"""Plant router — tracked plants and clones.

Endpoints:
    POST   /api/plants                    Create a plant (A- number)
    POST   /api/plants/{plant_id}/clones  Take clones (CL- numbers)
    GET    /api/plants/{plant_id}         Single plant
    PATCH  /api/plants/{plant_id}         Update plant fields
    DELETE /api/plants/{plant_id}         Tombstone
"""

from fastapi import APIRouter, Depends, status

from growledger.auth.deps import get_current_actor
from growledger.schemas.plant import PlantCloneRequest, PlantCreate, PlantOut, PlantUpdate
from growledger.services.audit import Actor
from growledger.services.ledger import Ledger, get_ledger

router = APIRouter()


# ── Create ───────────────────────────────────────────────────

@router.post("/", response_model=PlantOut, status_code=status.HTTP_201_CREATED)
async def create_plant(
    body: PlantCreate,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    return await ledger.create_plant(body, actor)


@router.post(
    "/{plant_id}/clones",
    response_model=list[PlantOut],
    status_code=status.HTTP_201_CREATED,
)
async def clone_plant(
    plant_id: str,
    body: PlantCloneRequest,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    """Clones inherit strain and lineage from the mother plant."""
    return await ledger.clone_plants(plant_id, body, actor)


# ── Read / update / delete ───────────────────────────────────

@router.get("/{plant_id}", response_model=PlantOut)
async def get_plant(
    plant_id: str,
    ledger: Ledger = Depends(get_ledger),
    _actor: Actor = Depends(get_current_actor),
):
    return await ledger.get_entity("plant", plant_id)


@router.patch("/{plant_id}", response_model=PlantOut)
async def update_plant(
    plant_id: str,
    body: PlantUpdate,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    return await ledger.update_entity("plant", plant_id, body, actor)


@router.delete("/{plant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_plant(
    plant_id: str,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    """Tombstone a plant; its harvests keep resolving it."""
    await ledger.delete_entity("plant", plant_id, actor)
