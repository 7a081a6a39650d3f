"""Extract router — oils, tinctures and concentrates made from harvests.

Endpoints:
    POST   /api/extracts               Record an extraction (EX- number)
    GET    /api/extracts/{extract_id}  Single extract
    PATCH  /api/extracts/{extract_id}  Update display fields
    DELETE /api/extracts/{extract_id}  Tombstone, releasing its input grams
"""

from fastapi import APIRouter, Depends, status

from growledger.auth.deps import get_current_actor
from growledger.schemas.extract import ExtractCreate, ExtractOut, ExtractUpdate
from growledger.services.audit import Actor
from growledger.services.ledger import Ledger, get_ledger

router = APIRouter()


@router.post("/", response_model=ExtractOut, status_code=status.HTTP_201_CREATED)
async def create_extract(
    body: ExtractCreate,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    return await ledger.create_extract(body, actor)


@router.get("/{extract_id}", response_model=ExtractOut)
async def get_extract(
    extract_id: str,
    ledger: Ledger = Depends(get_ledger),
    _actor: Actor = Depends(get_current_actor),
):
    return await ledger.get_entity("extract", extract_id)


@router.patch("/{extract_id}", response_model=ExtractOut)
async def update_extract(
    extract_id: str,
    body: ExtractUpdate,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    return await ledger.update_entity("extract", extract_id, body, actor)


@router.delete("/{extract_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_extract(
    extract_id: str,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    await ledger.delete_entity("extract", extract_id, actor)
