"""Association router — tenant scopes.

Endpoints:
    POST  /api/associations    Create an association
"""

from fastapi import APIRouter, Depends, status

from growledger.auth.deps import get_current_actor
from growledger.schemas.scope import AssociationCreate, AssociationOut
from growledger.services.audit import Actor
from growledger.services.ledger import Ledger, get_ledger

router = APIRouter()


@router.post("/", response_model=AssociationOut, status_code=status.HTTP_201_CREATED)
async def create_association(
    body: AssociationCreate,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    return await ledger.create_association(body, actor)
