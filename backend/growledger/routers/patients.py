"""Patient router — registered patients of an association.

Endpoints:
    POST   /api/patients               Register a patient
    GET    /api/patients/{patient_id}  Single patient
    PATCH  /api/patients/{patient_id}  Update (including status)
    DELETE /api/patients/{patient_id}  Tombstone
"""

from fastapi import APIRouter, Depends, status

from growledger.auth.deps import get_current_actor
from growledger.schemas.patient import PatientCreate, PatientOut, PatientUpdate
from growledger.services.audit import Actor
from growledger.services.ledger import Ledger, get_ledger

router = APIRouter()


@router.post("/", response_model=PatientOut, status_code=status.HTTP_201_CREATED)
async def create_patient(
    body: PatientCreate,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    return await ledger.create_patient(body, actor)


@router.get("/{patient_id}", response_model=PatientOut)
async def get_patient(
    patient_id: str,
    ledger: Ledger = Depends(get_ledger),
    _actor: Actor = Depends(get_current_actor),
):
    return await ledger.get_entity("patient", patient_id)


@router.patch("/{patient_id}", response_model=PatientOut)
async def update_patient(
    patient_id: str,
    body: PatientUpdate,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    return await ledger.update_entity("patient", patient_id, body, actor)


@router.delete("/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_patient(
    patient_id: str,
    ledger: Ledger = Depends(get_ledger),
    actor: Actor = Depends(get_current_actor),
):
    await ledger.delete_entity("patient", patient_id, actor)
