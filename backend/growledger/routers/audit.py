"""Audit log router — read-only access to the immutable trail.

Endpoints:
    GET  /api/audit-log                              Filtered search
    GET  /api/audit-log/{entity_type}/{entity_id}    One entity's history
"""

from datetime import date, datetime, time

from fastapi import APIRouter, Depends, Query

from growledger.auth.deps import get_current_actor
from growledger.schemas.audit import AuditLogOut
from growledger.schemas.common import CursorPaginatedResponse
from growledger.services.audit import Actor, AuditFilters, AuditPage
from growledger.services.ledger import Ledger, get_ledger

router = APIRouter()


def _page_response(page: AuditPage) -> CursorPaginatedResponse[AuditLogOut]:
    return CursorPaginatedResponse[AuditLogOut](
        items=[AuditLogOut.model_validate(entry) for entry in page.items],
        total=page.total,
        limit=page.limit,
        next_cursor=page.next_cursor,
        has_more=page.has_more,
    )


@router.get("/", response_model=CursorPaginatedResponse[AuditLogOut])
async def search_audit_log(
    entity_type: str | None = Query(None),
    entity_id: str | None = Query(None),
    action: str | None = Query(None),
    actor_id: str | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    limit: int | None = Query(None, ge=1),
    cursor: str | None = Query(None),
    ledger: Ledger = Depends(get_ledger),
    _actor: Actor = Depends(get_current_actor),
):
    """Newest first.  ``date_from``/``date_to`` are inclusive whole days."""
    page = await ledger.search_audit_log(
        AuditFilters(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            start=datetime.combine(date_from, time.min) if date_from else None,
            end=datetime.combine(date_to, time.max) if date_to else None,
            limit=limit,
            cursor=cursor,
        )
    )
    return _page_response(page)


@router.get(
    "/{entity_type}/{entity_id}",
    response_model=CursorPaginatedResponse[AuditLogOut],
)
async def entity_history(
    entity_type: str,
    entity_id: str,
    limit: int | None = Query(None, ge=1),
    cursor: str | None = Query(None),
    ledger: Ledger = Depends(get_ledger),
    _actor: Actor = Depends(get_current_actor),
):
    page = await ledger.entity_history(entity_type, entity_id, limit=limit, cursor=cursor)
    return _page_response(page)
