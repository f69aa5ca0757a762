"""
Audit Controllers (API Routes)
==============================

Read access to the revision log and the retention purge.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from caseflow.audit.application import (
    PurgeRequest,
    PurgeResponse,
    RevisionLog,
    RevisionPageResponse,
    RevisionResponse,
)
from caseflow.audit.domain import RevisionQuery
from caseflow.config import settings
from caseflow.core import Clock, ForbiddenException
from caseflow.infrastructure.database.unit_of_work import SQLAlchemyUnitOfWork, get_unit_of_work
from caseflow.shared.api.dependencies import Actor, get_actor, get_clock

router = APIRouter(prefix="/revisions", tags=["Audit"])


async def get_revision_log(
    uow: SQLAlchemyUnitOfWork = Depends(get_unit_of_work),
    clock: Clock = Depends(get_clock)
) -> RevisionLog:
    return RevisionLog(uow, clock)


@router.get(
    "",
    response_model=RevisionPageResponse,
    summary="Query the revision log",
    description="Newest first. Filters combine with AND; `action_type` may repeat."
)
async def query_revisions(
    record_id: Optional[UUID] = Query(None),
    action_type: Optional[List[str]] = Query(None),
    performed_by: Optional[str] = Query(None),
    since: Optional[datetime] = Query(None),
    until: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1),
    revisions: RevisionLog = Depends(get_revision_log)
):
    result = await revisions.query(RevisionQuery(
        record_id=record_id,
        action_types=tuple(action_type or ()),
        actor=performed_by,
        since=since,
        until=until,
        page=page,
        page_size=page_size,
    ))
    return RevisionPageResponse(
        items=[RevisionResponse.model_validate(r) for r in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
    )


@router.post("/purge", response_model=PurgeResponse, summary="Remove revisions past retention")
async def purge_revisions(
    request: PurgeRequest,
    revisions: RevisionLog = Depends(get_revision_log),
    actor: Actor = Depends(get_actor)
):
    if settings.super_admin_role not in actor.roles:
        raise ForbiddenException("Revision purge requires the super admin role")
    removed = await revisions.purge_older_than(request.cutoff, authorized_by=actor.id)
    return PurgeResponse(removed=removed)


# Export router for inclusion in main app
audit_router = router
