"""
Audit Infrastructure Repositories
=================================
"""

from datetime import datetime
from typing import List, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.audit.application.services import IRevisionRepository
from caseflow.audit.domain import Revision, RevisionQuery
from caseflow.audit.infrastructure.models import RevisionModel


class SQLAlchemyRevisionRepository(IRevisionRepository):
    """Insert-only revision storage."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, revision: Revision) -> Revision:
        self._session.add(RevisionModel(
            id=revision.id,
            record_id=revision.record_id,
            action_type=revision.action_type,
            performed_by=revision.performed_by,
            record_version=revision.record_version,
            message=revision.message,
            snapshot=_jsonable(revision.snapshot),
            changes=_jsonable(revision.changes),
            created_at=revision.created_at,
        ))
        await self._session.flush()
        return revision

    async def query(self, query: RevisionQuery) -> Tuple[List[Revision], int]:
        conditions = []
        if query.record_id is not None:
            conditions.append(RevisionModel.record_id == query.record_id)
        if query.action_types:
            conditions.append(RevisionModel.action_type.in_(list(query.action_types)))
        if query.actor:
            conditions.append(RevisionModel.performed_by == query.actor)
        if query.since:
            conditions.append(RevisionModel.created_at >= query.since)
        if query.until:
            conditions.append(RevisionModel.created_at <= query.until)

        total = (await self._session.execute(
            select(func.count()).select_from(RevisionModel).where(*conditions)
        )).scalar_one()

        stmt = (
            select(RevisionModel)
            .where(*conditions)
            .order_by(
                RevisionModel.created_at.desc(),
                RevisionModel.record_version.desc(),
                RevisionModel.id,
            )
            .limit(query.page_size)
            .offset(query.offset)
        )
        models = (await self._session.execute(stmt)).scalars().all()
        return [_to_revision(m) for m in models], total

    async def purge_before(self, cutoff: datetime) -> int:
        # bulk statement, bypasses the ORM delete listeners
        result = await self._session.execute(
            delete(RevisionModel)
            .where(RevisionModel.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0


def _to_revision(model: RevisionModel) -> Revision:
    return Revision(
        id=model.id,
        record_id=model.record_id,
        action_type=model.action_type,
        performed_by=model.performed_by,
        record_version=model.record_version,
        created_at=model.created_at,
        message=model.message,
        snapshot=dict(model.snapshot or {}),
        changes=list(model.changes or []),
    )


def _jsonable(value):
    """Coerce snapshots to JSON-safe primitives (UUIDs, datetimes, sets)."""
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_jsonable(v) for v in value]
        return sorted(items, key=str) if isinstance(value, (set, frozenset)) else items
    if isinstance(value, datetime):
        return value.isoformat()
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)
