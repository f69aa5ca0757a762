"""
Audit Application Services
==========================

The revision log: append-only writes, filtered reads and the retention purge.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from caseflow.audit.domain import FieldChange, Revision, RevisionPage, RevisionQuery
from caseflow.config import VALID_REVISION_ACTIONS, settings
from caseflow.core import Clock, ForbiddenException, SystemClock, ValidationException
from caseflow.core.unit_of_work import IUnitOfWork
from caseflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class IRevisionRepository(ABC):
    """Interface for revision data access. There is no update."""

    @abstractmethod
    async def add(self, revision: Revision) -> Revision:
        """Append a revision."""

    @abstractmethod
    async def query(self, query: RevisionQuery) -> Tuple[List[Revision], int]:
        """One page of matching revisions, newest first, plus the total count."""

    @abstractmethod
    async def purge_before(self, cutoff: datetime) -> int:
        """Bulk-remove revisions created before ``cutoff``; returns the count."""


# ========== Application Services ==========

class RevisionLog:
    """
    Append-only audit trail.

    ``append`` only stages the revision in the caller's unit of work, so the
    revision commits atomically with the mutation it describes.
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        clock: Optional[Clock] = None,
        retention_days: Optional[int] = None,
        page_size_max: Optional[int] = None
    ):
        self._uow = uow
        self._clock = clock or SystemClock()
        self._retention_days = retention_days if retention_days is not None else settings.revision_retention_days
        self._page_size_max = page_size_max or settings.revision_page_size_max

    async def append(
        self,
        record_id: UUID,
        action_type: str,
        performed_by: str,
        record_version: int,
        snapshot: Optional[Dict[str, Any]] = None,
        changes: Optional[List[FieldChange]] = None,
        message: str = ""
    ) -> Revision:
        if action_type not in VALID_REVISION_ACTIONS:
            raise ValidationException(f"Unknown revision action '{action_type}'", {"action_type": action_type})

        revision = Revision(
            record_id=record_id,
            action_type=action_type,
            performed_by=performed_by,
            record_version=record_version,
            created_at=self._clock.now(),
            message=message,
            snapshot=dict(snapshot or {}),
            changes=[c.to_dict() for c in changes or []],
        )
        return await self._uow.revisions.add(revision)

    async def query(self, query: RevisionQuery) -> RevisionPage:
        if query.page < 1:
            raise ValidationException("page must be >= 1", {"page": query.page})
        if not 1 <= query.page_size <= self._page_size_max:
            raise ValidationException(
                f"page_size must be between 1 and {self._page_size_max}", {"page_size": query.page_size}
            )
        unknown = [a for a in query.action_types if a not in VALID_REVISION_ACTIONS]
        if unknown:
            raise ValidationException("Unknown revision action filter", {"action_types": unknown})
        if query.since and query.until and query.since > query.until:
            raise ValidationException("'since' must not be after 'until'")

        items, total = await self._uow.revisions.query(query)
        return RevisionPage(items=items, total=total, page=query.page, page_size=query.page_size)

    async def purge_older_than(self, cutoff: datetime, authorized_by: str) -> int:
        """
        Retention cleanup. The only path that removes revisions.

        Raises:
            ForbiddenException: Without an authorizing actor
            ValidationException: If ``cutoff`` is inside the retention window
        """
        if not authorized_by:
            raise ForbiddenException("Revision purge requires an authorizing actor")

        oldest_allowed = self._clock.now() - timedelta(days=self._retention_days)
        if cutoff > oldest_allowed:
            raise ValidationException(
                f"Cutoff is inside the {self._retention_days}-day retention window",
                {"cutoff": cutoff.isoformat(), "latest_allowed": oldest_allowed.isoformat()}
            )

        removed = await self._uow.revisions.purge_before(cutoff)
        await self._uow.commit()
        logger.warning(
            "Revisions purged",
            extra={"cutoff": cutoff.isoformat(), "removed": removed, "authorized_by": authorized_by}
        )
        return removed
