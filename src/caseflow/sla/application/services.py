"""
SLA Application Services
========================

The SLA Monitor: a periodic scan that flags overdue records.

Every process may run its own monitor. Flagging is a single conditional
UPDATE per record (``sla_breached = false`` in the WHERE clause), so
overlapping scans flag each record exactly once.

Records that failed on the previous tick only fill what is left of a batch
after fresh overdue records.
"""

from dataclasses import dataclass, field
from typing import AsyncContextManager, Callable, List, Optional, Set
from uuid import UUID

from caseflow.audit.application.services import RevisionLog
from caseflow.config import NotificationKind, RevisionAction, settings
from caseflow.core import Clock, SystemClock
from caseflow.core.unit_of_work import IUnitOfWork
from caseflow.matching.application import IDirectory, MatchingService
from caseflow.shared.application import INotifier, NullNotifier, expand_record_recipients
from caseflow.shared.infrastructure.logging import get_logger
from caseflow.sla.application.provider import ISLAPolicyProvider

logger = get_logger(__name__)

SLA_MONITOR_ACTOR = "system:sla-monitor"

UnitOfWorkFactory = Callable[[], AsyncContextManager[IUnitOfWork]]


@dataclass
class SLAScanResult:
    """Summary of one scan tick."""
    scanned: int = 0
    flagged: int = 0
    failed: int = 0
    flagged_ids: List[UUID] = field(default_factory=list)


class SLAMonitor:
    """
    Scans open records whose due time has passed and flags them.

    Each record is handled in its own unit of work; a failure on one record
    is logged and counted, and the record is retried on the next tick.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        policy_provider: ISLAPolicyProvider,
        notifier: Optional[INotifier] = None,
        clock: Optional[Clock] = None,
        batch_size: Optional[int] = None,
        directory: Optional[IDirectory] = None
    ):
        self._uow_factory = uow_factory
        self._policy_provider = policy_provider
        self._notifier = notifier or NullNotifier()
        self._clock = clock or SystemClock()
        self._batch_size = batch_size or settings.sla_scan_batch_size
        self._directory = directory
        self._failed_ids: Set[UUID] = set()

    async def scan(self) -> SLAScanResult:
        now = self._clock.now()
        result = SLAScanResult()

        retry_ids = self._failed_ids
        async with self._uow_factory() as uow:
            overdue = await uow.records.find_sla_overdue(now, limit=self._batch_size, exclude_ids=retry_ids)
            if retry_ids and len(overdue) < self._batch_size:
                retries = await uow.records.find_sla_overdue(now, limit=len(overdue) + len(retry_ids))
                overdue += [r for r in retries if r.id in retry_ids][:self._batch_size - len(overdue)]
        result.scanned = len(overdue)
        failed_ids: Set[UUID] = set()

        for record in overdue:
            try:
                if await self._flag(record.id, now):
                    result.flagged += 1
                    result.flagged_ids.append(record.id)
            except Exception as e:
                result.failed += 1
                failed_ids.add(record.id)
                logger.error(
                    "SLA flag failed",
                    extra={"record_id": str(record.id), "error": str(e)},
                    exc_info=True
                )

        self._failed_ids = failed_ids
        logger.info(
            "SLA scan complete",
            extra={"scanned": result.scanned, "flagged": result.flagged, "failed": result.failed}
        )
        return result

    async def _flag(self, record_id: UUID, now) -> bool:
        async with self._uow_factory() as uow:
            version = await uow.records.mark_sla_breached(record_id, now)
            if version is None:
                # another scan got there first
                await uow.rollback()
                return False

            record = await uow.records.get(record_id)
            await RevisionLog(uow, self._clock).append(
                record_id=record_id,
                action_type=RevisionAction.SLA_BREACHED,
                performed_by=SLA_MONITOR_ACTOR,
                record_version=version,
                snapshot=record.to_snapshot(),
                message=f"SLA breached (due {record.sla_due_at.isoformat() if record.sla_due_at else 'n/a'})",
            )
            await uow.commit()

            recipients = await MatchingService(uow.workflows, self._directory).expand_role_recipients(
                expand_record_recipients(
                    self._policy_provider.policy.breach_recipients, record.assignee_id, record.reporter_id
                )
            )

        logger.warning(
            "SLA breached",
            extra={"record_id": str(record_id), "number": record.number, "actor": SLA_MONITOR_ACTOR}
        )
        self._notifier.notify(
            NotificationKind.SLA_BREACHED,
            str(record_id),
            recipients,
            {
                "title": f"SLA breached: {record.number}",
                "message": f"{record.number} ({record.title}) passed its SLA due time",
                "record_number": record.number,
                "due_at": record.sla_due_at.isoformat() if record.sla_due_at else None,
                "assignee": record.assignee_id or "Unassigned",
            },
        )
        return True
