"""
Records Infrastructure Repositories
===================================

SQLAlchemy implementations of the record, transition history and comment
repositories.

Version checks happen inside the UPDATE statement itself, so two writers
holding the same version can never both succeed.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Set
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.core import StaleVersionException
from caseflow.records.application.services import (
    ICommentRepository,
    IRecordRepository,
    ITransitionHistoryRepository,
)
from caseflow.records.domain import Attachment, Comment, Record, TransitionHistoryEntry
from caseflow.records.infrastructure.models import (
    AttachmentModel,
    CommentModel,
    RecordCounterModel,
    RecordModel,
    TransitionHistoryModel,
)
from caseflow.workflow.infrastructure.models import StateModel


def _terminal_state_ids():
    return select(StateModel.id).where(StateModel.is_terminal.is_(True))


class SQLAlchemyRecordRepository(IRecordRepository):
    """Persists records using async SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, record: Record) -> Record:
        self._session.add(RecordModel(id=record.id, number=record.number, version=record.version,
                                      **_record_columns(record)))
        await self._session.flush()
        return record

    async def get(self, record_id: UUID) -> Optional[Record]:
        stmt = (
            select(RecordModel)
            .where(RecordModel.id == record_id)
            .execution_options(populate_existing=True)
        )
        model = (await self._session.execute(stmt)).scalar_one_or_none()
        return _to_record(model) if model else None

    async def compare_and_swap(self, record: Record, expected_version: int) -> Record:
        result = await self._session.execute(
            update(RecordModel)
            .where(RecordModel.id == record.id, RecordModel.version == expected_version)
            .values(version=expected_version + 1, **_record_columns(record))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            actual = (await self._session.execute(
                select(RecordModel.version).where(RecordModel.id == record.id)
            )).scalar_one_or_none()
            raise StaleVersionException(record.id, expected_version, actual)

        record.version = expected_version + 1
        return record

    async def next_number(self, record_type: str) -> int:
        result = await self._session.execute(
            update(RecordCounterModel)
            .where(RecordCounterModel.record_type == record_type)
            .values(value=RecordCounterModel.value + 1)
            .returning(RecordCounterModel.value)
            .execution_options(synchronize_session=False)
        )
        value = result.scalar_one_or_none()
        if value is not None:
            return value

        self._session.add(RecordCounterModel(record_type=record_type, value=1))
        await self._session.flush()
        return 1

    async def list_records(
        self,
        workflow_id: Optional[UUID] = None,
        state_id: Optional[UUID] = None,
        record_type: Optional[str] = None,
        assignee_id: Optional[str] = None,
        sla_breached: Optional[bool] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Record]:
        stmt = select(RecordModel)
        if workflow_id:
            stmt = stmt.where(RecordModel.workflow_id == workflow_id)
        if state_id:
            stmt = stmt.where(RecordModel.current_state_id == state_id)
        if record_type:
            stmt = stmt.where(RecordModel.record_type == record_type)
        if assignee_id:
            stmt = stmt.where(RecordModel.assignee_id == assignee_id)
        if sla_breached is not None:
            stmt = stmt.where(RecordModel.sla_breached.is_(sla_breached))
        stmt = (
            stmt.order_by(RecordModel.created_at.desc(), RecordModel.number.desc())
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        models = (await self._session.execute(stmt)).scalars().all()
        return [_to_record(m) for m in models]

    async def count_by_workflow(self, workflow_id: UUID) -> int:
        return (await self._session.execute(
            select(func.count()).select_from(RecordModel).where(RecordModel.workflow_id == workflow_id)
        )).scalar_one()

    async def count_in_state(self, state_id: UUID) -> int:
        return (await self._session.execute(
            select(func.count()).select_from(RecordModel).where(RecordModel.current_state_id == state_id)
        )).scalar_one()

    async def find_sla_overdue(
        self, now: datetime, limit: int, exclude_ids: Optional[Set[UUID]] = None
    ) -> List[Record]:
        conditions = [
            RecordModel.sla_breached.is_(False),
            RecordModel.sla_due_at.is_not(None),
            RecordModel.sla_due_at < now,
            StateModel.is_terminal.is_(False),
        ]
        if exclude_ids:
            conditions.append(RecordModel.id.not_in(exclude_ids))
        stmt = (
            select(RecordModel)
            .join(StateModel, StateModel.id == RecordModel.current_state_id)
            .where(*conditions)
            .order_by(RecordModel.sla_due_at)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        models = (await self._session.execute(stmt)).scalars().all()
        return [_to_record(m) for m in models]

    async def mark_sla_breached(self, record_id: UUID, now: datetime) -> Optional[int]:
        # the WHERE clause is the idempotence guard
        result = await self._session.execute(
            update(RecordModel)
            .where(
                RecordModel.id == record_id,
                RecordModel.sla_breached.is_(False),
                RecordModel.sla_due_at < now,
                RecordModel.current_state_id.not_in(_terminal_state_ids()),
            )
            .values(sla_breached=True, version=RecordModel.version + 1, updated_at=now)
            .returning(RecordModel.version)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()


class SQLAlchemyTransitionHistoryRepository(ITransitionHistoryRepository):
    """Insert-only transition history storage."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, entry: TransitionHistoryEntry) -> TransitionHistoryEntry:
        self._session.add(TransitionHistoryModel(
            id=entry.id,
            record_id=entry.record_id,
            transition_id=entry.transition_id,
            from_state_id=entry.from_state_id,
            to_state_id=entry.to_state_id,
            performed_by=entry.performed_by,
            record_version=entry.record_version,
            comment=entry.comment,
            attachment_ids=[str(a) for a in entry.attachment_ids],
            feedback_rating=entry.feedback_rating,
            feedback_comment=entry.feedback_comment,
            created_at=entry.created_at,
        ))
        await self._session.flush()
        return entry

    async def list_for_record(self, record_id: UUID) -> List[TransitionHistoryEntry]:
        stmt = (
            select(TransitionHistoryModel)
            .where(TransitionHistoryModel.record_id == record_id)
            .order_by(TransitionHistoryModel.record_version, TransitionHistoryModel.created_at)
        )
        models = (await self._session.execute(stmt)).scalars().all()
        return [
            TransitionHistoryEntry(
                id=m.id,
                record_id=m.record_id,
                transition_id=m.transition_id,
                from_state_id=m.from_state_id,
                to_state_id=m.to_state_id,
                performed_by=m.performed_by,
                record_version=m.record_version,
                created_at=m.created_at,
                comment=m.comment,
                attachment_ids=[UUID(a) for a in m.attachment_ids or []],
                feedback_rating=m.feedback_rating,
                feedback_comment=m.feedback_comment,
            )
            for m in models
        ]


class SQLAlchemyCommentRepository(ICommentRepository):
    """Comments and attachment metadata."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add_comment(self, comment: Comment) -> Comment:
        self._session.add(CommentModel(
            id=comment.id,
            record_id=comment.record_id,
            author_id=comment.author_id,
            body=comment.body,
            is_internal=comment.is_internal,
            transition_history_id=comment.transition_history_id,
            created_at=comment.created_at,
        ))
        await self._session.flush()
        return comment

    async def list_comments(self, record_id: UUID, include_internal: bool = True) -> List[Comment]:
        stmt = select(CommentModel).where(CommentModel.record_id == record_id)
        if not include_internal:
            stmt = stmt.where(CommentModel.is_internal.is_(False))
        stmt = stmt.order_by(CommentModel.created_at, CommentModel.id)
        models = (await self._session.execute(stmt)).scalars().all()
        return [
            Comment(
                id=m.id,
                record_id=m.record_id,
                author_id=m.author_id,
                body=m.body,
                is_internal=m.is_internal,
                transition_history_id=m.transition_history_id,
                created_at=m.created_at,
            )
            for m in models
        ]

    async def add_attachment(self, attachment: Attachment) -> Attachment:
        self._session.add(AttachmentModel(
            id=attachment.id,
            record_id=attachment.record_id,
            file_name=attachment.file_name,
            content_type=attachment.content_type,
            size_bytes=attachment.size_bytes,
            storage_key=attachment.storage_key,
            uploaded_by=attachment.uploaded_by,
            created_at=attachment.created_at,
        ))
        await self._session.flush()
        return attachment

    async def list_attachments(self, record_id: UUID) -> List[Attachment]:
        stmt = (
            select(AttachmentModel)
            .where(AttachmentModel.record_id == record_id)
            .order_by(AttachmentModel.created_at, AttachmentModel.id)
        )
        models = (await self._session.execute(stmt)).scalars().all()
        return [
            Attachment(
                id=m.id,
                record_id=m.record_id,
                file_name=m.file_name,
                content_type=m.content_type,
                size_bytes=m.size_bytes,
                storage_key=m.storage_key,
                uploaded_by=m.uploaded_by,
                created_at=m.created_at,
            )
            for m in models
        ]

    async def attachment_ids(self, record_id: UUID) -> Set[UUID]:
        rows = (await self._session.execute(
            select(AttachmentModel.id).where(AttachmentModel.record_id == record_id)
        )).scalars().all()
        return set(rows)


# ========== Mapping helpers ==========

def _record_columns(record: Record) -> Dict[str, Any]:
    """Every column a mutation may touch. ``id``, ``number`` and ``version`` excluded."""
    return {
        "title": record.title,
        "description": record.description,
        "record_type": record.record_type,
        "workflow_id": record.workflow_id,
        "current_state_id": record.current_state_id,
        "reporter_id": record.reporter_id,
        "assignee_id": record.assignee_id,
        "channel": record.channel,
        "classification_id": record.classification_id,
        "department_id": record.department_id,
        "location_id": record.location_id,
        "priority": record.priority,
        "severity": record.severity,
        "custom_fields": dict(record.custom_fields),
        "sla_due_at": record.sla_due_at,
        "sla_breached": record.sla_breached,
        "resolved_at": record.resolved_at,
        "closed_at": record.closed_at,
        "source_record_id": record.source_record_id,
        "converted_record_id": record.converted_record_id,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    }


def _to_record(model: RecordModel) -> Record:
    return Record(
        id=model.id,
        number=model.number,
        title=model.title,
        description=model.description,
        record_type=model.record_type,
        workflow_id=model.workflow_id,
        current_state_id=model.current_state_id,
        reporter_id=model.reporter_id,
        assignee_id=model.assignee_id,
        channel=model.channel,
        classification_id=model.classification_id,
        department_id=model.department_id,
        location_id=model.location_id,
        priority=model.priority,
        severity=model.severity,
        custom_fields=dict(model.custom_fields or {}),
        sla_due_at=model.sla_due_at,
        sla_breached=model.sla_breached,
        version=model.version,
        resolved_at=model.resolved_at,
        closed_at=model.closed_at,
        source_record_id=model.source_record_id,
        converted_record_id=model.converted_record_id,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )
