"""
Records Application Services
============================

Record lifecycle outside the transition engine: creation, direct field
updates, comments, attachments, assignment, conversion and reads.

Every mutation goes through compare-and-swap on the record version and
stages a revision in the same unit of work.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set
from uuid import UUID

from caseflow.audit.application.services import RevisionLog
from caseflow.config import RECORD_NUMBER_PREFIXES, RecordType, RevisionAction, settings
from caseflow.core import (
    AmbiguousMatchException,
    Clock,
    ForbiddenException,
    ResourceNotFoundException,
    StaleVersionException,
    SystemClock,
    ValidationException,
)
from caseflow.core.unit_of_work import IUnitOfWork
from caseflow.matching.application import IDirectory, MatchingService, WorkflowMatchRequest
from caseflow.records.application.dto import (
    AssignDTO,
    AttachmentCreateDTO,
    CommentCreateDTO,
    ConvertDTO,
    RecordCreateDTO,
)
from caseflow.records.domain import Attachment, Comment, Record, TransitionHistoryEntry
from caseflow.shared.infrastructure.logging import get_logger
from caseflow.sla.application.provider import ISLAPolicyProvider, StaticPolicyProvider
from caseflow.sla.domain import SLACalculator
from caseflow.workflow.domain import Workflow

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IRecordRepository(ABC):
    """Interface for record data access."""

    @abstractmethod
    async def add(self, record: Record) -> Record:
        """Insert a new record."""

    @abstractmethod
    async def get(self, record_id: UUID) -> Optional[Record]:
        """Load a record with its current version."""

    @abstractmethod
    async def compare_and_swap(self, record: Record, expected_version: int) -> Record:
        """
        Persist ``record`` only if the stored version still equals
        ``expected_version``; the stored and returned version become
        ``expected_version + 1``.

        Raises:
            StaleVersionException: If the stored version moved on
        """

    @abstractmethod
    async def next_number(self, record_type: str) -> int:
        """Next value of the per-type record number sequence."""

    @abstractmethod
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
        """List records, newest first."""

    @abstractmethod
    async def count_by_workflow(self, workflow_id: UUID) -> int:
        """Records referencing the workflow."""

    @abstractmethod
    async def count_in_state(self, state_id: UUID) -> int:
        """Records currently sitting in the state."""

    @abstractmethod
    async def find_sla_overdue(
        self, now: datetime, limit: int, exclude_ids: Optional[Set[UUID]] = None
    ) -> List[Record]:
        """Unflagged records past their due time that are not in a terminal state, oldest due first."""

    @abstractmethod
    async def mark_sla_breached(self, record_id: UUID, now: datetime) -> Optional[int]:
        """
        Atomically flag one overdue record.

        Returns the new version, or None when the record was already flagged
        or is no longer overdue.
        """


class ITransitionHistoryRepository(ABC):
    """Append-only transition history."""

    @abstractmethod
    async def add(self, entry: TransitionHistoryEntry) -> TransitionHistoryEntry:
        """Append an entry."""

    @abstractmethod
    async def list_for_record(self, record_id: UUID) -> List[TransitionHistoryEntry]:
        """Entries of one record, oldest first."""


class ICommentRepository(ABC):
    """Comments and attachment metadata of records."""

    @abstractmethod
    async def add_comment(self, comment: Comment) -> Comment:
        """Insert a comment."""

    @abstractmethod
    async def list_comments(self, record_id: UUID, include_internal: bool = True) -> List[Comment]:
        """Comments of one record, oldest first."""

    @abstractmethod
    async def add_attachment(self, attachment: Attachment) -> Attachment:
        """Insert attachment metadata."""

    @abstractmethod
    async def list_attachments(self, record_id: UUID) -> List[Attachment]:
        """Attachments of one record, oldest first."""

    @abstractmethod
    async def attachment_ids(self, record_id: UUID) -> Set[UUID]:
        """Identifiers of the record's attachments."""


# ========== Helpers ==========

def format_record_number(record_type: str, sequence: int) -> str:
    prefix = RECORD_NUMBER_PREFIXES.get(record_type, record_type[:3].upper())
    return f"{prefix}-{sequence:06d}"


def has_super_admin(role_set: Iterable[str]) -> bool:
    return settings.super_admin_role in set(role_set)


# ========== Application Services ==========

class RecordService:
    """
    Record operations other than executing transitions.

    Every mutating method commits the unit of work before returning.
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        directory: Optional[IDirectory] = None,
        policy_provider: Optional[ISLAPolicyProvider] = None,
        clock: Optional[Clock] = None
    ):
        self._uow = uow
        self._clock = clock or SystemClock()
        self._matching = MatchingService(uow.workflows, directory)
        self._policy_provider = policy_provider or StaticPolicyProvider()
        self._revisions = RevisionLog(uow, self._clock)

    # ---------- creation ----------

    async def create_record(self, dto: RecordCreateDTO, actor: str) -> Record:
        """
        Create a record in the initial state of its workflow.

        Raises:
            ResourceNotFoundException: If no workflow applies
            AmbiguousMatchException: If several workflows match equally
            InvalidTopologyException: If the workflow has no initial state
            ValidationException: If a required field is missing
        """
        workflow = await self._resolve_workflow(dto)
        return await self._create(
            workflow=workflow,
            actor=actor,
            fields=dto.model_dump(exclude={"workflow_id"}),
        )

    async def _resolve_workflow(self, dto: RecordCreateDTO) -> Workflow:
        if dto.workflow_id is not None:
            workflow = await self._uow.workflows.get_workflow(dto.workflow_id)
            if workflow is None or not workflow.is_active:
                raise ResourceNotFoundException("Workflow", dto.workflow_id)
            if workflow.record_type != dto.record_type:
                raise ValidationException(
                    f"Workflow '{workflow.code}' handles {workflow.record_type} records, not {dto.record_type}",
                    {"workflow_id": str(workflow.id), "record_type": dto.record_type}
                )
            return workflow

        match = await self._matching.match_workflow(WorkflowMatchRequest(
            record_type=dto.record_type,
            classification_id=dto.classification_id,
            location_id=dto.location_id,
            department_id=dto.department_id,
            channel=dto.channel,
        ))
        if match.is_ambiguous:
            raise AmbiguousMatchException("Workflow", [c.id for c in match.result.matches])
        if match.workflow is None:
            raise ResourceNotFoundException(
                "Workflow", None, {"record_type": dto.record_type, "reason": "no matching or default workflow"}
            )
        return match.workflow

    async def _create(
        self,
        workflow: Workflow,
        actor: str,
        fields: Dict[str, Any],
        source_record_id: Optional[UUID] = None,
        commit: bool = True
    ) -> Record:
        graph = await self._uow.workflows.get_graph(workflow.id)
        initial = graph.initial_state

        missing = [name for name in workflow.required_fields if _blank(_lookup(fields, name))]
        if missing:
            raise ValidationException(
                f"Workflow '{workflow.code}' requires fields: {', '.join(missing)}",
                {"workflow_id": str(workflow.id), "missing_fields": missing}
            )

        now = self._clock.now()
        record_type = fields["record_type"]
        priority = fields.get("priority", 3)
        sequence = await self._uow.records.next_number(record_type)
        record = Record(
            number=format_record_number(record_type, sequence),
            title=fields["title"],
            record_type=record_type,
            workflow_id=workflow.id,
            current_state_id=initial.id,
            reporter_id=actor,
            description=fields.get("description") or "",
            channel=fields.get("channel"),
            classification_id=fields.get("classification_id"),
            department_id=fields.get("department_id"),
            location_id=fields.get("location_id"),
            assignee_id=fields.get("assignee_id"),
            priority=priority,
            severity=fields.get("severity", 3),
            custom_fields=dict(fields.get("custom_fields") or {}),
            sla_due_at=SLACalculator.due_at(
                self._policy_provider.policy, now, record_type, priority, initial.sla_hours
            ),
            source_record_id=source_record_id,
            created_at=now,
            updated_at=now,
        )
        await self._uow.records.add(record)
        await self._revisions.append(
            record_id=record.id,
            action_type=RevisionAction.CREATED,
            performed_by=actor,
            record_version=record.version,
            snapshot=record.to_snapshot(),
            message=f"Created in state '{initial.code}' of workflow '{workflow.code}'",
        )
        if commit:
            await self._uow.commit()

        logger.info(
            "Record created",
            extra={"record_id": str(record.id), "number": record.number, "workflow_id": str(workflow.id), "actor": actor}
        )
        return record

    # ---------- reads ----------

    async def get_record(self, record_id: UUID) -> Record:
        record = await self._uow.records.get(record_id)
        if record is None:
            raise ResourceNotFoundException("Record", record_id)
        return record

    async def list_records(self, **filters) -> List[Record]:
        return await self._uow.records.list_records(**filters)

    async def transition_history(self, record_id: UUID) -> List[TransitionHistoryEntry]:
        await self.get_record(record_id)
        return await self._uow.history.list_for_record(record_id)

    async def list_comments(self, record_id: UUID, include_internal: bool = True) -> List[Comment]:
        await self.get_record(record_id)
        return await self._uow.comments.list_comments(record_id, include_internal=include_internal)

    async def list_attachments(self, record_id: UUID) -> List[Attachment]:
        await self.get_record(record_id)
        return await self._uow.comments.list_attachments(record_id)

    # ---------- mutations ----------

    async def update_record(
        self,
        record_id: UUID,
        changes: Dict[str, Any],
        actor: str,
        expected_version: Optional[int] = None
    ) -> Record:
        """
        Apply direct field changes.

        Raises:
            ForbiddenException: For state, workflow, version or SLA fields
            StaleVersionException: If ``expected_version`` is stale
        """
        record = await self._load(record_id, expected_version)
        expected = record.version
        applied = record.apply_changes(changes)
        if not applied:
            return record

        record.updated_at = self._clock.now()
        await self._uow.records.compare_and_swap(record, expected)
        await self._revisions.append(
            record_id=record.id,
            action_type=RevisionAction.UPDATED,
            performed_by=actor,
            record_version=record.version,
            snapshot=record.to_snapshot(),
            changes=applied,
            message="Updated " + ", ".join(c.field for c in applied),
        )
        await self._uow.commit()
        return record

    async def add_comment(self, record_id: UUID, dto: CommentCreateDTO, actor: str) -> Comment:
        record = await self._load(record_id)
        expected = record.version
        now = self._clock.now()
        comment = Comment(
            record_id=record.id,
            author_id=actor,
            body=dto.body,
            is_internal=dto.is_internal,
            created_at=now,
        )
        await self._uow.comments.add_comment(comment)

        record.updated_at = now
        await self._uow.records.compare_and_swap(record, expected)
        await self._revisions.append(
            record_id=record.id,
            action_type=RevisionAction.COMMENT_ADDED,
            performed_by=actor,
            record_version=record.version,
            message="Internal comment added" if dto.is_internal else "Comment added",
        )
        await self._uow.commit()
        return comment

    async def add_attachment(self, record_id: UUID, dto: AttachmentCreateDTO, actor: str) -> Attachment:
        record = await self._load(record_id)
        expected = record.version
        now = self._clock.now()
        attachment = Attachment(
            record_id=record.id,
            file_name=dto.file_name,
            uploaded_by=actor,
            content_type=dto.content_type,
            size_bytes=dto.size_bytes,
            storage_key=dto.storage_key,
            created_at=now,
        )
        await self._uow.comments.add_attachment(attachment)

        record.updated_at = now
        await self._uow.records.compare_and_swap(record, expected)
        await self._revisions.append(
            record_id=record.id,
            action_type=RevisionAction.ATTACHMENT_ADDED,
            performed_by=actor,
            record_version=record.version,
            message=f"Attachment '{attachment.file_name}' added",
        )
        await self._uow.commit()
        return attachment

    async def assign(self, record_id: UUID, dto: AssignDTO, actor: str) -> Record:
        record = await self._load(record_id, dto.expected_version)
        expected = record.version
        updates = dto.model_dump(exclude_unset=True, exclude={"expected_version"})
        if not updates:
            raise ValidationException("Give an assignee_id or a department_id")

        applied = record.apply_changes(updates)
        if not applied:
            return record

        record.updated_at = self._clock.now()
        await self._uow.records.compare_and_swap(record, expected)
        await self._revisions.append(
            record_id=record.id,
            action_type=RevisionAction.ASSIGNED,
            performed_by=actor,
            record_version=record.version,
            snapshot=record.to_snapshot(),
            changes=applied,
            message=f"Assigned to {record.assignee_id or 'nobody'}",
        )
        await self._uow.commit()
        return record

    async def convert_to_request(
        self,
        record_id: UUID,
        dto: ConvertDTO,
        actor: str,
        role_set: Iterable[str]
    ) -> Record:
        """
        Create a request record linked to the source record.

        Raises:
            ForbiddenException: If the source workflow restricts conversion to other roles
            ValidationException: If the source is a request or was already converted
        """
        roles = frozenset(role_set)
        source = await self._load(record_id)
        if source.record_type == RecordType.REQUEST:
            raise ValidationException("Record is already a request", {"record_id": str(record_id)})
        if source.converted_record_id is not None:
            raise ValidationException(
                "Record was already converted",
                {"record_id": str(record_id), "converted_record_id": str(source.converted_record_id)}
            )

        source_workflow = await self._uow.workflows.get_workflow(source.workflow_id, include_deleted=True)
        allowed = set(source_workflow.convert_to_request_roles) if source_workflow else set()
        if allowed and not (allowed & roles) and not has_super_admin(roles):
            raise ForbiddenException(
                "Caller's roles may not convert this record",
                {"record_id": str(record_id), "allowed_roles": sorted(allowed)}
            )

        target_dto = RecordCreateDTO(
            title=dto.title or source.title,
            record_type=RecordType.REQUEST,
            description=source.description,
            workflow_id=dto.workflow_id,
            channel=source.channel,
            classification_id=source.classification_id,
            department_id=source.department_id,
            location_id=source.location_id,
            assignee_id=source.assignee_id,
            priority=source.priority,
            severity=source.severity,
            custom_fields=dict(source.custom_fields),
        )
        workflow = await self._resolve_workflow(target_dto)

        # the new record and the source link commit together
        expected = source.version
        target = await self._create(
            workflow=workflow,
            actor=actor,
            fields=target_dto.model_dump(exclude={"workflow_id"}),
            source_record_id=source.id,
            commit=False,
        )
        source.converted_record_id = target.id
        source.updated_at = self._clock.now()
        await self._uow.records.compare_and_swap(source, expected)
        await self._revisions.append(
            record_id=source.id,
            action_type=RevisionAction.CONVERTED,
            performed_by=actor,
            record_version=source.version,
            snapshot=source.to_snapshot(),
            message=f"Converted to request {target.number}",
        )
        await self._revisions.append(
            record_id=target.id,
            action_type=RevisionAction.CONVERTED,
            performed_by=actor,
            record_version=target.version,
            message=f"Converted from {source.number}",
        )
        await self._uow.commit()

        logger.info(
            "Record converted to request",
            extra={"record_id": str(source.id), "request_id": str(target.id), "actor": actor}
        )
        return target

    # ---------- helpers ----------

    async def _load(self, record_id: UUID, expected_version: Optional[int] = None) -> Record:
        record = await self.get_record(record_id)
        if expected_version is not None and record.version != expected_version:
            raise StaleVersionException(record_id, expected_version, record.version)
        return record


def _lookup(fields: Dict[str, Any], name: str) -> Any:
    if name in fields:
        return fields[name]
    return (fields.get("custom_fields") or {}).get(name.removeprefix("custom_fields."))


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False
