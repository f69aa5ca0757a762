"""
Transition Engine
=================

Moves records through their workflow.

Execution runs in two phases over one unit of work:

1. State phase: guards are checked, then the state change, the history
   entry, the optional comment and the "transitioned" revision commit
   together. Any failure before this commit leaves no trace.
2. Action phase: the transition's actions run in order, each committed on
   its own. A failing action is rolled back, logged as an
   "action_warning" revision and reported; the state change stands.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional
from uuid import UUID

from caseflow.audit.application.services import RevisionLog
from caseflow.audit.domain import FieldChange
from caseflow.config import RevisionAction
from caseflow.core import (
    Clock,
    ForbiddenException,
    InvalidTopologyException,
    RequirementsNotMetException,
    ResourceNotFoundException,
    StaleVersionException,
    SystemClock,
    TerminalStateException,
    TransitionNotFoundException,
    ValidationException,
)
from caseflow.core.unit_of_work import IUnitOfWork
from caseflow.records.application.actions import ActionContext, ActionExecutor, warning_message
from caseflow.records.application.services import has_super_admin
from caseflow.records.domain import (
    Comment,
    Record,
    RequirementValidator,
    TransitionHistoryEntry,
    TransitionPayload,
)
from caseflow.shared.infrastructure.logging import get_logger, log_latency
from caseflow.workflow.domain import Action, State, Transition

logger = get_logger(__name__)


@dataclass(frozen=True)
class ActionWarning:
    action_id: UUID
    action_type: str
    message: str


@dataclass
class TransitionOutcome:
    """Result of a successful transition. Warnings name actions that failed."""

    record: Record
    history_id: UUID
    warnings: List[ActionWarning] = field(default_factory=list)


class TransitionEngine:
    """The state machine over records."""

    def __init__(
        self,
        uow: IUnitOfWork,
        executor: Optional[ActionExecutor] = None,
        validator: Optional[RequirementValidator] = None,
        clock: Optional[Clock] = None
    ):
        self._uow = uow
        self._clock = clock or SystemClock()
        self._executor = executor or ActionExecutor(clock=self._clock)
        self._validator = validator or RequirementValidator()
        self._revisions = RevisionLog(uow, self._clock)

    async def execute_transition(
        self,
        record_id: UUID,
        transition_id: UUID,
        actor: str,
        role_set: Iterable[str],
        payload: Optional[TransitionPayload] = None,
        expected_version: Optional[int] = None
    ) -> TransitionOutcome:
        """
        Execute one transition on a record.

        Raises:
            ResourceNotFoundException: If the record does not exist
            StaleVersionException: If ``expected_version`` is not the current version
            TransitionNotFoundException: If the transition is missing, inactive or foreign
            TerminalStateException: If the record sits in a terminal state
            InvalidTopologyException: If the transition does not leave the current state
            ForbiddenException: If no caller role is allowed
            RequirementsNotMetException: With every violated requirement
        """
        with log_latency(logger, "execute_transition", record_id=str(record_id), actor=actor):
            return await self._execute(record_id, transition_id, actor, role_set, payload, expected_version)

    async def _execute(self, record_id, transition_id, actor, role_set, payload, expected_version) -> TransitionOutcome:
        payload = payload or TransitionPayload()
        roles = frozenset(role_set)

        record = await self._uow.records.get(record_id)
        if record is None:
            raise ResourceNotFoundException("Record", record_id)
        if expected_version is not None and record.version != expected_version:
            raise StaleVersionException(record_id, expected_version, record.version)

        transition = await self._uow.workflows.get_transition(transition_id)
        if transition is None or not transition.is_active or transition.workflow_id != record.workflow_id:
            raise TransitionNotFoundException(transition_id, {"record_id": str(record_id)})

        current = await self._require_state(record.current_state_id)
        if current.is_terminal:
            raise TerminalStateException(record_id, current.code)
        if transition.from_state_id != record.current_state_id:
            raise InvalidTopologyException(
                f"Transition '{transition.code}' does not leave state '{current.code}'",
                {
                    "record_id": str(record_id),
                    "transition_id": str(transition_id),
                    "current_state_id": str(record.current_state_id),
                    "from_state_id": str(transition.from_state_id),
                }
            )

        if not has_super_admin(roles) and not transition.permits(roles):
            raise ForbiddenException(
                f"Caller's roles may not execute transition '{transition.code}'",
                {"transition_id": str(transition_id), "allowed_roles": sorted(transition.allowed_roles)}
            )

        await self._check_attachments(record, payload)
        violations = self._validator.validate(transition, record, payload)
        if violations:
            logger.info(
                "Transition refused: requirements not met",
                extra={"record_id": str(record_id), "transition": transition.code, "violations": len(violations)}
            )
            raise RequirementsNotMetException(violations)

        target = await self._require_state(transition.to_state_id)
        try:
            history = await self._commit_state(record, transition, current, target, actor, payload)
        except Exception:
            await self._uow.rollback()
            raise

        logger.info(
            "Record transitioned",
            extra={
                "record_id": str(record.id),
                "transition": transition.code,
                "from_state": current.code,
                "to_state": target.code,
                "version": record.version,
                "actor": actor,
            }
        )

        ctx = ActionContext(
            uow=self._uow,
            record=record,
            transition=transition,
            from_state=current,
            to_state=target,
            actor=actor,
            payload=payload,
        )
        warnings = await self._run_actions(transition.ordered_actions, ctx)
        return TransitionOutcome(record=ctx.record, history_id=history.id, warnings=warnings)

    async def available_transitions(self, record_id: UUID, role_set: Iterable[str]) -> List[Transition]:
        """Transitions the caller could execute from the record's current state."""
        roles = frozenset(role_set)
        record = await self._uow.records.get(record_id)
        if record is None:
            raise ResourceNotFoundException("Record", record_id)

        current = await self._require_state(record.current_state_id)
        if current.is_terminal:
            return []

        outgoing = await self._uow.workflows.list_transitions_from(record.current_state_id)
        bypass = has_super_admin(roles)
        return [t for t in outgoing if t.is_active and (bypass or t.permits(roles))]

    # ---------- phases ----------

    async def _commit_state(
        self,
        record: Record,
        transition: Transition,
        current: State,
        target: State,
        actor: str,
        payload: TransitionPayload
    ) -> TransitionHistoryEntry:
        expected = record.version
        now = self._clock.now()

        changes: List[FieldChange] = record.apply_changes(payload.fields) if payload.fields else []
        changes.append(FieldChange("current_state_id", current.id, target.id))
        record.current_state_id = target.id
        if target.is_terminal:
            if record.resolved_at is None:
                record.resolved_at = now
            record.closed_at = now
        record.updated_at = now

        await self._uow.records.compare_and_swap(record, expected)

        history = TransitionHistoryEntry(
            record_id=record.id,
            transition_id=transition.id,
            from_state_id=current.id,
            to_state_id=target.id,
            performed_by=actor,
            record_version=record.version,
            created_at=now,
            comment=payload.comment,
            attachment_ids=list(payload.attachment_ids),
            feedback_rating=payload.feedback_rating,
            feedback_comment=payload.feedback_comment,
        )
        await self._uow.history.add(history)

        if payload.comment and payload.comment.strip():
            await self._uow.comments.add_comment(Comment(
                record_id=record.id,
                author_id=actor,
                body=payload.comment,
                created_at=now,
                transition_history_id=history.id,
            ))

        await self._revisions.append(
            record_id=record.id,
            action_type=RevisionAction.TRANSITIONED,
            performed_by=actor,
            record_version=record.version,
            snapshot=record.to_snapshot(),
            changes=changes,
            message=f"{current.code} -> {target.code} via '{transition.code}'",
        )
        await self._uow.commit()
        return history

    async def _run_actions(self, actions: List[Action], ctx: ActionContext) -> List[ActionWarning]:
        warnings: List[ActionWarning] = []
        for action in actions:
            if not action.is_active:
                continue
            try:
                await self._executor.execute(action, ctx)
                await self._uow.commit()
            except Exception as e:
                await self._uow.rollback()
                warning = ActionWarning(action.id, action.action_type, warning_message(action, e))
                warnings.append(warning)
                logger.warning(
                    "Transition action failed",
                    extra={
                        "record_id": str(ctx.record.id),
                        "action_id": str(action.id),
                        "action_type": action.action_type,
                        "actor": ctx.actor,
                        "error": str(e),
                    },
                    exc_info=True
                )
                ctx.record = await self._reload(ctx.record.id)
                await self._revisions.append(
                    record_id=ctx.record.id,
                    action_type=RevisionAction.ACTION_WARNING,
                    performed_by=ctx.actor,
                    record_version=ctx.record.version,
                    message=warning.message,
                )
                await self._uow.commit()
        return warnings

    # ---------- helpers ----------

    async def _check_attachments(self, record: Record, payload: TransitionPayload) -> None:
        if not payload.attachment_ids:
            return
        known = await self._uow.comments.attachment_ids(record.id)
        foreign = [str(a) for a in payload.attachment_ids if a not in known]
        if foreign:
            raise ValidationException(
                "Attachments do not belong to this record",
                {"record_id": str(record.id), "attachment_ids": foreign}
            )

    async def _require_state(self, state_id: UUID) -> State:
        state = await self._uow.workflows.get_state(state_id)
        if state is None:
            raise ResourceNotFoundException("State", state_id)
        return state

    async def _reload(self, record_id: UUID) -> Record:
        record = await self._uow.records.get(record_id)
        if record is None:
            raise ResourceNotFoundException("Record", record_id)
        return record
