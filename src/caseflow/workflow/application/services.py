"""
Workflow Application Services
=============================

The Workflow Definition Store: CRUD over workflows, states and transitions,
graph queries, lifecycle management and deep duplication.

Following SOLID principles:
- Single Responsibility: the store owns definitions, never records
- Dependency Inversion: depends on repository abstractions
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import List, Optional
from uuid import UUID, uuid4

from caseflow.core import (
    Clock,
    HasDependentRecordsException,
    InvalidTopologyException,
    ResourceNotFoundException,
    SystemClock,
    ValidationException,
)
from caseflow.core.unit_of_work import IUnitOfWork
from caseflow.shared.infrastructure.logging import get_logger
from caseflow.workflow.application.dto import (
    ActionDTO,
    RequirementDTO,
    StateCreateDTO,
    StateUpdateDTO,
    TransitionCreateDTO,
    TransitionUpdateDTO,
    WorkflowCreateDTO,
    WorkflowUpdateDTO,
    constraints_from,
)
from caseflow.workflow.domain import (
    Action,
    GraphReport,
    Requirement,
    State,
    Transition,
    Workflow,
    WorkflowGraph,
    WorkflowLifecycle,
)

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IWorkflowRepository(ABC):
    """Interface for workflow definition data access."""

    # --- workflows ---
    @abstractmethod
    async def add_workflow(self, workflow: Workflow) -> Workflow:
        """Insert a workflow and its match constraints."""

    @abstractmethod
    async def update_workflow(self, workflow: Workflow) -> Workflow:
        """Persist scalar fields and replace match constraints."""

    @abstractmethod
    async def get_workflow(self, workflow_id: UUID, include_deleted: bool = False) -> Optional[Workflow]:
        """Get a workflow; soft-deleted ones only when asked."""

    @abstractmethod
    async def get_workflow_by_code(self, code: str) -> Optional[Workflow]:
        """Get a workflow by its unique code, whatever its lifecycle."""

    @abstractmethod
    async def list_workflows(
        self,
        record_type: Optional[str] = None,
        active_only: bool = False,
        lifecycle: str = WorkflowLifecycle.ACTIVE
    ) -> List[Workflow]:
        """List workflows by record type, active flag and lifecycle."""

    @abstractmethod
    async def clear_default(self, record_type: str, keep_id: Optional[UUID] = None) -> None:
        """Unset is_default on every workflow of the record type except keep_id."""

    @abstractmethod
    async def delete_workflow(self, workflow_id: UUID) -> None:
        """Remove a workflow and its whole graph."""

    # --- states ---
    @abstractmethod
    async def add_state(self, state: State) -> State:
        """Insert a state."""

    @abstractmethod
    async def update_state(self, state: State) -> State:
        """Persist a state."""

    @abstractmethod
    async def get_state(self, state_id: UUID) -> Optional[State]:
        """Get a state by id."""

    @abstractmethod
    async def list_states(self, workflow_id: UUID) -> List[State]:
        """List states of a workflow ordered by sort order."""

    @abstractmethod
    async def demote_initial_states(self, workflow_id: UUID, keep_id: UUID) -> None:
        """Clear is_initial on every state of the workflow except keep_id."""

    @abstractmethod
    async def delete_state(self, state_id: UUID) -> None:
        """Remove a state."""

    # --- transitions ---
    @abstractmethod
    async def add_transition(self, transition: Transition) -> Transition:
        """Insert a transition with its requirements and actions."""

    @abstractmethod
    async def update_transition(self, transition: Transition) -> Transition:
        """Persist a transition, replacing its requirements and actions."""

    @abstractmethod
    async def get_transition(self, transition_id: UUID) -> Optional[Transition]:
        """Load a transition with requirements and actions."""

    @abstractmethod
    async def list_transitions(self, workflow_id: UUID) -> List[Transition]:
        """All transitions of a workflow."""

    @abstractmethod
    async def list_transitions_from(self, state_id: UUID) -> List[Transition]:
        """Transitions leaving a state, ordered by sort order."""

    @abstractmethod
    async def delete_transition(self, transition_id: UUID) -> None:
        """Remove a transition with its requirements and actions."""

    # --- graph ---
    @abstractmethod
    async def get_graph(self, workflow_id: UUID, include_deleted: bool = False) -> Optional[WorkflowGraph]:
        """Load a workflow with all states and transitions."""


# ========== Mapping helpers ==========

def requirement_from_dto(dto: RequirementDTO, position: int) -> Requirement:
    return Requirement(
        requirement_type=dto.requirement_type,
        field_name=dto.field_name,
        min_count=dto.min_count,
        is_mandatory=dto.is_mandatory,
        error_message=dto.error_message,
        position=position,
    )


def action_from_dto(dto: ActionDTO) -> Action:
    return Action(
        action_type=dto.action_type,
        name=dto.name,
        config=dict(dto.config),
        execution_order=dto.execution_order,
        is_active=dto.is_active,
    )


# ========== Application Services ==========

class WorkflowService:
    """
    Workflow Definition Store.

    Every mutating method commits the unit of work before returning.
    """

    def __init__(self, uow: IUnitOfWork, clock: Optional[Clock] = None):
        self._uow = uow
        self._repo = uow.workflows
        self._clock = clock or SystemClock()

    # ---------- workflows ----------

    async def create_workflow(self, dto: WorkflowCreateDTO) -> Workflow:
        if await self._repo.get_workflow_by_code(dto.code):
            raise ValidationException(f"Workflow code '{dto.code}' already exists", {"code": dto.code})

        now = self._clock.now()
        workflow = Workflow(
            code=dto.code,
            name=dto.name,
            record_type=dto.record_type,
            description=dto.description,
            is_active=dto.is_active,
            is_default=dto.is_default,
            required_fields=list(dto.required_fields),
            convert_to_request_roles=list(dto.convert_to_request_roles),
            match_constraints=dto.match_constraints(),
            created_at=now,
            updated_at=now,
        )
        if workflow.is_default:
            await self._repo.clear_default(workflow.record_type)
        await self._repo.add_workflow(workflow)
        await self._uow.commit()

        logger.info("Workflow created", extra={"workflow_id": str(workflow.id), "code": workflow.code})
        return workflow

    async def update_workflow(self, workflow_id: UUID, dto: WorkflowUpdateDTO) -> Workflow:
        workflow = await self.get_workflow(workflow_id)
        changes = dto.model_dump(exclude_unset=True)

        constraint_keys = {"classification_ids", "location_ids", "department_ids", "channels"}
        if constraint_keys & changes.keys():
            current = {
                "classification_ids": sorted(workflow.match_constraints.get("classification", ())),
                "location_ids": sorted(workflow.match_constraints.get("location", ())),
                "department_ids": sorted(workflow.match_constraints.get("department", ())),
                "channels": sorted(workflow.match_constraints.get("channel", ())),
            }
            current.update({k: v or [] for k, v in changes.items() if k in constraint_keys})
            workflow.match_constraints = constraints_from(WorkflowUpdateDTO(**current))

        for key, value in changes.items():
            if key not in constraint_keys and value is not None:
                setattr(workflow, key, value)
        workflow.updated_at = self._clock.now()

        await self._repo.update_workflow(workflow)
        await self._uow.commit()
        return workflow

    async def get_workflow(self, workflow_id: UUID, include_deleted: bool = False) -> Workflow:
        workflow = await self._repo.get_workflow(workflow_id, include_deleted=include_deleted)
        if workflow is None:
            raise ResourceNotFoundException("Workflow", workflow_id)
        return workflow

    async def list_workflows(
        self,
        record_type: Optional[str] = None,
        active_only: bool = False
    ) -> List[Workflow]:
        return await self._repo.list_workflows(record_type=record_type, active_only=active_only)

    async def list_deleted(self) -> List[Workflow]:
        return await self._repo.list_workflows(lifecycle=WorkflowLifecycle.SOFT_DELETED)

    async def get_graph(self, workflow_id: UUID) -> WorkflowGraph:
        graph = await self._repo.get_graph(workflow_id)
        if graph is None:
            raise ResourceNotFoundException("Workflow", workflow_id)
        return graph

    async def set_default(self, workflow_id: UUID) -> Workflow:
        """Make the workflow the fallback for its record type."""
        workflow = await self.get_workflow(workflow_id)
        await self._repo.clear_default(workflow.record_type, keep_id=workflow.id)
        workflow.is_default = True
        workflow.updated_at = self._clock.now()
        await self._repo.update_workflow(workflow)
        await self._uow.commit()
        return workflow

    # ---------- lifecycle ----------

    async def delete_workflow(self, workflow_id: UUID, permanent: bool = False) -> None:
        """
        Soft delete by default; purge when ``permanent`` is set.

        Raises:
            HasDependentRecordsException: On purge while records reference the workflow
        """
        workflow = await self.get_workflow(workflow_id, include_deleted=True)

        if not permanent:
            WorkflowLifecycle.ensure_transition(workflow.lifecycle, WorkflowLifecycle.SOFT_DELETED)
            workflow.lifecycle = WorkflowLifecycle.SOFT_DELETED
            workflow.is_default = False
            workflow.deleted_at = self._clock.now()
            await self._repo.update_workflow(workflow)
            await self._uow.commit()
            logger.info("Workflow soft-deleted", extra={"workflow_id": str(workflow_id)})
            return

        WorkflowLifecycle.ensure_transition(workflow.lifecycle, WorkflowLifecycle.PURGED)
        dependents = await self._uow.records.count_by_workflow(workflow_id)
        if dependents:
            raise HasDependentRecordsException("Workflow", workflow_id, dependents)

        await self._repo.delete_workflow(workflow_id)
        await self._uow.commit()
        logger.info("Workflow purged", extra={"workflow_id": str(workflow_id)})

    async def restore_workflow(self, workflow_id: UUID) -> Workflow:
        workflow = await self.get_workflow(workflow_id, include_deleted=True)
        WorkflowLifecycle.ensure_transition(workflow.lifecycle, WorkflowLifecycle.ACTIVE)
        workflow.lifecycle = WorkflowLifecycle.ACTIVE
        workflow.deleted_at = None
        workflow.updated_at = self._clock.now()
        await self._repo.update_workflow(workflow)
        await self._uow.commit()
        return workflow

    # ---------- states ----------

    async def add_state(self, workflow_id: UUID, dto: StateCreateDTO) -> State:
        await self.get_workflow(workflow_id)
        existing = await self._repo.list_states(workflow_id)
        if any(s.code == dto.code for s in existing):
            raise ValidationException(f"State code '{dto.code}' already exists in workflow", {"code": dto.code})

        state = State(workflow_id=workflow_id, **dto.model_dump())
        await self._repo.add_state(state)
        if state.is_initial:
            await self._repo.demote_initial_states(workflow_id, keep_id=state.id)
        await self._uow.commit()
        return state

    async def update_state(self, state_id: UUID, dto: StateUpdateDTO) -> State:
        state = await self._require_state(state_id)
        changes = dto.model_dump(exclude_unset=True)

        if changes.get("is_terminal") and not state.is_terminal:
            outgoing = await self._repo.list_transitions_from(state_id)
            if outgoing:
                raise InvalidTopologyException(
                    f"State '{state.code}' has outgoing transitions and cannot become terminal",
                    {"state_id": str(state_id), "transitions": [t.code for t in outgoing]}
                )

        for key, value in changes.items():
            setattr(state, key, value)
        await self._repo.update_state(state)
        if changes.get("is_initial"):
            await self._repo.demote_initial_states(state.workflow_id, keep_id=state.id)
        await self._uow.commit()
        return state

    async def remove_state(self, state_id: UUID) -> None:
        """Remove a state and every transition touching it."""
        state = await self._require_state(state_id)
        occupants = await self._uow.records.count_in_state(state_id)
        if occupants:
            raise HasDependentRecordsException("State", state_id, occupants)

        for transition in await self._repo.list_transitions(state.workflow_id):
            if state_id in (transition.from_state_id, transition.to_state_id):
                await self._repo.delete_transition(transition.id)
        await self._repo.delete_state(state_id)
        await self._uow.commit()

    # ---------- transitions ----------

    async def add_transition(self, workflow_id: UUID, dto: TransitionCreateDTO) -> Transition:
        await self.get_workflow(workflow_id)
        existing = await self._repo.list_transitions(workflow_id)
        if any(t.code == dto.code for t in existing):
            raise ValidationException(
                f"Transition code '{dto.code}' already exists in workflow", {"code": dto.code}
            )
        await self._check_endpoints(workflow_id, dto.from_state_id, dto.to_state_id)

        transition = Transition(
            workflow_id=workflow_id,
            code=dto.code,
            name=dto.name,
            description=dto.description,
            from_state_id=dto.from_state_id,
            to_state_id=dto.to_state_id,
            allowed_roles=frozenset(dto.allowed_roles),
            requirements=[requirement_from_dto(r, i) for i, r in enumerate(dto.requirements)],
            actions=[action_from_dto(a) for a in dto.actions],
            sort_order=dto.sort_order,
            is_active=dto.is_active,
        )
        await self._repo.add_transition(transition)
        await self._uow.commit()
        return transition

    async def update_transition(self, transition_id: UUID, dto: TransitionUpdateDTO) -> Transition:
        transition = await self._repo.get_transition(transition_id)
        if transition is None:
            raise ResourceNotFoundException("Transition", transition_id)

        changes = dto.model_dump(exclude_unset=True)
        from_id = changes.get("from_state_id") or transition.from_state_id
        to_id = changes.get("to_state_id") or transition.to_state_id
        if from_id != transition.from_state_id or to_id != transition.to_state_id:
            await self._check_endpoints(transition.workflow_id, from_id, to_id)

        updates = {}
        for key in ("name", "description", "sort_order", "is_active"):
            if changes.get(key) is not None:
                updates[key] = changes[key]
        if dto.allowed_roles is not None:
            updates["allowed_roles"] = frozenset(dto.allowed_roles)
        if dto.requirements is not None:
            updates["requirements"] = [requirement_from_dto(r, i) for i, r in enumerate(dto.requirements)]
        if dto.actions is not None:
            updates["actions"] = [action_from_dto(a) for a in dto.actions]

        transition = replace(transition, from_state_id=from_id, to_state_id=to_id, **updates)
        await self._repo.update_transition(transition)
        await self._uow.commit()
        return transition

    async def remove_transition(self, transition_id: UUID) -> None:
        if await self._repo.get_transition(transition_id) is None:
            raise ResourceNotFoundException("Transition", transition_id)
        await self._repo.delete_transition(transition_id)
        await self._uow.commit()

    # ---------- graph queries ----------

    async def initial_state_of(self, workflow_id: UUID) -> State:
        """
        Raises:
            InvalidTopologyException: If the workflow has no states or no initial state
        """
        graph = await self.get_graph(workflow_id)
        return graph.initial_state

    async def transitions_from(self, state_id: UUID) -> List[Transition]:
        await self._require_state(state_id)
        return await self._repo.list_transitions_from(state_id)

    async def transitions_of(self, workflow_id: UUID) -> List[Transition]:
        await self.get_workflow(workflow_id, include_deleted=True)
        return await self._repo.list_transitions(workflow_id)

    async def validate_workflow(self, workflow_id: UUID) -> GraphReport:
        return (await self.get_graph(workflow_id)).validate()

    # ---------- duplication ----------

    async def duplicate_workflow(self, workflow_id: UUID, code: str, name: str) -> WorkflowGraph:
        """
        Deep-copy a workflow under a new code.

        States, transitions, requirements, actions and role sets are copied
        with fresh identifiers; from/to topology is preserved. The copy is
        never the default workflow.
        """
        source = await self.get_graph(workflow_id)
        if await self._repo.get_workflow_by_code(code):
            raise ValidationException(f"Workflow code '{code}' already exists", {"code": code})

        now = self._clock.now()
        workflow = replace(
            source.workflow,
            id=uuid4(),
            code=code,
            name=name,
            is_default=False,
            lifecycle=WorkflowLifecycle.ACTIVE,
            match_constraints={k: set(v) for k, v in source.workflow.match_constraints.items()},
            required_fields=list(source.workflow.required_fields),
            convert_to_request_roles=list(source.workflow.convert_to_request_roles),
            created_at=now,
            updated_at=now,
            deleted_at=None,
        )
        await self._repo.add_workflow(workflow)

        state_ids = {}
        states = []
        for state in source.states:
            copy = replace(state, id=uuid4(), workflow_id=workflow.id)
            state_ids[state.id] = copy.id
            states.append(copy)
            await self._repo.add_state(copy)

        transitions = []
        for transition in source.transitions:
            copy = replace(
                transition,
                id=uuid4(),
                workflow_id=workflow.id,
                from_state_id=state_ids[transition.from_state_id],
                to_state_id=state_ids[transition.to_state_id],
                requirements=[replace(r, id=uuid4()) for r in transition.requirements],
                actions=[replace(a, id=uuid4(), config=dict(a.config)) for a in transition.actions],
            )
            transitions.append(copy)
            await self._repo.add_transition(copy)

        await self._uow.commit()
        logger.info(
            "Workflow duplicated",
            extra={"source_id": str(workflow_id), "workflow_id": str(workflow.id), "code": code}
        )
        return WorkflowGraph(workflow=workflow, states=states, transitions=transitions)

    # ---------- helpers ----------

    async def _require_state(self, state_id: UUID) -> State:
        state = await self._repo.get_state(state_id)
        if state is None:
            raise ResourceNotFoundException("State", state_id)
        return state

    async def _check_endpoints(self, workflow_id: UUID, from_id: UUID, to_id: UUID) -> None:
        source = await self._require_state(from_id)
        target = await self._require_state(to_id)
        if source.workflow_id != workflow_id or target.workflow_id != workflow_id:
            raise InvalidTopologyException(
                "Transition endpoints must belong to the transition's workflow",
                {"workflow_id": str(workflow_id), "from_state_id": str(from_id), "to_state_id": str(to_id)}
            )
        if source.is_terminal:
            raise InvalidTopologyException(
                f"Terminal state '{source.code}' cannot have outgoing transitions",
                {"state_id": str(from_id)}
            )
