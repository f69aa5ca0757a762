"""
Workflow Infrastructure Repositories
====================================

SQLAlchemy implementation of the workflow definition repository.

Rows are mapped to detached domain dataclasses on the way out, so callers
never hold live ORM objects.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.workflow.application.services import IWorkflowRepository
from caseflow.workflow.domain import (
    Action,
    Requirement,
    State,
    Transition,
    Workflow,
    WorkflowGraph,
    WorkflowLifecycle,
)
from caseflow.workflow.infrastructure.models import (
    ActionModel,
    RequirementModel,
    StateModel,
    TransitionModel,
    WorkflowConstraintModel,
    WorkflowModel,
)


class SQLAlchemyWorkflowRepository(IWorkflowRepository):
    """Persists workflow definitions using async SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    # ========== Workflows ==========

    async def add_workflow(self, workflow: Workflow) -> Workflow:
        self._session.add(WorkflowModel(
            id=workflow.id,
            code=workflow.code,
            name=workflow.name,
            description=workflow.description,
            record_type=workflow.record_type,
            is_active=workflow.is_active,
            is_default=workflow.is_default,
            lifecycle=workflow.lifecycle,
            required_fields=list(workflow.required_fields),
            convert_to_request_roles=list(workflow.convert_to_request_roles),
            created_at=workflow.created_at,
            updated_at=workflow.updated_at,
            deleted_at=workflow.deleted_at,
        ))
        await self._session.flush()
        await self._write_constraints(workflow)
        return workflow

    async def update_workflow(self, workflow: Workflow) -> Workflow:
        await self._session.execute(
            update(WorkflowModel)
            .where(WorkflowModel.id == workflow.id)
            .values(
                name=workflow.name,
                description=workflow.description,
                is_active=workflow.is_active,
                is_default=workflow.is_default,
                lifecycle=workflow.lifecycle,
                required_fields=list(workflow.required_fields),
                convert_to_request_roles=list(workflow.convert_to_request_roles),
                updated_at=workflow.updated_at,
                deleted_at=workflow.deleted_at,
            )
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(
            delete(WorkflowConstraintModel).where(WorkflowConstraintModel.workflow_id == workflow.id)
        )
        await self._write_constraints(workflow)
        return workflow

    async def get_workflow(self, workflow_id: UUID, include_deleted: bool = False) -> Optional[Workflow]:
        stmt = select(WorkflowModel).where(WorkflowModel.id == workflow_id)
        if not include_deleted:
            stmt = stmt.where(WorkflowModel.lifecycle == WorkflowLifecycle.ACTIVE)
        model = (await self._session.execute(stmt.execution_options(populate_existing=True))).scalar_one_or_none()
        if model is None:
            return None
        return (await self._to_workflows([model]))[0]

    async def get_workflow_by_code(self, code: str) -> Optional[Workflow]:
        stmt = select(WorkflowModel).where(WorkflowModel.code == code)
        model = (await self._session.execute(stmt)).scalar_one_or_none()
        if model is None:
            return None
        return (await self._to_workflows([model]))[0]

    async def list_workflows(
        self,
        record_type: Optional[str] = None,
        active_only: bool = False,
        lifecycle: str = WorkflowLifecycle.ACTIVE
    ) -> List[Workflow]:
        stmt = select(WorkflowModel).where(WorkflowModel.lifecycle == lifecycle)
        if record_type:
            stmt = stmt.where(WorkflowModel.record_type == record_type)
        if active_only:
            stmt = stmt.where(WorkflowModel.is_active.is_(True))
        stmt = stmt.order_by(WorkflowModel.name, WorkflowModel.code)

        models = (await self._session.execute(stmt.execution_options(populate_existing=True))).scalars().all()
        return await self._to_workflows(models)

    async def clear_default(self, record_type: str, keep_id: Optional[UUID] = None) -> None:
        stmt = update(WorkflowModel).where(
            WorkflowModel.record_type == record_type,
            WorkflowModel.is_default.is_(True),
        )
        if keep_id is not None:
            stmt = stmt.where(WorkflowModel.id != keep_id)
        await self._session.execute(
            stmt.values(is_default=False).execution_options(synchronize_session=False)
        )

    async def delete_workflow(self, workflow_id: UUID) -> None:
        transition_ids = select(TransitionModel.id).where(TransitionModel.workflow_id == workflow_id)
        await self._session.execute(delete(ActionModel).where(ActionModel.transition_id.in_(transition_ids)))
        await self._session.execute(
            delete(RequirementModel).where(RequirementModel.transition_id.in_(transition_ids))
        )
        await self._session.execute(delete(TransitionModel).where(TransitionModel.workflow_id == workflow_id))
        await self._session.execute(delete(StateModel).where(StateModel.workflow_id == workflow_id))
        await self._session.execute(
            delete(WorkflowConstraintModel).where(WorkflowConstraintModel.workflow_id == workflow_id)
        )
        await self._session.execute(delete(WorkflowModel).where(WorkflowModel.id == workflow_id))

    # ========== States ==========

    async def add_state(self, state: State) -> State:
        self._session.add(StateModel(**_state_columns(state)))
        await self._session.flush()
        return state

    async def update_state(self, state: State) -> State:
        columns = _state_columns(state)
        columns.pop("id")
        await self._session.execute(
            update(StateModel)
            .where(StateModel.id == state.id)
            .values(**columns)
            .execution_options(synchronize_session=False)
        )
        return state

    async def get_state(self, state_id: UUID) -> Optional[State]:
        stmt = select(StateModel).where(StateModel.id == state_id).execution_options(populate_existing=True)
        model = (await self._session.execute(stmt)).scalar_one_or_none()
        return _to_state(model) if model else None

    async def list_states(self, workflow_id: UUID) -> List[State]:
        stmt = (
            select(StateModel)
            .where(StateModel.workflow_id == workflow_id)
            .order_by(StateModel.sort_order, StateModel.code)
            .execution_options(populate_existing=True)
        )
        return [_to_state(m) for m in (await self._session.execute(stmt)).scalars().all()]

    async def demote_initial_states(self, workflow_id: UUID, keep_id: UUID) -> None:
        await self._session.execute(
            update(StateModel)
            .where(StateModel.workflow_id == workflow_id, StateModel.id != keep_id)
            .values(is_initial=False)
            .execution_options(synchronize_session=False)
        )

    async def delete_state(self, state_id: UUID) -> None:
        await self._session.execute(delete(StateModel).where(StateModel.id == state_id))

    # ========== Transitions ==========

    async def add_transition(self, transition: Transition) -> Transition:
        self._session.add(TransitionModel(**_transition_columns(transition)))
        await self._session.flush()
        await self._write_children(transition)
        return transition

    async def update_transition(self, transition: Transition) -> Transition:
        columns = _transition_columns(transition)
        columns.pop("id")
        await self._session.execute(
            update(TransitionModel)
            .where(TransitionModel.id == transition.id)
            .values(**columns)
            .execution_options(synchronize_session=False)
        )
        await self._delete_children([transition.id])
        await self._write_children(transition)
        return transition

    async def get_transition(self, transition_id: UUID) -> Optional[Transition]:
        stmt = select(TransitionModel).where(TransitionModel.id == transition_id)
        models = (await self._session.execute(stmt.execution_options(populate_existing=True))).scalars().all()
        transitions = await self._to_transitions(models)
        return transitions[0] if transitions else None

    async def list_transitions(self, workflow_id: UUID) -> List[Transition]:
        stmt = (
            select(TransitionModel)
            .where(TransitionModel.workflow_id == workflow_id)
            .order_by(TransitionModel.sort_order, TransitionModel.code)
        )
        models = (await self._session.execute(stmt.execution_options(populate_existing=True))).scalars().all()
        return await self._to_transitions(models)

    async def list_transitions_from(self, state_id: UUID) -> List[Transition]:
        stmt = (
            select(TransitionModel)
            .where(TransitionModel.from_state_id == state_id)
            .order_by(TransitionModel.sort_order, TransitionModel.code)
        )
        models = (await self._session.execute(stmt.execution_options(populate_existing=True))).scalars().all()
        return await self._to_transitions(models)

    async def delete_transition(self, transition_id: UUID) -> None:
        await self._delete_children([transition_id])
        await self._session.execute(delete(TransitionModel).where(TransitionModel.id == transition_id))

    # ========== Graph ==========

    async def get_graph(self, workflow_id: UUID, include_deleted: bool = False) -> Optional[WorkflowGraph]:
        workflow = await self.get_workflow(workflow_id, include_deleted=include_deleted)
        if workflow is None:
            return None
        return WorkflowGraph(
            workflow=workflow,
            states=await self.list_states(workflow_id),
            transitions=await self.list_transitions(workflow_id),
        )

    # ========== Helpers ==========

    async def _write_constraints(self, workflow: Workflow) -> None:
        for dimension, values in workflow.match_constraints.items():
            for value in sorted(values):
                self._session.add(WorkflowConstraintModel(
                    workflow_id=workflow.id, dimension=dimension, value=value
                ))
        await self._session.flush()

    async def _to_workflows(self, models: Iterable[WorkflowModel]) -> List[Workflow]:
        models = list(models)
        if not models:
            return []
        rows = await self._session.execute(
            select(WorkflowConstraintModel.workflow_id, WorkflowConstraintModel.dimension, WorkflowConstraintModel.value)
            .where(WorkflowConstraintModel.workflow_id.in_([m.id for m in models]))
        )
        constraints: Dict[UUID, Dict[str, set]] = defaultdict(lambda: defaultdict(set))
        for workflow_id, dimension, value in rows:
            constraints[workflow_id][dimension].add(value)

        return [
            Workflow(
                id=m.id,
                code=m.code,
                name=m.name,
                description=m.description,
                record_type=m.record_type,
                is_active=m.is_active,
                is_default=m.is_default,
                lifecycle=m.lifecycle,
                required_fields=list(m.required_fields or []),
                convert_to_request_roles=list(m.convert_to_request_roles or []),
                match_constraints={k: set(v) for k, v in constraints.get(m.id, {}).items()},
                created_at=m.created_at,
                updated_at=m.updated_at,
                deleted_at=m.deleted_at,
            )
            for m in models
        ]

    async def _to_transitions(self, models: Iterable[TransitionModel]) -> List[Transition]:
        models = list(models)
        if not models:
            return []
        ids = [m.id for m in models]

        requirements: Dict[UUID, List[Requirement]] = defaultdict(list)
        req_rows = await self._session.execute(
            select(RequirementModel)
            .where(RequirementModel.transition_id.in_(ids))
            .order_by(RequirementModel.position)
        )
        for r in req_rows.scalars().all():
            requirements[r.transition_id].append(Requirement(
                id=r.id,
                requirement_type=r.requirement_type,
                field_name=r.field_name,
                min_count=r.min_count,
                is_mandatory=r.is_mandatory,
                error_message=r.error_message,
                position=r.position,
            ))

        actions: Dict[UUID, List[Action]] = defaultdict(list)
        action_rows = await self._session.execute(
            select(ActionModel)
            .where(ActionModel.transition_id.in_(ids))
            .order_by(ActionModel.execution_order)
        )
        for a in action_rows.scalars().all():
            actions[a.transition_id].append(Action(
                id=a.id,
                action_type=a.action_type,
                name=a.name,
                config=dict(a.config or {}),
                execution_order=a.execution_order,
                is_active=a.is_active,
            ))

        return [
            Transition(
                id=m.id,
                workflow_id=m.workflow_id,
                code=m.code,
                name=m.name,
                description=m.description,
                from_state_id=m.from_state_id,
                to_state_id=m.to_state_id,
                allowed_roles=frozenset(m.allowed_roles or []),
                requirements=requirements.get(m.id, []),
                actions=actions.get(m.id, []),
                sort_order=m.sort_order,
                is_active=m.is_active,
            )
            for m in models
        ]

    async def _write_children(self, transition: Transition) -> None:
        for requirement in transition.requirements:
            self._session.add(RequirementModel(
                id=requirement.id,
                transition_id=transition.id,
                requirement_type=requirement.requirement_type,
                field_name=requirement.field_name,
                min_count=requirement.min_count,
                is_mandatory=requirement.is_mandatory,
                error_message=requirement.error_message,
                position=requirement.position,
            ))
        for action in transition.actions:
            self._session.add(ActionModel(
                id=action.id,
                transition_id=transition.id,
                action_type=action.action_type,
                name=action.name,
                config=dict(action.config),
                execution_order=action.execution_order,
                is_active=action.is_active,
            ))
        await self._session.flush()

    async def _delete_children(self, transition_ids: List[UUID]) -> None:
        await self._session.execute(delete(ActionModel).where(ActionModel.transition_id.in_(transition_ids)))
        await self._session.execute(
            delete(RequirementModel).where(RequirementModel.transition_id.in_(transition_ids))
        )


def _state_columns(state: State) -> dict:
    return {
        "id": state.id,
        "workflow_id": state.workflow_id,
        "code": state.code,
        "name": state.name,
        "description": state.description,
        "is_initial": state.is_initial,
        "is_terminal": state.is_terminal,
        "sla_hours": state.sla_hours,
        "color": state.color,
        "sort_order": state.sort_order,
        "is_active": state.is_active,
    }


def _transition_columns(transition: Transition) -> dict:
    return {
        "id": transition.id,
        "workflow_id": transition.workflow_id,
        "code": transition.code,
        "name": transition.name,
        "description": transition.description,
        "from_state_id": transition.from_state_id,
        "to_state_id": transition.to_state_id,
        "allowed_roles": sorted(transition.allowed_roles),
        "sort_order": transition.sort_order,
        "is_active": transition.is_active,
    }


def _to_state(model: StateModel) -> State:
    return State(
        id=model.id,
        workflow_id=model.workflow_id,
        code=model.code,
        name=model.name,
        description=model.description,
        is_initial=model.is_initial,
        is_terminal=model.is_terminal,
        sla_hours=model.sla_hours,
        color=model.color,
        sort_order=model.sort_order,
        is_active=model.is_active,
    )
