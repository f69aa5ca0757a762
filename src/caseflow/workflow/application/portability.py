"""
Workflow Portability
====================

JSON export and import of complete workflow graphs.

The exported document references states by code rather than identifier,
so an import reproduces the same topology with fresh identifiers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from caseflow.core import Clock, ResourceNotFoundException, SystemClock, ValidationException
from caseflow.core.unit_of_work import IUnitOfWork
from caseflow.shared.infrastructure.logging import get_logger
from caseflow.workflow.application.dto import ActionDTO, RecordTypeStr, RequirementDTO
from caseflow.workflow.application.services import action_from_dto, requirement_from_dto
from caseflow.workflow.domain import State, Transition, Workflow, WorkflowGraph

logger = get_logger(__name__)

EXPORT_VERSION = "1.0"


# ========== Export document ==========

class StateExport(BaseModel):
    code: str
    name: str
    description: str = ""
    is_initial: bool = False
    is_terminal: bool = False
    sla_hours: Optional[float] = None
    color: str = "#6B7280"
    sort_order: int = 0
    is_active: bool = True


class TransitionExport(BaseModel):
    code: str
    name: str
    description: str = ""
    from_state: str
    to_state: str
    allowed_roles: List[str] = Field(default_factory=list)
    requirements: List[RequirementDTO] = Field(default_factory=list)
    actions: List[ActionDTO] = Field(default_factory=list)
    sort_order: int = 0
    is_active: bool = True


class WorkflowContentExport(BaseModel):
    code: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: str = ""
    record_type: RecordTypeStr
    required_fields: List[str] = Field(default_factory=list)
    convert_to_request_roles: List[str] = Field(default_factory=list)
    match_constraints: Dict[str, List[str]] = Field(default_factory=dict)
    states: List[StateExport] = Field(default_factory=list)
    transitions: List[TransitionExport] = Field(default_factory=list)


class WorkflowExport(BaseModel):
    """Versioned, self-contained workflow document."""
    export_version: str = EXPORT_VERSION
    exported_at: Optional[datetime] = None
    workflow: WorkflowContentExport


@dataclass
class ImportResult:
    graph: WorkflowGraph
    warnings: List[str] = field(default_factory=list)


# ========== Service ==========

class WorkflowPortability:
    """Exports workflow graphs to documents and imports them back."""

    def __init__(self, uow: IUnitOfWork, clock: Optional[Clock] = None):
        self._uow = uow
        self._repo = uow.workflows
        self._clock = clock or SystemClock()

    async def export_workflow(self, workflow_id: UUID) -> WorkflowExport:
        graph = await self._repo.get_graph(workflow_id, include_deleted=True)
        if graph is None:
            raise ResourceNotFoundException("Workflow", workflow_id)
        return self.to_document(graph, exported_at=self._clock.now())

    @staticmethod
    def to_document(graph: WorkflowGraph, exported_at: Optional[datetime] = None) -> WorkflowExport:
        codes = {s.id: s.code for s in graph.states}
        wf = graph.workflow
        return WorkflowExport(
            exported_at=exported_at,
            workflow=WorkflowContentExport(
                code=wf.code,
                name=wf.name,
                description=wf.description,
                record_type=wf.record_type,
                required_fields=list(wf.required_fields),
                convert_to_request_roles=list(wf.convert_to_request_roles),
                match_constraints={k: sorted(v) for k, v in wf.match_constraints.items() if v},
                states=[
                    StateExport(
                        code=s.code,
                        name=s.name,
                        description=s.description,
                        is_initial=s.is_initial,
                        is_terminal=s.is_terminal,
                        sla_hours=s.sla_hours,
                        color=s.color,
                        sort_order=s.sort_order,
                        is_active=s.is_active,
                    )
                    for s in sorted(graph.states, key=lambda s: (s.sort_order, s.code))
                ],
                transitions=[
                    TransitionExport(
                        code=t.code,
                        name=t.name,
                        description=t.description,
                        from_state=codes[t.from_state_id],
                        to_state=codes[t.to_state_id],
                        allowed_roles=sorted(t.allowed_roles),
                        requirements=[
                            RequirementDTO(
                                requirement_type=r.requirement_type,
                                field_name=r.field_name,
                                min_count=r.min_count,
                                is_mandatory=r.is_mandatory,
                                error_message=r.error_message,
                            )
                            for r in sorted(t.requirements, key=lambda r: r.position)
                        ],
                        actions=[
                            ActionDTO(
                                action_type=a.action_type,
                                name=a.name,
                                config=dict(a.config),
                                execution_order=a.execution_order,
                                is_active=a.is_active,
                            )
                            for a in t.ordered_actions
                        ],
                        sort_order=t.sort_order,
                        is_active=t.is_active,
                    )
                    for t in sorted(graph.transitions, key=lambda t: (t.sort_order, t.code))
                ],
            ),
        )

    async def import_workflow(self, document: Any) -> ImportResult:
        """
        Create a new, inactive workflow from an export document.

        Raises:
            ValidationException: On an unsupported version or a broken graph
        """
        if not isinstance(document, WorkflowExport):
            document = WorkflowExport.model_validate(document)
        if document.export_version != EXPORT_VERSION:
            raise ValidationException(
                f"Unsupported export version: {document.export_version}",
                {"export_version": document.export_version}
            )

        content = document.workflow
        self._check_document(content)

        warnings: List[str] = []
        now = self._clock.now()
        code = content.code
        if await self._repo.get_workflow_by_code(code):
            code = f"{code}_imported_{now.strftime('%Y%m%d_%H%M%S')}"
            warnings.append(f"Workflow code was changed to '{code}' to avoid a duplicate")

        workflow = Workflow(
            code=code,
            name=content.name,
            description=content.description,
            record_type=content.record_type,
            is_active=False,
            is_default=False,
            required_fields=list(content.required_fields),
            convert_to_request_roles=list(content.convert_to_request_roles),
            match_constraints={k: set(v) for k, v in content.match_constraints.items() if v},
            created_at=now,
            updated_at=now,
        )
        await self._repo.add_workflow(workflow)

        state_ids: Dict[str, UUID] = {}
        states: List[State] = []
        for data in content.states:
            state = State(workflow_id=workflow.id, **data.model_dump())
            state_ids[data.code] = state.id
            states.append(state)
            await self._repo.add_state(state)

        transitions: List[Transition] = []
        for data in content.transitions:
            transition = Transition(
                workflow_id=workflow.id,
                code=data.code,
                name=data.name,
                description=data.description,
                from_state_id=state_ids[data.from_state],
                to_state_id=state_ids[data.to_state],
                allowed_roles=frozenset(data.allowed_roles),
                requirements=[requirement_from_dto(r, i) for i, r in enumerate(data.requirements)],
                actions=[action_from_dto(a) for a in data.actions],
                sort_order=data.sort_order,
                is_active=data.is_active,
            )
            transitions.append(transition)
            await self._repo.add_transition(transition)

        await self._uow.commit()
        logger.info(
            "Workflow imported",
            extra={"workflow_id": str(workflow.id), "code": code, "warnings": len(warnings)}
        )
        return ImportResult(
            graph=WorkflowGraph(workflow=workflow, states=states, transitions=transitions),
            warnings=warnings,
        )

    @staticmethod
    def _check_document(content: WorkflowContentExport) -> None:
        if not content.states:
            raise ValidationException("Imported workflow must have at least one state")

        initial = [s.code for s in content.states if s.is_initial]
        if len(initial) != 1:
            raise ValidationException(
                "Imported workflow must have exactly one initial state", {"initial_states": initial}
            )

        by_code = {s.code: s for s in content.states}
        if len(by_code) != len(content.states):
            raise ValidationException("Imported workflow has duplicate state codes")

        for t in content.transitions:
            for ref in (t.from_state, t.to_state):
                if ref not in by_code:
                    raise ValidationException(
                        f"Transition '{t.code}' references unknown state '{ref}'",
                        {"transition": t.code, "state": ref}
                    )
            if by_code[t.from_state].is_terminal:
                raise ValidationException(
                    f"Transition '{t.code}' leaves terminal state '{t.from_state}'",
                    {"transition": t.code}
                )
