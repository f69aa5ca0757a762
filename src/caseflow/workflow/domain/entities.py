"""
Workflow Domain Entities
========================

Pure Python entities describing a workflow definition: the state graph,
transition guards (roles, requirements) and transition effects (actions).

Records reference these objects by identifier only, so editing a definition
never rewrites history already recorded against it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Set
from uuid import UUID, uuid4

from caseflow.core import InvalidTopologyException, ValidationException


class WorkflowLifecycle:
    """
    Workflow deletion lifecycle: active -> soft_deleted -> purged.

    A purged workflow no longer exists in the store; the value is only used
    to express the final step.
    """
    ACTIVE = "active"
    SOFT_DELETED = "soft_deleted"
    PURGED = "purged"

    _ALLOWED = {
        ACTIVE: {SOFT_DELETED, PURGED},
        SOFT_DELETED: {ACTIVE, PURGED},
        PURGED: set(),
    }

    @classmethod
    def ensure_transition(cls, current: str, target: str) -> None:
        if target not in cls._ALLOWED.get(current, set()):
            raise ValidationException(
                f"Workflow cannot move from '{current}' to '{target}'",
                {"lifecycle": current, "requested": target}
            )


@dataclass
class Workflow:
    """Named state machine definition for one record type."""

    code: str
    name: str
    record_type: str
    id: UUID = field(default_factory=uuid4)
    description: str = ""
    is_active: bool = True
    is_default: bool = False
    lifecycle: str = WorkflowLifecycle.ACTIVE
    required_fields: List[str] = field(default_factory=list)
    convert_to_request_roles: List[str] = field(default_factory=list)
    # dimension -> accepted values; a missing or empty dimension is a wildcard
    match_constraints: Dict[str, Set[str]] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.lifecycle == WorkflowLifecycle.SOFT_DELETED

    @property
    def classification_ids(self) -> Set[str]:
        return set(self.match_constraints.get("classification", set()))


@dataclass
class State:
    """A node in the workflow graph."""

    workflow_id: UUID
    code: str
    name: str
    id: UUID = field(default_factory=uuid4)
    description: str = ""
    is_initial: bool = False
    is_terminal: bool = False
    sla_hours: Optional[float] = None
    color: str = "#6B7280"
    sort_order: int = 0
    is_active: bool = True


@dataclass
class Requirement:
    """Typed guard evaluated against the transition payload."""

    requirement_type: str
    id: UUID = field(default_factory=uuid4)
    field_name: Optional[str] = None
    min_count: Optional[int] = None
    is_mandatory: bool = True
    error_message: Optional[str] = None
    position: int = 0


@dataclass
class Action:
    """Typed effect applied after the state change commits."""

    action_type: str
    id: UUID = field(default_factory=uuid4)
    name: str = ""
    config: dict = field(default_factory=dict)
    execution_order: int = 0
    is_active: bool = True


@dataclass
class Transition:
    """Directed edge between two states of the same workflow."""

    workflow_id: UUID
    code: str
    name: str
    from_state_id: UUID
    to_state_id: UUID
    id: UUID = field(default_factory=uuid4)
    description: str = ""
    # empty set means any caller may execute it
    allowed_roles: FrozenSet[str] = field(default_factory=frozenset)
    requirements: List[Requirement] = field(default_factory=list)
    actions: List[Action] = field(default_factory=list)
    sort_order: int = 0
    is_active: bool = True

    def permits(self, role_set) -> bool:
        """True when the role guard is open or intersects ``role_set``."""
        return not self.allowed_roles or bool(self.allowed_roles & frozenset(role_set))

    @property
    def ordered_actions(self) -> List[Action]:
        return sorted(self.actions, key=lambda a: a.execution_order)


@dataclass
class GraphReport:
    """Outcome of a structural check over a workflow graph."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class WorkflowGraph:
    """A workflow together with its states and transitions."""

    workflow: Workflow
    states: List[State] = field(default_factory=list)
    transitions: List[Transition] = field(default_factory=list)

    def state(self, state_id: UUID) -> Optional[State]:
        return next((s for s in self.states if s.id == state_id), None)

    def state_by_code(self, code: str) -> Optional[State]:
        return next((s for s in self.states if s.code == code), None)

    @property
    def initial_state(self) -> State:
        """
        The workflow's single initial state.

        Raises:
            InvalidTopologyException: If the workflow has no states or no initial state
        """
        if not self.states:
            raise InvalidTopologyException(
                f"Workflow '{self.workflow.code}' has no states",
                {"workflow_id": str(self.workflow.id)}
            )
        initial = [s for s in self.states if s.is_initial]
        if not initial:
            raise InvalidTopologyException(
                f"Workflow '{self.workflow.code}' has no initial state",
                {"workflow_id": str(self.workflow.id)}
            )
        return initial[0]

    def transitions_from(self, state_id: UUID) -> List[Transition]:
        return sorted(
            (t for t in self.transitions if t.from_state_id == state_id),
            key=lambda t: t.sort_order
        )

    def validate(self) -> GraphReport:
        """Structural errors block use of the workflow; warnings do not."""
        report = GraphReport()
        if not self.states:
            report.errors.append("Workflow has no states")
            return report

        initial = [s for s in self.states if s.is_initial]
        if not initial:
            report.errors.append("Workflow has no initial state")
        elif len(initial) > 1:
            report.errors.append(
                f"Workflow has {len(initial)} initial states: "
                + ", ".join(s.code for s in initial)
            )

        by_id = {s.id: s for s in self.states}
        for t in self.transitions:
            source = by_id.get(t.from_state_id)
            if source is None or t.to_state_id not in by_id:
                report.errors.append(f"Transition '{t.code}' references a state outside the workflow")
            elif source.is_terminal:
                report.errors.append(f"Transition '{t.code}' leaves terminal state '{source.code}'")

        if not any(s.is_terminal for s in self.states):
            report.warnings.append("Workflow has no terminal state")

        reachable = self._reachable_from([s.id for s in initial])
        for s in self.states:
            if s.id not in reachable:
                report.warnings.append(f"State '{s.code}' is unreachable from the initial state")

        return report

    def _reachable_from(self, roots: List[UUID]) -> Set[UUID]:
        seen: Set[UUID] = set(roots)
        frontier = list(roots)
        while frontier:
            current = frontier.pop()
            for t in self.transitions:
                if t.from_state_id == current and t.to_state_id not in seen:
                    seen.add(t.to_state_id)
                    frontier.append(t.to_state_id)
        return seen
