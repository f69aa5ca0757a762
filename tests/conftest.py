from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from caseflow.core import FixedClock
from caseflow.infrastructure.database import build_session_maker, create_tables
from caseflow.infrastructure.database.immutability import register_immutability_listeners
from caseflow.infrastructure.database.unit_of_work import uow_factory
from caseflow.shared.application import INotifier
from caseflow.workflow.application import (
    StateCreateDTO,
    TransitionCreateDTO,
    WorkflowCreateDTO,
    WorkflowService,
)
from caseflow.workflow.domain import State, Transition, Workflow


@pytest.fixture
async def engine():
    # One in-memory database per test, shared by every connection of the test.
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(engine)
    register_immutability_listeners()
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
def make_uow(session_maker):
    return uow_factory(session_maker)


@pytest.fixture
async def uow(make_uow):
    async with make_uow() as unit_of_work:
        yield unit_of_work


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))


@dataclass
class SentNotification:
    kind: str
    record_id: str
    recipients: List[str]
    context: Dict[str, Any]


class RecordingNotifier(INotifier):
    """Keeps every notification request in memory."""

    def __init__(self):
        self.sent: List[SentNotification] = []

    def notify(self, kind, record_id, recipients, context=None) -> None:
        self.sent.append(SentNotification(kind, str(record_id), list(recipients), dict(context or {})))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@dataclass
class BuiltWorkflow:
    workflow: Workflow
    states: Dict[str, State] = field(default_factory=dict)
    transitions: Dict[str, Transition] = field(default_factory=dict)


@pytest.fixture
def build_workflow(uow, clock):
    """
    Create a workflow from compact state and transition specs.

    Defaults to the incident flow new -> in_progress -> resolved, where
    ``resolve`` needs a comment and is limited to agents.
    """

    async def _build(
        code: str = "incident_default",
        record_type: str = "incident",
        states: Optional[List[Dict[str, Any]]] = None,
        transitions: Optional[List[Dict[str, Any]]] = None,
        **workflow_fields: Any,
    ) -> BuiltWorkflow:
        service = WorkflowService(uow, clock)
        workflow = await service.create_workflow(WorkflowCreateDTO(
            code=code, name=code.replace("_", " ").title(), record_type=record_type, **workflow_fields
        ))
        built = BuiltWorkflow(workflow=workflow)

        state_specs = states if states is not None else [
            {"code": "new", "name": "New", "is_initial": True, "sla_hours": 4},
            {"code": "in_progress", "name": "In Progress"},
            {"code": "resolved", "name": "Resolved", "is_terminal": True},
        ]
        for spec in state_specs:
            built.states[spec["code"]] = await service.add_state(workflow.id, StateCreateDTO(**spec))

        transition_specs = transitions if transitions is not None else [
            {"code": "start", "name": "Start Work", "from": "new", "to": "in_progress"},
            {
                "code": "resolve",
                "name": "Resolve",
                "from": "in_progress",
                "to": "resolved",
                "allowed_roles": ["agent"],
                "requirements": [{"requirement_type": "comment"}],
            },
        ]
        for spec in transition_specs:
            spec = dict(spec)
            from_code, to_code = spec.pop("from"), spec.pop("to")
            built.transitions[spec["code"]] = await service.add_transition(workflow.id, TransitionCreateDTO(
                from_state_id=built.states[from_code].id,
                to_state_id=built.states[to_code].id,
                **spec,
            ))
        return built

    return _build
