from __future__ import annotations

import pytest

from caseflow.core import (
    HasDependentRecordsException,
    InvalidTopologyException,
    ResourceNotFoundException,
    ValidationException,
)
from caseflow.records.application import RecordService
from caseflow.records.application.dto import RecordCreateDTO
from caseflow.workflow.application import (
    StateCreateDTO,
    StateUpdateDTO,
    TransitionCreateDTO,
    TransitionUpdateDTO,
    WorkflowCreateDTO,
    WorkflowService,
    WorkflowUpdateDTO,
)


@pytest.mark.asyncio
async def test_graph_round_trip(uow, clock, build_workflow) -> None:
    built = await build_workflow()
    service = WorkflowService(uow, clock)

    graph = await service.get_graph(built.workflow.id)

    assert {s.code for s in graph.states} == {"new", "in_progress", "resolved"}
    assert graph.initial_state.code == "new"
    resolve = next(t for t in graph.transitions if t.code == "resolve")
    assert resolve.allowed_roles == frozenset({"agent"})
    assert [r.requirement_type for r in resolve.requirements] == ["comment"]
    assert (await service.validate_workflow(built.workflow.id)).is_valid


@pytest.mark.asyncio
async def test_duplicate_codes_are_rejected(uow, clock, build_workflow) -> None:
    built = await build_workflow()
    service = WorkflowService(uow, clock)

    with pytest.raises(ValidationException):
        await service.create_workflow(WorkflowCreateDTO(code="incident_default", name="x", record_type="incident"))
    with pytest.raises(ValidationException):
        await service.add_state(built.workflow.id, StateCreateDTO(code="new", name="Again"))


@pytest.mark.asyncio
async def test_new_initial_state_demotes_the_old_one(uow, clock, build_workflow) -> None:
    built = await build_workflow()
    service = WorkflowService(uow, clock)

    triage = await service.add_state(built.workflow.id, StateCreateDTO(code="triage", name="Triage", is_initial=True))

    assert (await service.initial_state_of(built.workflow.id)).id == triage.id
    graph = await service.get_graph(built.workflow.id)
    assert [s.code for s in graph.states if s.is_initial] == ["triage"]


@pytest.mark.asyncio
async def test_terminal_states_have_no_outgoing_transitions(uow, clock, build_workflow) -> None:
    built = await build_workflow()
    service = WorkflowService(uow, clock)

    with pytest.raises(InvalidTopologyException):
        await service.add_transition(built.workflow.id, TransitionCreateDTO(
            code="reopen",
            name="Reopen",
            from_state_id=built.states["resolved"].id,
            to_state_id=built.states["in_progress"].id,
        ))
    with pytest.raises(InvalidTopologyException):
        await service.update_state(built.states["new"].id, StateUpdateDTO(is_terminal=True))


@pytest.mark.asyncio
async def test_transition_endpoints_must_share_the_workflow(uow, clock, build_workflow) -> None:
    first = await build_workflow()
    second = await build_workflow(code="incident_other")
    service = WorkflowService(uow, clock)

    with pytest.raises(InvalidTopologyException):
        await service.add_transition(first.workflow.id, TransitionCreateDTO(
            code="jump",
            name="Jump",
            from_state_id=first.states["new"].id,
            to_state_id=second.states["in_progress"].id,
        ))


@pytest.mark.asyncio
async def test_update_transition_replaces_guards(uow, clock, build_workflow) -> None:
    built = await build_workflow()
    service = WorkflowService(uow, clock)

    updated = await service.update_transition(built.transitions["resolve"].id, TransitionUpdateDTO(
        allowed_roles=["agent", "supervisor"],
        requirements=[{"requirement_type": "field", "field_name": "resolution_code"}],
    ))

    stored = await uow.workflows.get_transition(updated.id)
    assert stored.allowed_roles == frozenset({"agent", "supervisor"})
    assert [(r.requirement_type, r.field_name) for r in stored.requirements] == [("field", "resolution_code")]


@pytest.mark.asyncio
async def test_remove_state_drops_touching_transitions(uow, clock, build_workflow) -> None:
    built = await build_workflow()
    service = WorkflowService(uow, clock)

    await service.remove_state(built.states["in_progress"].id)

    assert await service.transitions_of(built.workflow.id) == []
    with pytest.raises(ResourceNotFoundException):
        await service.transitions_from(built.states["in_progress"].id)


@pytest.mark.asyncio
async def test_duplicate_copies_topology_with_fresh_ids(uow, clock, build_workflow) -> None:
    built = await build_workflow(is_default=True)
    service = WorkflowService(uow, clock)

    copy = await service.duplicate_workflow(built.workflow.id, code="incident_copy", name="Copy")

    assert not copy.workflow.is_default
    assert {s.id for s in copy.states}.isdisjoint({s.id for s in built.states.values()})
    codes = {s.id: s.code for s in copy.states}
    assert sorted((t.code, codes[t.from_state_id], codes[t.to_state_id]) for t in copy.transitions) == [
        ("resolve", "in_progress", "resolved"),
        ("start", "new", "in_progress"),
    ]
    resolve = next(t for t in copy.transitions if t.code == "resolve")
    assert resolve.allowed_roles == frozenset({"agent"})
    assert resolve.requirements[0].id != built.transitions["resolve"].requirements[0].id


@pytest.mark.asyncio
async def test_soft_delete_and_restore(uow, clock, build_workflow) -> None:
    built = await build_workflow()
    service = WorkflowService(uow, clock)

    await service.delete_workflow(built.workflow.id)

    assert [w.id for w in await service.list_deleted()] == [built.workflow.id]
    assert await service.list_workflows() == []
    with pytest.raises(ResourceNotFoundException):
        await service.get_workflow(built.workflow.id)

    restored = await service.restore_workflow(built.workflow.id)
    assert restored.deleted_at is None
    assert [w.id for w in await service.list_workflows()] == [built.workflow.id]


@pytest.mark.asyncio
async def test_purge_is_blocked_by_records(uow, clock, build_workflow) -> None:
    built = await build_workflow()
    service = WorkflowService(uow, clock)
    await RecordService(uow, clock=clock).create_record(
        RecordCreateDTO(title="Broken laptop", record_type="incident", workflow_id=built.workflow.id), "u-1"
    )

    with pytest.raises(HasDependentRecordsException) as excinfo:
        await service.delete_workflow(built.workflow.id, permanent=True)
    assert excinfo.value.count == 1

    with pytest.raises(HasDependentRecordsException):
        await service.remove_state(built.states["new"].id)


@pytest.mark.asyncio
async def test_purge_removes_the_graph(uow, clock, build_workflow) -> None:
    built = await build_workflow()
    service = WorkflowService(uow, clock)

    await service.delete_workflow(built.workflow.id, permanent=True)

    assert await uow.workflows.get_workflow(built.workflow.id, include_deleted=True) is None
    assert await uow.workflows.get_state(built.states["new"].id) is None
    assert await uow.workflows.get_transition(built.transitions["start"].id) is None


@pytest.mark.asyncio
async def test_one_default_per_record_type(uow, clock, build_workflow) -> None:
    first = await build_workflow(is_default=True)
    second = await build_workflow(code="incident_alt")
    service = WorkflowService(uow, clock)

    await service.set_default(second.workflow.id)

    defaults = [w.code for w in await service.list_workflows(record_type="incident") if w.is_default]
    assert defaults == ["incident_alt"]
    assert not (await service.get_workflow(first.workflow.id)).is_default


@pytest.mark.asyncio
async def test_update_workflow_merges_match_constraints(uow, clock, build_workflow) -> None:
    built = await build_workflow(classification_ids=["network"], channels=["web"])
    service = WorkflowService(uow, clock)

    updated = await service.update_workflow(built.workflow.id, WorkflowUpdateDTO(location_ids=["hq"], name="Renamed"))

    assert updated.name == "Renamed"
    assert updated.match_constraints == {"classification": {"network"}, "location": {"hq"}, "channel": {"web"}}


@pytest.mark.asyncio
async def test_validate_reports_unreachable_states(uow, clock, build_workflow) -> None:
    built = await build_workflow(transitions=[])
    service = WorkflowService(uow, clock)

    report = await service.validate_workflow(built.workflow.id)

    assert report.is_valid
    assert "State 'resolved' is unreachable from the initial state" in report.warnings


@pytest.mark.asyncio
async def test_workflow_without_initial_state(uow, clock, build_workflow) -> None:
    built = await build_workflow(states=[{"code": "open", "name": "Open"}], transitions=[])
    service = WorkflowService(uow, clock)

    with pytest.raises(InvalidTopologyException):
        await service.initial_state_of(built.workflow.id)
    assert not (await service.validate_workflow(built.workflow.id)).is_valid
