from __future__ import annotations

from uuid import uuid4

import pytest

from caseflow.audit.application import RevisionLog
from caseflow.audit.domain import RevisionQuery
from caseflow.core import (
    ForbiddenException,
    InvalidTopologyException,
    RequirementsNotMetException,
    StaleVersionException,
    TerminalStateException,
    TransitionNotFoundException,
    ValidationException,
)
from caseflow.records.application import RecordService, TransitionEngine
from caseflow.records.application.dto import AttachmentCreateDTO, RecordCreateDTO
from caseflow.records.domain import TransitionPayload


async def _record(uow, clock, built, **fields):
    dto = RecordCreateDTO(title="VPN down", record_type="incident", workflow_id=built.workflow.id, **fields)
    return await RecordService(uow, clock=clock).create_record(dto, "reporter-1")


@pytest.mark.asyncio
async def test_record_walks_the_workflow(uow, clock, build_workflow) -> None:
    built = await build_workflow()
    record = await _record(uow, clock, built)
    engine = TransitionEngine(uow, clock=clock)

    assert record.current_state_id == built.states["new"].id
    assert record.version == 1

    started = await engine.execute_transition(record.id, built.transitions["start"].id, "agent-1", ["agent"])
    assert started.record.current_state_id == built.states["in_progress"].id
    assert started.record.version == 2
    assert started.warnings == []

    clock.advance(hours=2)
    resolved = await engine.execute_transition(
        record.id,
        built.transitions["resolve"].id,
        "agent-1",
        ["agent"],
        TransitionPayload(comment="Rebooted the concentrator", fields={"custom_fields.root_cause": "firmware"}),
        expected_version=2,
    )

    stored = await uow.records.get(record.id)
    assert stored.current_state_id == built.states["resolved"].id
    assert stored.version == 3
    assert stored.resolved_at == clock.now()
    assert stored.closed_at == clock.now()
    assert stored.custom_fields == {"root_cause": "firmware"}

    history = await uow.history.list_for_record(record.id)
    assert [(h.from_state_id, h.to_state_id, h.record_version) for h in history] == [
        (built.states["new"].id, built.states["in_progress"].id, 2),
        (built.states["in_progress"].id, built.states["resolved"].id, 3),
    ]
    assert history[-1].id == resolved.history_id

    comments = await uow.comments.list_comments(record.id)
    assert [(c.body, c.is_internal, c.transition_history_id) for c in comments] == [
        ("Rebooted the concentrator", False, resolved.history_id)
    ]

    page = await RevisionLog(uow, clock).query(RevisionQuery(record_id=record.id))
    assert [r.action_type for r in page.items] == ["transitioned", "transitioned", "created"]
    assert [r.record_version for r in page.items] == [3, 2, 1]
    assert {"field": "custom_fields.root_cause", "old": None, "new": "firmware"} in page.items[0].changes


@pytest.mark.asyncio
async def test_every_violation_is_reported(uow, clock, build_workflow) -> None:
    built = await build_workflow(transitions=[
        {
            "code": "start",
            "name": "Start",
            "from": "new",
            "to": "in_progress",
            "requirements": [
                {"requirement_type": "comment"},
                {"requirement_type": "field", "field_name": "assignee_id", "error_message": "Pick an owner"},
                {"requirement_type": "min_attachments", "min_count": 2},
                {"requirement_type": "feedback", "is_mandatory": False},
            ],
        },
    ])
    record = await _record(uow, clock, built)
    engine = TransitionEngine(uow, clock=clock)

    with pytest.raises(RequirementsNotMetException) as excinfo:
        await engine.execute_transition(record.id, built.transitions["start"].id, "agent-1", [])

    violations = excinfo.value.violations
    assert [v.requirement_type for v in violations] == ["comment", "field", "min_attachments"]
    assert violations[1].message == "Pick an owner"
    unchanged = await uow.records.get(record.id)
    assert unchanged.current_state_id == built.states["new"].id
    assert unchanged.version == 1
    assert await uow.history.list_for_record(record.id) == []


@pytest.mark.asyncio
async def test_role_guard(uow, clock, build_workflow) -> None:
    built = await build_workflow()
    record = await _record(uow, clock, built)
    engine = TransitionEngine(uow, clock=clock)
    await engine.execute_transition(record.id, built.transitions["start"].id, "u-1", [])
    payload = TransitionPayload(comment="done")

    with pytest.raises(ForbiddenException):
        await engine.execute_transition(record.id, built.transitions["resolve"].id, "u-1", ["customer"], payload)

    outcome = await engine.execute_transition(
        record.id, built.transitions["resolve"].id, "admin-1", ["super_admin"], payload
    )
    assert outcome.record.current_state_id == built.states["resolved"].id


@pytest.mark.asyncio
async def test_transition_must_leave_the_current_state(uow, clock, build_workflow) -> None:
    built = await build_workflow()
    record = await _record(uow, clock, built)

    with pytest.raises(InvalidTopologyException):
        await TransitionEngine(uow, clock=clock).execute_transition(
            record.id, built.transitions["resolve"].id, "agent-1", ["agent"], TransitionPayload(comment="x")
        )


@pytest.mark.asyncio
async def test_foreign_or_inactive_transitions_are_not_found(uow, clock, build_workflow) -> None:
    built = await build_workflow()
    other = await build_workflow(code="incident_other")
    record = await _record(uow, clock, built)
    engine = TransitionEngine(uow, clock=clock)

    with pytest.raises(TransitionNotFoundException):
        await engine.execute_transition(record.id, other.transitions["start"].id, "u-1", [])
    with pytest.raises(TransitionNotFoundException):
        await engine.execute_transition(record.id, uuid4(), "u-1", [])


@pytest.mark.asyncio
async def test_terminal_records_do_not_move(uow, clock, build_workflow) -> None:
    built = await build_workflow(transitions=[
        {"code": "close", "name": "Close", "from": "new", "to": "resolved"},
    ])
    record = await _record(uow, clock, built)
    engine = TransitionEngine(uow, clock=clock)
    await engine.execute_transition(record.id, built.transitions["close"].id, "u-1", [])

    with pytest.raises(TerminalStateException):
        await engine.execute_transition(record.id, built.transitions["close"].id, "u-1", [])
    assert await engine.available_transitions(record.id, ["super_admin"]) == []


@pytest.mark.asyncio
async def test_stale_version_is_refused(uow, clock, build_workflow) -> None:
    built = await build_workflow()
    record = await _record(uow, clock, built)
    await RecordService(uow, clock=clock).update_record(record.id, {"priority": 2}, "u-2")

    with pytest.raises(StaleVersionException) as excinfo:
        await TransitionEngine(uow, clock=clock).execute_transition(
            record.id, built.transitions["start"].id, "u-1", [], expected_version=1
        )
    assert excinfo.value.actual == 2


@pytest.mark.asyncio
async def test_concurrent_transitions_exactly_one_wins(uow, make_uow, clock, build_workflow) -> None:
    built = await build_workflow()
    record = await _record(uow, clock, built)
    start = built.transitions["start"].id

    async with make_uow() as slow:
        load = slow.records.get
        raced = []

        # the competing call commits between the slow call's read and its write
        async def load_then_race(record_id):
            loaded = await load(record_id)
            if not raced:
                raced.append(record_id)
                async with make_uow() as fast:
                    await TransitionEngine(fast, clock=clock).execute_transition(record_id, start, "agent-1", ["agent"])
            return loaded

        slow.records.get = load_then_race
        with pytest.raises(StaleVersionException) as excinfo:
            await TransitionEngine(slow, clock=clock).execute_transition(record.id, start, "agent-2", ["agent"])
        await slow.rollback()

    assert (excinfo.value.expected, excinfo.value.actual) == (1, 2)
    async with make_uow() as check:
        stored = await check.records.get(record.id)
        history = await check.history.list_for_record(record.id)
    assert (stored.version, stored.current_state_id) == (2, built.states["in_progress"].id)
    assert [h.performed_by for h in history] == ["agent-1"]


@pytest.mark.asyncio
async def test_wrong_state_is_reported_before_roles(uow, clock, build_workflow) -> None:
    built = await build_workflow(transitions=[
        {"code": "start", "name": "Start Work", "from": "new", "to": "in_progress", "allowed_roles": ["agent"]},
    ])
    record = await _record(uow, clock, built)
    engine = TransitionEngine(uow, clock=clock)

    started = await engine.execute_transition(record.id, built.transitions["start"].id, "agent-1", ["agent"])
    assert started.record.version == 2

    with pytest.raises(InvalidTopologyException):
        await engine.execute_transition(record.id, built.transitions["start"].id, "viewer-1", ["viewer"])
    assert (await uow.records.get(record.id)).version == 2


@pytest.mark.asyncio
async def test_attachments_must_belong_to_the_record(uow, clock, build_workflow) -> None:
    built = await build_workflow(transitions=[
        {
            "code": "start",
            "name": "Start",
            "from": "new",
            "to": "in_progress",
            "requirements": [{"requirement_type": "attachment"}],
        },
    ])
    record = await _record(uow, clock, built)
    other = await _record(uow, clock, built)
    service = RecordService(uow, clock=clock)
    foreign = await service.add_attachment(other.id, AttachmentCreateDTO(file_name="log.txt"), "u-1")
    own = await service.add_attachment(record.id, AttachmentCreateDTO(file_name="trace.pcap"), "u-1")
    engine = TransitionEngine(uow, clock=clock)

    with pytest.raises(ValidationException):
        await engine.execute_transition(
            record.id, built.transitions["start"].id, "u-1", [], TransitionPayload(attachment_ids=[foreign.id])
        )

    outcome = await engine.execute_transition(
        record.id, built.transitions["start"].id, "u-1", [], TransitionPayload(attachment_ids=[own.id])
    )
    history = await uow.history.list_for_record(record.id)
    assert history[0].attachment_ids == [own.id]
    assert outcome.record.version == 3


@pytest.mark.asyncio
async def test_available_transitions_respect_roles(uow, clock, build_workflow) -> None:
    built = await build_workflow()
    record = await _record(uow, clock, built)
    engine = TransitionEngine(uow, clock=clock)
    await engine.execute_transition(record.id, built.transitions["start"].id, "u-1", [])

    assert await engine.available_transitions(record.id, ["customer"]) == []
    assert [t.code for t in await engine.available_transitions(record.id, ["agent"])] == ["resolve"]
