from __future__ import annotations

from datetime import timedelta

import pytest

from caseflow.audit.application import RevisionLog
from caseflow.audit.domain import RevisionQuery
from caseflow.matching.infrastructure import StaticDirectory
from caseflow.records.application import RecordService, TransitionEngine
from caseflow.records.application.dto import RecordCreateDTO
from caseflow.records.infrastructure import SQLAlchemyRecordRepository
from caseflow.sla.application import SLA_MONITOR_ACTOR, SLAMonitor, StaticPolicyProvider
from caseflow.sla.domain import SLAPolicy
from caseflow.sla.infrastructure import SLAScheduler


async def _record(uow, clock, built, **fields):
    dto = RecordCreateDTO(title="Printer jammed", record_type="incident", workflow_id=built.workflow.id, **fields)
    return await RecordService(uow, clock=clock).create_record(dto, "reporter-1")


def _monitor(make_uow, clock, notifier) -> SLAMonitor:
    return SLAMonitor(make_uow, StaticPolicyProvider(), notifier=notifier, clock=clock, batch_size=10)


@pytest.mark.asyncio
async def test_overdue_record_is_flagged_once(uow, make_uow, clock, notifier, build_workflow) -> None:
    built = await build_workflow()
    record = await _record(uow, clock, built, assignee_id="a-1")
    monitor = _monitor(make_uow, clock, notifier)

    # due four hours after creation; exactly at the due time it is not late yet
    clock.advance(hours=4)
    assert (await monitor.scan()).flagged == 0

    clock.advance(minutes=1)
    first = await monitor.scan()
    second = await monitor.scan()

    assert (first.scanned, first.flagged, first.flagged_ids) == (1, 1, [record.id])
    assert (second.scanned, second.flagged) == (0, 0)

    stored = await uow.records.get(record.id)
    assert stored.sla_breached
    assert stored.version == 2

    page = await RevisionLog(uow, clock).query(RevisionQuery(record_id=record.id, action_types=["sla_breached"]))
    assert [(r.performed_by, r.record_version) for r in page.items] == [(SLA_MONITOR_ACTOR, 2)]

    assert [(n.kind, n.recipients) for n in notifier.sent] == [("sla_breached", ["user:a-1"])]
    assert notifier.sent[0].context["title"] == f"SLA breached: {record.number}"


@pytest.mark.asyncio
async def test_flagging_is_a_conditional_update(uow, clock, build_workflow) -> None:
    built = await build_workflow()
    record = await _record(uow, clock, built)
    later = clock.advance(hours=5)

    assert await uow.records.mark_sla_breached(record.id, later) == 2
    assert await uow.records.mark_sla_breached(record.id, later) is None
    await uow.commit()


@pytest.mark.asyncio
async def test_terminal_and_not_yet_due_records_are_skipped(uow, make_uow, clock, notifier, build_workflow) -> None:
    built = await build_workflow(transitions=[{"code": "close", "name": "Close", "from": "new", "to": "resolved"}])
    closed = await _record(uow, clock, built)
    await TransitionEngine(uow, clock=clock).execute_transition(closed.id, built.transitions["close"].id, "u-1", [])
    overdue = await _record(uow, clock, built)
    clock.advance(hours=3)
    fresh = await _record(uow, clock, built)

    clock.advance(hours=2)
    result = await _monitor(make_uow, clock, notifier).scan()

    assert result.flagged_ids == [overdue.id]
    assert not (await uow.records.get(closed.id)).sla_breached
    assert not (await uow.records.get(fresh.id)).sla_breached


@pytest.mark.asyncio
async def test_type_default_applies_when_the_state_sets_no_hours(uow, make_uow, clock, notifier, build_workflow) -> None:
    built = await build_workflow(record_type="query", states=[
        {"code": "open", "name": "Open", "is_initial": True},
        {"code": "answered", "name": "Answered", "is_terminal": True},
    ], transitions=[])
    record = await RecordService(uow, clock=clock).create_record(
        RecordCreateDTO(title="Opening hours?", record_type="query", workflow_id=built.workflow.id), "u-1"
    )
    assert record.sla_due_at == clock.now() + timedelta(hours=48)

    clock.advance(hours=47)
    assert (await _monitor(make_uow, clock, notifier).scan()).scanned == 0
    clock.advance(hours=2)
    assert (await _monitor(make_uow, clock, notifier).scan()).flagged == 1


@pytest.mark.asyncio
async def test_breach_recipients_expand_roles(uow, make_uow, clock, notifier, build_workflow) -> None:
    built = await build_workflow()
    record = await _record(uow, clock, built, assignee_id="a-1")
    directory = StaticDirectory.from_dict({"users": [
        {"id": "s-1", "roles": ["supervisor"]},
        {"id": "s-2", "roles": ["supervisor"]},
        {"id": "a-1", "roles": ["agent"]},
    ]})
    policy = StaticPolicyProvider(SLAPolicy(breach_recipients=["assignee", "role:supervisor", "role:auditor"]))
    monitor = SLAMonitor(make_uow, policy, notifier=notifier, clock=clock, directory=directory)

    clock.advance(hours=5)
    assert (await monitor.scan()).flagged_ids == [record.id]

    # nobody holds "auditor", so the label is passed through
    assert notifier.sent[0].recipients == ["user:a-1", "user:s-1", "user:s-2", "role:auditor"]


@pytest.mark.asyncio
async def test_failing_record_does_not_starve_the_batch(
    uow, make_uow, clock, notifier, build_workflow, monkeypatch
) -> None:
    built = await build_workflow()
    stuck = await _record(uow, clock, built)
    clock.advance(minutes=1)
    later = await _record(uow, clock, built)
    clock.advance(hours=5)

    mark = SQLAlchemyRecordRepository.mark_sla_breached

    async def refuse_stuck(self, record_id, now):
        if record_id == stuck.id:
            raise RuntimeError("row locked")
        return await mark(self, record_id, now)

    monkeypatch.setattr(SQLAlchemyRecordRepository, "mark_sla_breached", refuse_stuck)
    monitor = SLAMonitor(make_uow, StaticPolicyProvider(), notifier=notifier, clock=clock, batch_size=1)

    first = await monitor.scan()
    second = await monitor.scan()
    third = await monitor.scan()

    assert (first.scanned, first.failed) == (1, 1)
    assert second.flagged_ids == [later.id]
    # retried once nothing fresher is waiting
    assert (third.scanned, third.failed) == (1, 1)
    assert not (await uow.records.get(stuck.id)).sla_breached


@pytest.mark.asyncio
async def test_scheduler_start_and_stop() -> None:
    ticks = []

    async def job() -> None:
        ticks.append(1)

    scheduler = SLAScheduler(interval_seconds=3600, run_on_start=False)
    await scheduler.start(job)
    assert scheduler.is_running
    await scheduler.start(job)

    await scheduler.stop()
    assert not scheduler.is_running
    assert ticks == []
