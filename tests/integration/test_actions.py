from __future__ import annotations

import json
from datetime import timedelta

import httpx
import pytest

from caseflow.audit.application import RevisionLog
from caseflow.audit.domain import RevisionQuery
from caseflow.matching.infrastructure import StaticDirectory
from caseflow.records.application import ActionExecutor, RecordService, TransitionEngine
from caseflow.records.application.dto import RecordCreateDTO
from caseflow.records.infrastructure import HttpxWebhookClient

DIRECTORY = StaticDirectory.from_dict({
    "departments": [
        {"id": "it-support", "name": "IT Support", "classifications": ["network"]},
        {"id": "facilities", "name": "Facilities", "classifications": ["building"]},
    ],
    "users": [
        {"id": "a-1", "roles": ["agent"], "departments": ["it-support"], "classifications": ["network"]},
        {"id": "a-2", "roles": ["agent"]},
        {"id": "s-1", "roles": ["supervisor"]},
    ],
})


def _start_with(*actions, to_state_hours=None):
    states = [
        {"code": "new", "name": "New", "is_initial": True, "sla_hours": 4},
        {"code": "in_progress", "name": "In Progress", "sla_hours": to_state_hours},
        {"code": "resolved", "name": "Resolved", "is_terminal": True},
    ]
    transitions = [{
        "code": "start",
        "name": "Start Work",
        "from": "new",
        "to": "in_progress",
        "actions": [dict(a, execution_order=i) for i, a in enumerate(actions)],
    }]
    return {"states": states, "transitions": transitions}


async def _run(uow, clock, built, executor, **record_fields):
    record = await RecordService(uow, clock=clock).create_record(
        RecordCreateDTO(title="Switch offline", record_type="incident", workflow_id=built.workflow.id, **record_fields),
        "reporter-1",
    )
    engine = TransitionEngine(uow, executor=executor, clock=clock)
    return await engine.execute_transition(record.id, built.transitions["start"].id, "agent-9", ["agent"])


async def _revision_types(uow, clock, record_id):
    page = await RevisionLog(uow, clock).query(RevisionQuery(record_id=record_id))
    return [r.action_type for r in reversed(page.items)]


@pytest.mark.asyncio
async def test_set_field_renders_templates(uow, clock, build_workflow) -> None:
    built = await build_workflow(**_start_with({
        "action_type": "set_field",
        "config": {"field": "custom_fields.last_step", "value": "{{record_number}} -> {{to_state}} by {{performed_by}}"},
    }))

    outcome = await _run(uow, clock, built, ActionExecutor(clock=clock))

    stored = await uow.records.get(outcome.record.id)
    assert stored.custom_fields == {"last_step": "INC-000001 -> In Progress by agent-9"}
    assert stored.version == 3
    assert await _revision_types(uow, clock, stored.id) == ["created", "transitioned", "updated"]


@pytest.mark.asyncio
async def test_notify_resolves_roles_and_record_parties(uow, clock, build_workflow, notifier) -> None:
    built = await build_workflow(**_start_with({
        "action_type": "notify",
        "config": {"recipients": ["reporter", "assignee", "role:supervisor"], "subject": "{{record_number}} picked up"},
    }))

    outcome = await _run(uow, clock, built, ActionExecutor(directory=DIRECTORY, notifier=notifier, clock=clock))

    assert outcome.warnings == []
    assert len(notifier.sent) == 1
    sent = notifier.sent[0]
    assert sent.kind == "transition"
    assert sent.record_id == str(outcome.record.id)
    assert sent.recipients == ["user:reporter-1", "user:s-1"]
    assert sent.context["title"] == "INC-000001 picked up"
    assert sent.context["message"] == "INC-000001 moved from New to In Progress"
    assert (sent.context["record_number"], sent.context["to_state"]) == ("INC-000001", "In Progress")


@pytest.mark.asyncio
async def test_failed_webhook_is_a_warning_and_later_actions_still_run(uow, clock, build_workflow) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500)

    webhook = HttpxWebhookClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    built = await build_workflow(**_start_with(
        {"action_type": "webhook", "name": "Tell ERP", "config": {"url": "https://erp.test/cases/{{record_number}}"}},
        {"action_type": "set_field", "config": {"field": "custom_fields.synced", "value": "no"}},
    ))

    outcome = await _run(uow, clock, built, ActionExecutor(webhook_client=webhook, clock=clock))
    await webhook.close()

    assert str(calls[0].url) == "https://erp.test/cases/INC-000001"
    assert [w.action_type for w in outcome.warnings] == ["webhook"]
    assert outcome.warnings[0].message.startswith("Action 'Tell ERP' failed")

    stored = await uow.records.get(outcome.record.id)
    assert stored.current_state_id == built.states["in_progress"].id
    assert stored.custom_fields == {"synced": "no"}
    # the warning shares the version of the state change it follows
    assert sorted(await _revision_types(uow, clock, stored.id)) == ["action_warning", "created", "transitioned", "updated"]


@pytest.mark.asyncio
async def test_webhook_sends_rendered_body(uow, clock, build_workflow) -> None:
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(204)

    webhook = HttpxWebhookClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    built = await build_workflow(**_start_with({
        "action_type": "webhook",
        "config": {
            "url": "https://erp.test/cases",
            "method": "put",
            "body": '{"number": "{{record_number}}", "state": "{{to_state}}"}',
        },
    }))

    outcome = await _run(uow, clock, built, ActionExecutor(webhook_client=webhook, clock=clock))
    await webhook.close()

    assert outcome.warnings == []
    assert bodies == [{"number": "INC-000001", "state": "In Progress"}]


@pytest.mark.asyncio
async def test_webhook_without_client_is_a_warning(uow, clock, build_workflow) -> None:
    built = await build_workflow(**_start_with({"action_type": "webhook", "config": {"url": "https://erp.test"}}))

    outcome = await _run(uow, clock, built, ActionExecutor(clock=clock))

    assert [w.action_type for w in outcome.warnings] == ["webhook"]


@pytest.mark.asyncio
async def test_assign_by_role_picks_the_most_specific_holder(uow, clock, build_workflow) -> None:
    built = await build_workflow(**_start_with({
        "action_type": "assign",
        "config": {"role": "agent", "auto_detect_department": True},
    }))

    outcome = await _run(uow, clock, built, ActionExecutor(directory=DIRECTORY, clock=clock), classification_id="network")

    stored = await uow.records.get(outcome.record.id)
    assert stored.department_id == "it-support"
    assert stored.assignee_id == "a-1"
    assert await _revision_types(uow, clock, stored.id) == ["created", "transitioned", "assigned"]


@pytest.mark.asyncio
async def test_assign_to_unknown_role_is_a_warning(uow, clock, build_workflow) -> None:
    built = await build_workflow(**_start_with({"action_type": "assign", "config": {"role": "auditor"}}))

    outcome = await _run(uow, clock, built, ActionExecutor(directory=DIRECTORY, clock=clock))

    assert [w.action_type for w in outcome.warnings] == ["assign"]
    assert (await uow.records.get(outcome.record.id)).assignee_id is None


@pytest.mark.asyncio
async def test_recompute_sla_uses_the_new_state(uow, clock, build_workflow) -> None:
    built = await build_workflow(**_start_with({"action_type": "recompute_sla"}, to_state_hours=8))

    outcome = await _run(uow, clock, built, ActionExecutor(clock=clock), priority=1)

    stored = await uow.records.get(outcome.record.id)
    # 8 hours at the priority 1 multiplier of 0.25
    assert stored.sla_due_at == clock.now() + timedelta(hours=2)
    assert not stored.sla_breached
    assert await _revision_types(uow, clock, stored.id) == ["created", "transitioned", "sla_recomputed"]


@pytest.mark.asyncio
async def test_change_record_type(uow, clock, build_workflow) -> None:
    built = await build_workflow(**_start_with({
        "action_type": "change_record_type",
        "config": {"record_type": "complaint"},
    }))

    outcome = await _run(uow, clock, built, ActionExecutor(clock=clock))

    stored = await uow.records.get(outcome.record.id)
    assert stored.record_type == "complaint"
    assert stored.number == "INC-000001"
    assert await _revision_types(uow, clock, stored.id) == ["created", "transitioned", "record_type_changed"]
