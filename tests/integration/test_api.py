from __future__ import annotations

from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from caseflow.infrastructure.database.unit_of_work import get_unit_of_work
from caseflow.main import app

AGENT = {"X-Actor-ID": "agent-1", "X-Actor-Roles": "agent"}
ADMIN = {"X-Actor-ID": "admin-1", "X-Actor-Roles": "agent, super_admin"}


@pytest.fixture
async def client(make_uow, clock):
    async def _unit_of_work():
        async with make_uow() as uow:
            yield uow

    # the lifespan does not run under ASGITransport
    app.dependency_overrides[get_unit_of_work] = _unit_of_work
    app.state.clock = clock
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def _workflow(client: AsyncClient) -> dict:
    response = await client.post(
        "/workflows",
        json={"code": "incident_default", "name": "Incidents", "record_type": "incident", "is_default": True},
        headers=AGENT,
    )
    assert response.status_code == 201, response.text
    workflow = response.json()

    states = {}
    for body in (
        {"code": "new", "name": "New", "is_initial": True, "sla_hours": 4},
        {"code": "in_progress", "name": "In Progress"},
        {"code": "resolved", "name": "Resolved", "is_terminal": True},
    ):
        response = await client.post(f"/workflows/{workflow['id']}/states", json=body, headers=AGENT)
        assert response.status_code == 201, response.text
        states[body["code"]] = response.json()

    transitions = {}
    for body in (
        {"code": "start", "name": "Start", "from_state_id": states["new"]["id"],
         "to_state_id": states["in_progress"]["id"]},
        {"code": "resolve", "name": "Resolve", "from_state_id": states["in_progress"]["id"],
         "to_state_id": states["resolved"]["id"], "allowed_roles": ["agent"],
         "requirements": [{"requirement_type": "comment"}, {"requirement_type": "field", "field_name": "location_id"}]},
    ):
        response = await client.post(f"/workflows/{workflow['id']}/transitions", json=body, headers=AGENT)
        assert response.status_code == 201, response.text
        transitions[body["code"]] = response.json()

    return {"workflow": workflow, "states": states, "transitions": transitions}


async def _record(client: AsyncClient) -> dict:
    response = await client.post("/records", json={"title": "Mail bounces", "record_type": "incident"}, headers=AGENT)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_record_lifecycle_over_http(client: AsyncClient) -> None:
    flow = await _workflow(client)
    record = await _record(client)

    assert record["number"] == "INC-000001"
    assert record["current_state_id"] == flow["states"]["new"]["id"]

    available = await client.get(f"/records/{record['id']}/transitions", headers=AGENT)
    assert [t["code"] for t in available.json()] == ["start"]

    response = await client.post(
        f"/records/{record['id']}/transitions",
        json={"transition_id": flow["transitions"]["start"]["id"], "expected_version": 1},
        headers=AGENT,
    )
    assert response.status_code == 200, response.text
    assert response.json()["record"]["version"] == 2
    assert response.json()["warnings"] == []

    response = await client.post(
        f"/records/{record['id']}/transitions",
        json={
            "transition_id": flow["transitions"]["resolve"]["id"],
            "comment": "Fixed the MX record",
            "fields": {"location_id": "hq"},
        },
        headers=AGENT,
    )
    assert response.status_code == 200, response.text
    assert response.json()["record"]["current_state_id"] == flow["states"]["resolved"]["id"]

    history = await client.get(f"/records/{record['id']}/history")
    assert [h["record_version"] for h in history.json()] == [2, 3]

    revisions = await client.get(f"/records/{record['id']}/revisions", params={"page_size": 2})
    body = revisions.json()
    assert (body["total"], body["pages"]) == (3, 2)
    assert [r["action_type"] for r in body["items"]] == ["transitioned", "transitioned"]


@pytest.mark.asyncio
async def test_unmet_requirements_are_listed(client: AsyncClient) -> None:
    flow = await _workflow(client)
    record = await _record(client)
    await client.post(
        f"/records/{record['id']}/transitions",
        json={"transition_id": flow["transitions"]["start"]["id"]},
        headers=AGENT,
    )

    response = await client.post(
        f"/records/{record['id']}/transitions",
        json={"transition_id": flow["transitions"]["resolve"]["id"]},
        headers=AGENT,
    )

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "RequirementsNotMetException"
    assert [v["requirement_type"] for v in body["details"]["violations"]] == ["comment", "field"]


@pytest.mark.asyncio
async def test_error_statuses(client: AsyncClient) -> None:
    flow = await _workflow(client)
    record = await _record(client)
    url = f"/records/{record['id']}/transitions"
    start = flow["transitions"]["start"]["id"]

    stale = await client.post(url, json={"transition_id": start, "expected_version": 7}, headers=AGENT)
    assert stale.status_code == 409
    assert stale.json()["details"]["actual_version"] == 1

    wrong_edge = await client.post(url, json={"transition_id": flow["transitions"]["resolve"]["id"]}, headers=AGENT)
    assert wrong_edge.status_code == 409

    missing = await client.get("/records/00000000-0000-0000-0000-000000000000")
    assert missing.status_code == 404

    no_actor = await client.post(url, json={"transition_id": start})
    assert no_actor.status_code == 403

    # state is not a writable field
    guarded = await client.patch(
        f"/records/{record['id']}", json={"current_state_id": flow["states"]["resolved"]["id"]}, headers=AGENT
    )
    assert guarded.status_code == 422


@pytest.mark.asyncio
async def test_role_guard_over_http(client: AsyncClient) -> None:
    flow = await _workflow(client)
    record = await _record(client)
    url = f"/records/{record['id']}/transitions"
    await client.post(url, json={"transition_id": flow["transitions"]["start"]["id"]}, headers=AGENT)
    payload = {"transition_id": flow["transitions"]["resolve"]["id"], "comment": "done", "fields": {"location_id": "hq"}}

    customer = await client.post(url, json=payload, headers={"X-Actor-ID": "c-1", "X-Actor-Roles": "customer"})
    assert customer.status_code == 403

    admin = await client.post(url, json=payload, headers={"X-Actor-ID": "admin-1", "X-Actor-Roles": "super_admin"})
    assert admin.status_code == 200


@pytest.mark.asyncio
async def test_workflow_graph_and_export(client: AsyncClient) -> None:
    flow = await _workflow(client)
    workflow_id = flow["workflow"]["id"]

    graph = await client.get(f"/workflows/{workflow_id}/graph")
    assert {s["code"] for s in graph.json()["states"]} == {"new", "in_progress", "resolved"}

    report = await client.get(f"/workflows/{workflow_id}/validate")
    assert report.json()["is_valid"]

    exported = await client.get(f"/workflows/{workflow_id}/export")
    imported = await client.post("/workflows/import", json=exported.json(), headers=AGENT)
    assert imported.status_code == 201, imported.text
    assert imported.json()["workflow"]["workflow"]["is_active"] is False
    assert len(imported.json()["warnings"]) == 1

    matched = await client.post("/workflows/match", json={"record_type": "incident"})
    assert matched.json()["used_default"] is True
    assert matched.json()["matched_id"] == workflow_id


@pytest.mark.asyncio
async def test_workflow_with_records_cannot_be_purged(client: AsyncClient) -> None:
    flow = await _workflow(client)
    await _record(client)

    response = await client.delete(f"/workflows/{flow['workflow']['id']}", params={"permanent": True}, headers=AGENT)

    assert response.status_code == 409
    assert response.json()["details"]["record_count"] == 1


@pytest.mark.asyncio
async def test_purge_needs_super_admin(client: AsyncClient, clock) -> None:
    cutoff = (clock.now() - timedelta(days=400)).isoformat()

    forbidden = await client.post("/revisions/purge", json={"cutoff": cutoff}, headers=AGENT)
    assert forbidden.status_code == 403

    allowed = await client.post("/revisions/purge", json={"cutoff": cutoff}, headers=ADMIN)
    assert allowed.status_code == 200
    assert allowed.json() == {"removed": 0}

    too_recent = await client.post(
        "/revisions/purge", json={"cutoff": clock.now().isoformat()}, headers=ADMIN
    )
    assert too_recent.status_code == 422


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    assert "X-Correlation-ID" in response.headers
