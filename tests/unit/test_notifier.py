from __future__ import annotations

import json

import httpx
import pytest

from caseflow.shared.application import expand_record_recipients
from caseflow.shared.infrastructure.notifier import CircuitBreaker, CircuitState, SlackNotifier


def _notifier(handler, **kwargs) -> SlackNotifier:
    return SlackNotifier(
        webhook_url="https://hooks.slack.test/T000/B000",
        channel="#case-alerts",
        backoff_base=0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_notify_delivers_block_kit_message() -> None:
    captured = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(json.loads(request.content))
        return httpx.Response(200, text="ok")

    notifier = _notifier(handler)
    notifier.notify("sla_breached", "rec-1", ["user:u-1"], {"title": "SLA breached: INC-000001", "due_at": "soon"})
    await notifier.close()

    assert len(captured) == 1
    payload = captured[0]
    assert payload["channel"] == "#case-alerts"
    assert "SLA breached: INC-000001" in payload["blocks"][0]["text"]["text"]
    assert any("user:u-1" in f["text"] for f in payload["blocks"][1]["fields"])


@pytest.mark.asyncio
async def test_delivery_failure_is_retried_then_swallowed() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500)

    notifier = _notifier(handler, max_retries=3)
    notifier.notify("transition", "rec-1", ["assignee"])
    await notifier.close()

    assert len(calls) == 3


@pytest.mark.asyncio
async def test_open_circuit_skips_delivery() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200)

    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=3600)
    breaker.record_failure()
    notifier = _notifier(handler, circuit_breaker=breaker)
    notifier.notify("transition", "rec-1", ["assignee"])
    await notifier.close()

    assert breaker.state == CircuitState.OPEN
    assert calls == []


def test_notify_without_event_loop_does_not_raise() -> None:
    notifier = SlackNotifier(webhook_url="https://hooks.slack.test/x", channel="#c")
    notifier.notify("transition", "rec-1", ["assignee"])


def test_circuit_breaker_closes_after_success() -> None:
    breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=0)
    breaker.record_failure()
    breaker.record_failure()
    assert breaker.state == CircuitState.HALF_OPEN
    breaker.record_success()
    assert breaker.state == CircuitState.CLOSED


def test_record_recipients_are_expanded_and_deduplicated() -> None:
    specs = ["assignee", "reporter", "user:u-2", "role:supervisor", "assignee"]

    assert expand_record_recipients(specs, "u-2", "u-9") == ["user:u-2", "user:u-9", "role:supervisor"]
    assert expand_record_recipients(["assignee"], None, "u-9") == []
