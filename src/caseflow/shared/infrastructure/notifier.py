"""
Slack Notifier
==============

Slack webhook delivery for record notifications with:
- Circuit breaker to prevent cascade failures
- Exponential backoff retry
- Background dispatch so callers never block on delivery
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

import httpx

from caseflow.shared.application.notifier import INotifier
from caseflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        """Get current circuit state."""
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


@dataclass
class SlackMessage:
    """Slack notification message."""
    kind: str
    record_id: str
    recipients: List[str]
    title: str
    text: str
    fields: Dict[str, Any] = field(default_factory=dict)


class SlackNotifier(INotifier):
    """
    Slack webhook notifier.

    ``notify`` schedules delivery on the running event loop and returns at
    once; ``deliver`` is the awaitable delivery path used by that task.
    """

    def __init__(
        self,
        webhook_url: Optional[str],
        channel: str,
        timeout_seconds: float = 5.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        http_client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        self._webhook_url = webhook_url
        self._channel = channel
        self._timeout = timeout_seconds
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._http_client = http_client
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=60
        )
        self._pending: Set[asyncio.Task] = set()

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    def notify(self, kind, record_id, recipients, context=None) -> None:
        context = context or {}
        message = SlackMessage(
            kind=kind,
            record_id=str(record_id),
            recipients=list(recipients),
            title=context.get("title") or kind.replace("_", " ").title(),
            text=context.get("message", ""),
            fields={k: v for k, v in context.items() if k not in ("title", "message")},
        )
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, notification dropped", extra={"record_id": message.record_id})
            return

        task = loop.create_task(self.deliver(message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _build_payload(self, data: SlackMessage) -> Dict[str, Any]:
        """Build Slack Block Kit message."""
        emoji = "🚨" if data.kind == "sla_breached" else "🔔"
        context_fields = [
            {"type": "mrkdwn", "text": f"*Record:*\n{data.record_id}"},
            {"type": "mrkdwn", "text": f"*Recipients:*\n{', '.join(data.recipients) or '-'}"},
        ]
        for key, value in sorted(data.fields.items()):
            context_fields.append({"type": "mrkdwn", "text": f"*{key.replace('_', ' ').title()}:*\n{value}"})

        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": f"{emoji} {data.title}", "emoji": True}
            },
            {"type": "section", "fields": context_fields[:10]},
        ]
        if data.text:
            blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": data.text}})

        return {"channel": self._channel, "blocks": blocks}

    async def deliver(self, data: SlackMessage) -> bool:
        """
        Send a message to the Slack webhook.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self._webhook_url:
            logger.debug("Slack webhook URL not configured, skipping notification")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping Slack notification",
                extra={"record_id": data.record_id}
            )
            return False

        payload = self._build_payload(data)

        for attempt in range(self._max_retries):
            try:
                response = await self._get_client().post(self._webhook_url, json=payload)
                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Slack notification sent",
                        extra={"record_id": data.record_id, "kind": data.kind}
                    )
                    return True
                logger.warning(
                    "Slack webhook returned non-200",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
            except httpx.HTTPError as e:
                logger.error(
                    "Slack notification failed",
                    extra={"error": str(e), "attempt": attempt + 1, "record_id": data.record_id}
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._backoff_base * 2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def drain(self) -> None:
        """Wait for in-flight deliveries."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
