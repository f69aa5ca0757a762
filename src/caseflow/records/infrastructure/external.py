"""
Records External Service Adapters
=================================

httpx adapter for webhook actions.
"""

from typing import Dict, Optional

import httpx

from caseflow.core import ExternalServiceException
from caseflow.records.application.actions import IWebhookClient
from caseflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class HttpxWebhookClient(IWebhookClient):
    """
    Sends webhook action requests with a shared ``httpx.AsyncClient``.

    Transport errors surface as ExternalServiceException so the engine can
    record them as action warnings.
    """

    def __init__(self, timeout_seconds: float = 10.0, http_client: Optional[httpx.AsyncClient] = None):
        self._timeout = timeout_seconds
        self._http_client = http_client

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[str] = None
    ) -> int:
        headers = dict(headers or {})
        if body is not None:
            headers.setdefault("Content-Type", "application/json")
        try:
            response = await self._get_client().request(method, url, headers=headers, content=body)
        except httpx.HTTPError as e:
            logger.error("Webhook request failed", extra={"url": url, "method": method, "error": str(e)})
            raise ExternalServiceException("webhook", f"{method} {url} failed: {e}")
        return response.status_code

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
