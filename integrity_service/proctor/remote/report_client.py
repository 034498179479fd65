"""
Report Client - Talks to the remote persistence/report API

Endpoints used:
- POST  /session/{id}/event   record a violation
- GET   /session/{id}/status  current remote integrityScore (polled)
- PATCH /session/{id}/end     close the remote session
- GET   /session/{id}/report  aggregated session report
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import RemoteDeliveryError
from ..events.models import ViolationEvent

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 2.0


class ReportClient:
    """
    Async HTTP client for the remote report API.

    A fresh AsyncClient is opened per request so deliveries can run on
    whichever event loop spawned them.

    Args:
        base_url: API root, e.g. http://localhost:5000/api
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (used by tests)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport
        )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise RemoteDeliveryError(f"{method} {path} timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise RemoteDeliveryError(f"{method} {path} failed: {e}") from e

        if response.is_error:
            raise RemoteDeliveryError(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code
            )
        return response

    async def send_event(self, session_id: str, event: ViolationEvent) -> Dict[str, Any]:
        """
        Record a violation in the remote store.

        Raises:
            RemoteDeliveryError: timeout, network error or non-2xx status
        """
        response = await self._request(
            "POST",
            f"/session/{session_id}/event",
            json=event.to_payload()
        )
        logger.debug(f"Event {event.type.value} delivered for session {session_id}")
        return self._json(response)

    async def fetch_status(self, session_id: str) -> Dict[str, Any]:
        """
        Fetch the remote session status.

        Returns:
            Status body; `integrityScore` feeds score reconciliation
        """
        response = await self._request("GET", f"/session/{session_id}/status")
        return self._json(response)

    async def end_session(self, session_id: str) -> Dict[str, Any]:
        """Mark the remote session as ended"""
        response = await self._request("PATCH", f"/session/{session_id}/end")
        return self._json(response)

    async def fetch_report(self, session_id: str) -> Dict[str, Any]:
        """Fetch the aggregated remote report for a session"""
        response = await self._request("GET", f"/session/{session_id}/report")
        return self._json(response)

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            raise RemoteDeliveryError(f"Invalid JSON from {response.request.url}") from e
        if not isinstance(body, dict):
            raise RemoteDeliveryError(f"Unexpected body from {response.request.url}")
        return body
