"""HTTP client for the registration and tracking endpoints."""

import logging
from typing import Any

import httpx

from pushbeacon.client.errors import BackendRejection, TransportFailure

logger = logging.getLogger(__name__)

REGISTER_PATH = "/api/v1/subscribers/register"
TRACK_PATH = "/api/v1/notifications/track"


class BackendClient:
    """Calls the backend on behalf of a service worker.

    Nothing here retries: a failed registration is picked up by the next
    reconciliation, and tracking is fire-and-forget.
    """

    def __init__(
        self,
        api_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.transport = transport
        self.timeout = timeout

    async def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                return await client.post(path, json=payload)
        except httpx.TransportError as e:
            raise TransportFailure(f"Could not reach {self.api_url}: {e}") from e

    @staticmethod
    def _reason(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(data, dict):
            return str(data.get("error") or data.get("detail") or response.reason_phrase)
        return response.reason_phrase

    async def register(self, payload: dict[str, Any]) -> str:
        """Register a subscription and return the subscriber id."""
        response = await self._post(REGISTER_PATH, payload)
        if response.is_error:
            raise BackendRejection(response.status_code, self._reason(response))

        try:
            return str(response.json()["subscriberId"])
        except (ValueError, KeyError, TypeError) as e:
            raise BackendRejection(response.status_code, "Malformed registration response") from e

    async def track(
        self,
        website_id: str,
        notification_id: str,
        event: str,
        action: str | None = None,
    ) -> bool:
        """Report a notification event. Failures are logged, never raised."""
        payload = {"websiteId": website_id, "notificationId": notification_id, "event": event}
        if action:
            payload["action"] = action

        try:
            response = await self._post(TRACK_PATH, payload)
        except TransportFailure as e:
            logger.warning(f"Tracking {event} for {notification_id} failed: {e}")
            return False

        if response.is_error:
            logger.warning(
                f"Tracking {event} for {notification_id} rejected: "
                f"{response.status_code} {self._reason(response)}"
            )
            return False
        return True
