"""Service worker event handling: push display, clicks, closes, messages."""

import json
import logging
import time
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import ValidationError

from pushbeacon import __version__
from pushbeacon.client.backend import BackendClient
from pushbeacon.client.config import ReconcilerConfig
from pushbeacon.client.errors import ConfigurationError
from pushbeacon.client.platform import PlatformError, PushPlatform, subscription_to_json
from pushbeacon.client.reconciler import ReconcileResult, ReconcileState, SubscriptionReconciler
from pushbeacon.models.enums import TrackingEvent
from pushbeacon.schemas.push import DEFAULT_BODY, DEFAULT_TITLE, PushPayload

logger = logging.getLogger(__name__)

DEFAULT_ICON = "/icon-192.png"
DEFAULT_BADGE = "/badge-72.png"
DEFAULT_CLICK_ACTION = "default"


class MessageType(str, Enum):
    """postMessage types exchanged with the integration script."""

    SUBSCRIBE = "SUBSCRIBE"
    SUBSCRIBE_SUCCESS = "SUBSCRIBE_SUCCESS"
    SUBSCRIBE_ERROR = "SUBSCRIBE_ERROR"
    UNSUBSCRIBE = "UNSUBSCRIBE"
    UNSUBSCRIBE_SUCCESS = "UNSUBSCRIBE_SUCCESS"
    UNSUBSCRIBE_ERROR = "UNSUBSCRIBE_ERROR"
    GET_STATUS = "GET_STATUS"
    STATUS = "STATUS"


def parse_push_payload(data: bytes | str | None) -> PushPayload | None:
    """Parse a push message body.

    JSON objects become a PushPayload. Anything else is shown as a plain
    text notification.
    """
    if data is None:
        return None

    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    try:
        decoded = json.loads(text)
    except ValueError:
        decoded = None

    if isinstance(decoded, dict):
        try:
            return PushPayload.model_validate(decoded)
        except ValidationError as e:
            logger.warning(f"Push payload did not match schema: {e.error_count()} errors")

    return PushPayload(title=DEFAULT_TITLE, body=text.strip() or DEFAULT_BODY)


def notification_options(payload: PushPayload) -> dict[str, Any]:
    """Build showNotification() options for a payload."""
    options: dict[str, Any] = {
        "body": payload.body,
        "icon": payload.icon or DEFAULT_ICON,
        "badge": payload.badge or DEFAULT_BADGE,
        "tag": payload.tag or f"notif-{int(time.time() * 1000)}",
        "requireInteraction": payload.require_interaction,
        "data": {
            "url": payload.url or "/",
            "notificationId": payload.notification_id,
            "timestamp": int(time.time() * 1000),
        },
        "actions": [action.model_dump(exclude_none=True) for action in payload.actions],
    }
    if payload.image:
        options["image"] = payload.image
    return options


class ServiceWorker:
    """Event handlers of the push service worker.

    Handlers never raise: platform failures are logged and tracking is
    fire-and-forget.
    """

    def __init__(
        self,
        platform: PushPlatform,
        config: ReconcilerConfig | None = None,
        backend: BackendClient | None = None,
    ) -> None:
        self.platform = platform
        self.config = config
        self._backend = backend

    @classmethod
    def from_script_url(
        cls,
        platform: PushPlatform,
        script_url: str,
        backend: BackendClient | None = None,
    ) -> "ServiceWorker":
        """Create a worker configured from its own script URL, if it carries config."""
        try:
            config = ReconcilerConfig.from_url(script_url)
        except ConfigurationError as e:
            logger.info(f"No URL configuration ({e}), waiting for a SUBSCRIBE message")
            config = None
        return cls(platform, config, backend)

    def _backend_for(self, config: ReconcilerConfig) -> BackendClient:
        return self._backend or BackendClient(config.api_url)

    async def reconcile(self, config: ReconcilerConfig) -> ReconcileResult:
        """Run a subscription reconciliation with the given config."""
        reconciler = SubscriptionReconciler(config, self.platform, self._backend_for(config))
        return await reconciler.reconcile()

    async def on_activate(self) -> ReconcileResult | None:
        """Verify the subscription when the worker activates."""
        if self.config is None:
            return None
        return await self.reconcile(self.config)

    async def on_push(self, data: bytes | str | None) -> PushPayload | None:
        """Show a notification for a push message and report delivery."""
        payload = parse_push_payload(data)
        if payload is None:
            logger.info("Push event without data")
            return None

        options = notification_options(payload)
        try:
            await self.platform.show_notification(payload.title, options)
        except PlatformError as e:
            logger.error(f"Could not display notification: {e.message}")
            return payload

        await self._track(payload.notification_id, TrackingEvent.DELIVERED)
        return payload

    async def on_notification_click(
        self,
        data: Mapping[str, Any] | None,
        action: str | None = None,
    ) -> None:
        """Report the click and open the notification's target URL."""
        data = data or {}
        await self._track(
            data.get("notificationId"), TrackingEvent.CLICKED, action or DEFAULT_CLICK_ACTION
        )
        try:
            await self.platform.open_window(data.get("url") or "/")
        except PlatformError as e:
            logger.error(f"Could not open window: {e.message}")

    async def on_notification_close(self, data: Mapping[str, Any] | None) -> None:
        """Report a dismissed notification."""
        await self._track((data or {}).get("notificationId"), TrackingEvent.DISMISSED)

    async def on_message(self, message: Mapping[str, Any]) -> dict[str, Any] | None:
        """Handle a postMessage from the page and return the reply."""
        message_type = message.get("type") if isinstance(message, Mapping) else None

        if message_type == MessageType.SUBSCRIBE.value:
            return await self._handle_subscribe(message)
        if message_type == MessageType.UNSUBSCRIBE.value:
            return await self._handle_unsubscribe()
        if message_type == MessageType.GET_STATUS.value:
            return await self._handle_get_status()
        return None

    async def _handle_subscribe(self, message: Mapping[str, Any]) -> dict[str, Any]:
        try:
            config = ReconcilerConfig.from_message(message, fallback=self.config)
        except ConfigurationError as e:
            return {
                "type": MessageType.SUBSCRIBE_ERROR.value,
                "state": ReconcileState.CONFIGURATION_ERROR.value,
                "error": str(e),
            }

        self.config = config
        result = await self.reconcile(config)
        if result.ok:
            return {
                "type": MessageType.SUBSCRIBE_SUCCESS.value,
                "state": result.state.value,
                "subscription": subscription_to_json(result.subscription),
                "subscriberId": result.subscriber_id,
                "error": result.message,
            }
        return {
            "type": MessageType.SUBSCRIBE_ERROR.value,
            "state": result.state.value,
            "error": result.message,
        }

    async def _handle_unsubscribe(self) -> dict[str, Any]:
        try:
            subscription = await self.platform.get_subscription()
            if subscription is not None:
                await subscription.unsubscribe()
        except PlatformError as e:
            logger.error(f"Unsubscribe failed: {e.message}")
            return {"type": MessageType.UNSUBSCRIBE_ERROR.value, "error": e.message}
        return {"type": MessageType.UNSUBSCRIBE_SUCCESS.value}

    async def _handle_get_status(self) -> dict[str, Any]:
        try:
            subscription = await self.platform.get_subscription()
        except PlatformError as e:
            logger.error(f"Could not read subscription: {e.message}")
            subscription = None
        return {
            "type": MessageType.STATUS.value,
            "hasSubscription": subscription is not None,
            "version": __version__,
        }

    async def _track(
        self,
        notification_id: str | None,
        event: TrackingEvent,
        action: str | None = None,
    ) -> bool:
        if not notification_id or self.config is None:
            return False
        return await self._backend_for(self.config).track(
            self.config.website_id, notification_id, event.value, action
        )
