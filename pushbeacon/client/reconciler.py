"""Keeps the browser's push subscription in line with the website's VAPID key.

One ``reconcile()`` call walks a fixed sequence of states:

    capability check -> key validation -> permission -> inspect existing
    -> (unsubscribe stale) -> subscribe -> register with backend

The platform's current subscription, read once per attempt, is the only
source of truth. Nothing is cached between attempts, so an attempt that
was abandoned half way (page unload) is repaired by the next one.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from pushbeacon.client.backend import BackendClient
from pushbeacon.client.config import ReconcilerConfig
from pushbeacon.client.errors import (
    BackendRejection,
    ConfigurationError,
    PermissionDeniedError,
    ReconcilerError,
    TransientSubscriptionConflict,
    TransportFailure,
    UnsupportedError,
)
from pushbeacon.client.platform import (
    PermissionState,
    PlatformError,
    PlatformSubscription,
    PushPlatform,
    subscription_to_json,
)
from pushbeacon.models.enums import Platform
from pushbeacon.services.device_classifier import classify_user_agent
from pushbeacon.services.vapid import decode_application_server_key, encode_base64url

logger = logging.getLogger(__name__)

CONFIRMATION_TITLE = "Notifications enabled"
CONFIRMATION_BODY = "You will now receive notifications from this site."


class ReconcileState(str, Enum):
    """Terminal state of one reconciliation attempt."""

    UNSUPPORTED = "unsupported"
    CONFIGURATION_ERROR = "configuration_error"
    DENIED = "denied"
    DEFAULT = "default"
    ERROR = "error"
    # Subscribed locally but the backend did not record it
    SUBSCRIBED = "subscribed"
    REGISTERED = "registered"


@dataclass
class ReconcileResult:
    """Outcome of a reconciliation attempt."""

    state: ReconcileState
    subscription: PlatformSubscription | None = None
    subscriber_id: str | None = None
    error: ReconcilerError | None = None

    @property
    def ok(self) -> bool:
        """Check if the browser holds a valid subscription."""
        return self.state in (ReconcileState.SUBSCRIBED, ReconcileState.REGISTERED)

    @property
    def message(self) -> str | None:
        """Error message to surface to the integration script."""
        return str(self.error) if self.error else None


class SubscriptionReconciler:
    """Ensures exactly one subscription created with the configured key."""

    def __init__(
        self,
        config: ReconcilerConfig,
        platform: PushPlatform,
        backend: BackendClient | None = None,
        show_confirmation: bool = True,
    ) -> None:
        self.config = config
        self.platform = platform
        self.backend = backend or BackendClient(config.api_url)
        self.show_confirmation = show_confirmation

    async def reconcile(self) -> ReconcileResult:
        """Run one attempt. Failures are reported in the result, not raised."""
        try:
            return await self._reconcile()
        except UnsupportedError as e:
            logger.info(f"Push unsupported: {e}")
            return ReconcileResult(ReconcileState.UNSUPPORTED, error=e)
        except ConfigurationError as e:
            logger.error(f"Refusing to subscribe for {self.config.website_id}: {e}")
            return ReconcileResult(ReconcileState.CONFIGURATION_ERROR, error=e)
        except PermissionDeniedError as e:
            logger.info(f"Notification permission not granted: {e}")
            state = (
                ReconcileState.DEFAULT
                if e.permission == PermissionState.DEFAULT.value
                else ReconcileState.DENIED
            )
            return ReconcileResult(state, error=e)
        except ReconcilerError as e:
            logger.error(f"Subscription failed for {self.config.website_id}: {e}")
            return ReconcileResult(ReconcileState.ERROR, error=e)

    async def _reconcile(self) -> ReconcileResult:
        if not self.platform.is_supported():
            raise UnsupportedError("Push notifications are not supported")

        application_server_key = decode_application_server_key(self.config.vapid_public_key)
        target_key = encode_base64url(application_server_key)

        await self._ensure_permission()

        subscription = await self._current_subscription()
        created = False
        if subscription is not None and self._has_key(subscription, target_key):
            logger.info("Existing subscription matches VAPID key")
        else:
            if subscription is not None:
                logger.warning("Existing subscription uses another VAPID key, replacing it")
                await self._retire(subscription)
            subscription = await self._subscribe(application_server_key)
            created = True

        return await self._register(subscription, created)

    async def _ensure_permission(self) -> None:
        try:
            permission = PermissionState(await self.platform.permission_state())
        except (PlatformError, ValueError) as e:
            raise ReconcilerError(f"Could not read notification permission: {e}") from e

        if permission == PermissionState.GRANTED:
            return
        if permission == PermissionState.DENIED:
            raise PermissionDeniedError("Notifications are blocked", permission.value)

        try:
            permission = PermissionState(await self.platform.request_permission())
        except (PlatformError, ValueError) as e:
            raise ReconcilerError(f"Permission request failed: {e}") from e

        if permission != PermissionState.GRANTED:
            raise PermissionDeniedError(f"Permission {permission.value}", permission.value)

    async def _current_subscription(self) -> PlatformSubscription | None:
        try:
            return await self.platform.get_subscription()
        except PlatformError as e:
            raise ReconcilerError(f"Could not read subscription: {e.message}") from e

    @staticmethod
    def _has_key(subscription: PlatformSubscription, target_key: str) -> bool:
        raw = subscription.application_server_key
        if not raw:
            return False
        return encode_base64url(raw) == target_key

    async def _unsubscribe(self, subscription: PlatformSubscription) -> bool:
        # Either outcome is acceptable; the following subscribe decides.
        try:
            return bool(await subscription.unsubscribe())
        except PlatformError as e:
            logger.warning(f"Unsubscribe failed: {e.message}")
            return False

    async def _retire(self, stale: PlatformSubscription) -> None:
        await self._unsubscribe(stale)
        try:
            still_present = await self.platform.get_subscription()
        except PlatformError as e:
            # Subscribe still runs; its InvalidState cleanup covers a leftover.
            logger.warning(f"Could not re-read subscription after unsubscribe: {e.message}")
            return
        if still_present is not None:
            logger.warning("Stale subscription still present, unsubscribing again")
            await self._unsubscribe(still_present)

    async def _subscribe(self, application_server_key: bytes) -> PlatformSubscription:
        try:
            return await self.platform.subscribe(application_server_key, user_visible_only=True)
        except PlatformError as e:
            if not e.is_invalid_state:
                raise ReconcilerError(e.message) from e
            logger.warning(f"Subscription conflict ({e.message}), forcing cleanup")

        conflicting = await self._current_subscription()
        if conflicting is not None:
            await self._unsubscribe(conflicting)

        try:
            return await self.platform.subscribe(application_server_key, user_visible_only=True)
        except PlatformError as e:
            if e.is_invalid_state:
                raise TransientSubscriptionConflict(e.message) from e
            raise ReconcilerError(e.message) from e

    def registration_payload(self, subscription: PlatformSubscription) -> dict:
        """Build the registration body with derived device metadata."""
        device = classify_user_agent(self.platform.user_agent)
        return {
            "websiteId": self.config.website_id,
            "subscription": subscription_to_json(subscription),
            "userAgent": self.platform.user_agent,
            "language": self.platform.language,
            "timezone": self.platform.timezone,
            "platform": Platform.WEB.value,
            "browser": device.browser,
            "browserVersion": device.browser_version or None,
            "os": device.os,
            "deviceType": device.device_type.value,
        }

    async def _register(
        self, subscription: PlatformSubscription, created: bool
    ) -> ReconcileResult:
        try:
            subscriber_id = await self.backend.register(self.registration_payload(subscription))
        except (BackendRejection, TransportFailure) as e:
            # Keep the local subscription; the next attempt re-registers it.
            logger.error(f"Backend registration failed: {e}")
            return ReconcileResult(ReconcileState.SUBSCRIBED, subscription, error=e)

        logger.info(f"Subscription registered as {subscriber_id}")
        if created and self.show_confirmation:
            await self._confirm()
        return ReconcileResult(ReconcileState.REGISTERED, subscription, subscriber_id)

    async def _confirm(self) -> None:
        try:
            await self.platform.show_notification(
                CONFIRMATION_TITLE,
                {"body": CONFIRMATION_BODY, "tag": "subscription-confirmed"},
            )
        except PlatformError as e:
            logger.warning(f"Could not show confirmation: {e.message}")
