"""Interface to the host push platform (Notification + PushManager)."""

from enum import Enum
from typing import Any, Protocol


class PermissionState(str, Enum):
    """Notification permission as reported by the platform."""

    GRANTED = "granted"
    DENIED = "denied"
    DEFAULT = "default"


class PlatformError(Exception):
    """An error raised by a platform call, identified by its DOM name."""

    INVALID_STATE = "InvalidStateError"

    def __init__(self, name: str, message: str = "") -> None:
        super().__init__(message or name)
        self.name = name
        self.message = message or name

    @property
    def is_invalid_state(self) -> bool:
        """Check if a conflicting subscription blocked the call."""
        return self.name == self.INVALID_STATE


class PlatformSubscription(Protocol):
    """A push subscription held by the platform."""

    endpoint: str
    keys: dict[str, str]
    # Raw VAPID public key the subscription was created with, if known
    application_server_key: bytes | None

    async def unsubscribe(self) -> bool: ...


class PushPlatform(Protocol):
    """The subset of browser APIs the subscription flow relies on.

    Every coroutine is a suspension point; implementations raise
    PlatformError for platform-reported failures.
    """

    user_agent: str
    language: str | None
    timezone: str | None

    def is_supported(self) -> bool: ...

    async def permission_state(self) -> PermissionState: ...

    async def request_permission(self) -> PermissionState: ...

    async def get_subscription(self) -> PlatformSubscription | None: ...

    async def subscribe(
        self,
        application_server_key: bytes,
        user_visible_only: bool = True,
    ) -> PlatformSubscription: ...

    async def show_notification(self, title: str, options: dict[str, Any]) -> None: ...

    async def open_window(self, url: str) -> None: ...


def subscription_to_json(subscription: PlatformSubscription | None) -> dict | None:
    """Serialize a subscription the way ``PushSubscription.toJSON()`` does."""
    if subscription is None:
        return None
    return {
        "endpoint": subscription.endpoint,
        "keys": {
            "p256dh": subscription.keys.get("p256dh", ""),
            "auth": subscription.keys.get("auth", ""),
        },
    }
