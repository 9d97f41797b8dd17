"""Errors raised on the service-worker side of the subscription flow."""


class ReconcilerError(Exception):
    """Base class for subscription reconciliation failures."""


class UnsupportedError(ReconcilerError):
    """The platform lacks the Notification or Push APIs."""


class PermissionDeniedError(ReconcilerError):
    """The user declined, or previously blocked, notifications.

    ``permission`` is "denied" when blocked and "default" when the prompt
    was dismissed without an answer.
    """

    def __init__(self, message: str, permission: str = "denied") -> None:
        super().__init__(message)
        self.permission = permission


class ConfigurationError(ReconcilerError):
    """Configuration is missing or malformed (e.g. a bad VAPID key)."""


class TransientSubscriptionConflict(ReconcilerError):
    """A stale subscription blocks creating a new one."""


class BackendRejection(ReconcilerError):
    """The backend answered a registration or tracking call with an error."""

    def __init__(self, status_code: int, reason: str) -> None:
        super().__init__(f"{status_code}: {reason}")
        self.status_code = status_code
        self.reason = reason


class TransportFailure(ReconcilerError):
    """The backend could not be reached."""
