"""Service-layer exceptions mapped to HTTP error responses."""


class ServiceError(Exception):
    """Base error carrying an HTTP status and a client-facing reason."""

    status_code = 400

    def __init__(self, reason: str, status_code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        if status_code is not None:
            self.status_code = status_code


class RegistrationError(ServiceError):
    """Subscriber registration was rejected."""


class TrackingError(ServiceError):
    """A tracking event could not be applied."""


class DeliveryError(ServiceError):
    """A campaign could not be delivered."""
