"""Pydantic schemas for request/response validation."""

from pushbeacon.schemas.push import NotificationAction, PushPayload
from pushbeacon.schemas.registration import (
    NormalizedRegistration,
    RegistrationRequest,
    RegistrationResponse,
    RegistrationShape,
    UnsubscribeRequest,
    describe_validation_error,
    normalize_registration,
)
from pushbeacon.schemas.tracking import TrackEventRequest, TrackEventResponse
from pushbeacon.schemas.website import (
    CampaignSendResponse,
    SendTestRequest,
    SendTestResponse,
    WebsiteConfigResponse,
)

__all__ = [
    "NotificationAction",
    "PushPayload",
    "RegistrationRequest",
    "RegistrationResponse",
    "RegistrationShape",
    "NormalizedRegistration",
    "UnsubscribeRequest",
    "describe_validation_error",
    "normalize_registration",
    "TrackEventRequest",
    "TrackEventResponse",
    "WebsiteConfigResponse",
    "CampaignSendResponse",
    "SendTestRequest",
    "SendTestResponse",
]
