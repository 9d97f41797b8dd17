"""Notification tracking schemas."""

from pydantic import BaseModel, ConfigDict, Field


class TrackEventRequest(BaseModel):
    """Event reported by a service worker for one notification."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    website_id: str = Field(..., alias="websiteId", min_length=1, max_length=64)
    notification_id: str = Field(..., alias="notificationId", min_length=1, max_length=64)
    # Validated against TrackingEvent by the service so an unknown value
    # gets its own error reason.
    event: str | None = Field(None, max_length=32)
    action: str | None = Field(None, max_length=100)


class TrackEventResponse(BaseModel):
    """Tracking acknowledgement."""

    success: bool = True
    event: str
