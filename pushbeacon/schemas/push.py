"""Push message payload exchanged between sender and service worker."""

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TITLE = "Notification"
DEFAULT_BODY = "You have a new notification"


class NotificationAction(BaseModel):
    """An action button shown on a notification."""

    model_config = ConfigDict(extra="ignore")

    action: str
    title: str
    icon: str | None = None


class PushPayload(BaseModel):
    """JSON body of a push message."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = DEFAULT_TITLE
    body: str = ""
    icon: str | None = None
    image: str | None = None
    badge: str | None = None
    url: str | None = None
    actions: list[NotificationAction] = Field(default_factory=list)
    notification_id: str | None = Field(None, alias="notificationId")
    require_interaction: bool = Field(False, alias="requireInteraction")
    tag: str | None = None
