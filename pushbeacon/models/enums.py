"""Enums for model fields."""

from enum import Enum


class WebsiteStatus(str, Enum):
    """Lifecycle of a tenant website."""

    ACTIVE = "active"
    PENDING = "pending"
    INACTIVE = "inactive"

    def accepts_subscribers(self) -> bool:
        """Check if new subscribers may register for this website.

        Pending websites are still onboarding, so registration is allowed
        before verification completes.
        """
        return self in (WebsiteStatus.ACTIVE, WebsiteStatus.PENDING)


class SubscriberStatus(str, Enum):
    """Subscriber status values."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    UNSUBSCRIBED = "unsubscribed"


class Platform(str, Enum):
    """Delivery platform of a subscriber."""

    WEB = "web"
    ANDROID = "android"
    IOS = "ios"


class DeviceType(str, Enum):
    """Coarse device class."""

    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"


class CampaignStatus(str, Enum):
    """Campaign status values."""

    DRAFT = "draft"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"


class NotificationStatus(str, Enum):
    """Status of a single delivery attempt."""

    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    CLICKED = "clicked"
    FAILED = "failed"
    DISMISSED = "dismissed"


class TrackingEvent(str, Enum):
    """Events reported by the service worker."""

    DELIVERED = "delivered"
    CLICKED = "clicked"
    DISMISSED = "dismissed"
