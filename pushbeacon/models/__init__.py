"""SQLAlchemy models."""

from pushbeacon.models.campaign import Campaign
from pushbeacon.models.notification_log import NotificationLog
from pushbeacon.models.subscriber import Subscriber
from pushbeacon.models.website import Website

__all__ = [
    "Website",
    "Subscriber",
    "Campaign",
    "NotificationLog",
]
