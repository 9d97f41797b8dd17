"""Notification log model for per-recipient delivery tracking."""

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from pushbeacon.database import Base
from pushbeacon.models.enums import NotificationStatus
from pushbeacon.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class NotificationLog(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """One delivery attempt of a campaign to a subscriber.

    retry_count only grows on transport failures. clicked_at is never set
    without delivered_at.
    """

    __tablename__ = "notification_logs"

    campaign_id = Column(String(36), ForeignKey("campaigns.id"), nullable=True, index=True)
    subscriber_id = Column(String(36), ForeignKey("subscribers.id"), nullable=True, index=True)
    website_id = Column(String(64), ForeignKey("websites.id"), nullable=False, index=True)

    status = Column(
        Enum(
            NotificationStatus,
            name="notificationstatus",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=NotificationStatus.PENDING,
        nullable=False,
    )
    platform = Column(String(20), nullable=True)
    error_code = Column(String(64), nullable=True)
    error_message = Column(String(1000), nullable=True)
    retry_count = Column(Integer, default=0, nullable=False)

    sent_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    clicked_at = Column(DateTime(timezone=True), nullable=True)
    dismissed_at = Column(DateTime(timezone=True), nullable=True)
    click_action = Column(String(100), nullable=True)

    # Relationships
    campaign = relationship("Campaign", back_populates="notification_logs")
    subscriber = relationship("Subscriber", back_populates="notification_logs")
