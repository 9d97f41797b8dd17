"""Subscriber model for web and mobile push recipients."""

from sqlalchemy import Column, DateTime, Enum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from pushbeacon.database import Base
from pushbeacon.models.enums import DeviceType, Platform, SubscriberStatus
from pushbeacon.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class Subscriber(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A push recipient registered for one website.

    Web push rows are unique per (website_id, endpoint). Token-only mobile
    rows have no endpoint and are matched on their platform token instead.
    """

    __tablename__ = "subscribers"
    __table_args__ = (UniqueConstraint("website_id", "endpoint", name="uq_website_endpoint"),)

    website_id = Column(String(64), ForeignKey("websites.id"), nullable=False, index=True)

    # Web push
    endpoint = Column(String(2048), nullable=True)
    p256dh_key = Column(String(256), nullable=True)
    auth_key = Column(String(128), nullable=True)

    # Mobile push
    fcm_token = Column(String(512), nullable=True, index=True)
    apns_token = Column(String(512), nullable=True, index=True)

    # Best-effort device classification, descriptive only
    browser = Column(String(64), nullable=True)
    browser_version = Column(String(64), nullable=True)
    device_type = Column(
        Enum(DeviceType, name="devicetype", values_callable=lambda x: [e.value for e in x]),
        nullable=True,
    )
    os = Column(String(64), nullable=True)
    platform = Column(
        Enum(Platform, name="platform", values_callable=lambda x: [e.value for e in x]),
        default=Platform.WEB,
        nullable=False,
    )
    language = Column(String(64), nullable=True)
    timezone = Column(String(64), nullable=True)

    status = Column(
        Enum(
            SubscriberStatus,
            name="subscriberstatus",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=SubscriberStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    last_active_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    website = relationship("Website", back_populates="subscribers")
    notification_logs = relationship("NotificationLog", back_populates="subscriber")

    @property
    def is_active(self) -> bool:
        """Check if the subscriber can receive pushes."""
        return self.status == SubscriberStatus.ACTIVE
