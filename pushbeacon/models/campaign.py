"""Campaign model."""

from sqlalchemy import JSON, Boolean, Column, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from pushbeacon.database import Base
from pushbeacon.models.enums import CampaignStatus
from pushbeacon.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class Campaign(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A notification sent (or scheduled) to a website's subscribers."""

    __tablename__ = "campaigns"

    website_id = Column(String(64), ForeignKey("websites.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(String(1000), nullable=False)
    icon_url = Column(String(2048), nullable=True)
    image_url = Column(String(2048), nullable=True)
    badge_url = Column(String(2048), nullable=True)
    click_url = Column(String(2048), nullable=True)
    # Action buttons: [{"action": "open", "title": "Open"}, ...]
    actions = Column(JSON, nullable=True)
    require_interaction = Column(Boolean, default=False, nullable=False)

    status = Column(
        Enum(
            CampaignStatus,
            name="campaignstatus",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=CampaignStatus.DRAFT,
        nullable=False,
        index=True,
    )
    scheduled_at = Column(DateTime(timezone=True), nullable=True, index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    # Counters
    sent_count = Column(Integer, default=0, nullable=False)
    delivered_count = Column(Integer, default=0, nullable=False)
    clicked_count = Column(Integer, default=0, nullable=False)
    failed_count = Column(Integer, default=0, nullable=False)

    # Relationships
    website = relationship("Website", back_populates="campaigns")
    notification_logs = relationship("NotificationLog", back_populates="campaign")
