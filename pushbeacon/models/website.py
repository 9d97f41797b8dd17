"""Website model."""

from sqlalchemy import Column, Enum, Integer, String
from sqlalchemy.orm import relationship

from pushbeacon.database import Base
from pushbeacon.models.enums import WebsiteStatus
from pushbeacon.models.mixins import TimestampMixin


class Website(Base, TimestampMixin):
    """Tenant website that owns subscribers and campaigns."""

    __tablename__ = "websites"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    url = Column(String(500), nullable=False)
    vapid_public_key = Column(String(128), nullable=False)
    vapid_private_key = Column(String(128), nullable=False)
    api_token = Column(String(64), nullable=False, unique=True, index=True)
    status = Column(
        Enum(
            WebsiteStatus,
            name="websitestatus",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=WebsiteStatus.PENDING,
        nullable=False,
    )
    notifications_sent = Column(Integer, default=0, nullable=False)

    # Relationships
    subscribers = relationship("Subscriber", back_populates="website")
    campaigns = relationship("Campaign", back_populates="website")
