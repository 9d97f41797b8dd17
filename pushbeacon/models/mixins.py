"""Mixins for SQLAlchemy models."""

import uuid

from sqlalchemy import Column, DateTime, String, func


def generate_uuid() -> str:
    """Generate a string primary key."""
    return str(uuid.uuid4())


class TimestampMixin:
    """Mixin to add created_at and updated_at timestamp columns."""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class UUIDPrimaryKeyMixin:
    """Mixin for tables keyed by a UUID string."""

    id = Column(String(36), primary_key=True, default=generate_uuid)
