"""Delivery tracking for notification logs."""

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pushbeacon.models import Campaign, NotificationLog, Subscriber
from pushbeacon.models.enums import NotificationStatus, TrackingEvent
from pushbeacon.schemas.registration import describe_validation_error
from pushbeacon.schemas.tracking import TrackEventRequest
from pushbeacon.services.exceptions import TrackingError

logger = logging.getLogger(__name__)

DEFAULT_CLICK_ACTION = "default"


class TrackingService:
    """Applies delivered/clicked/dismissed events to notification logs.

    Ordering between events is advisory: each event writes its own fields
    and the last write wins. Campaign counters only move on the first
    delivered or clicked event for a row, so replays are harmless.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def parse(self, body: Any, event: str | None = None) -> tuple[TrackEventRequest, TrackingEvent]:
        """Validate a tracking body; a path event overrides the body's."""
        if not isinstance(body, dict):
            raise TrackingError("Request body must be a JSON object")
        try:
            request = TrackEventRequest.model_validate(body)
        except ValidationError as e:
            raise TrackingError(describe_validation_error(e)) from e

        raw_event = event or request.event
        try:
            tracking_event = TrackingEvent(raw_event)
        except ValueError as e:
            logger.warning(f"Invalid tracking event {raw_event!r}")
            raise TrackingError("Invalid event type") from e
        return request, tracking_event

    def track(
        self, body: Any, event: str | None = None
    ) -> tuple[NotificationLog, TrackingEvent]:
        """Record one event for a notification."""
        request, tracking_event = self.parse(body, event)
        logger.info(
            f"Tracking {tracking_event.value} for notification {request.notification_id}"
        )

        log = (
            self.db.query(NotificationLog)
            .filter(
                NotificationLog.id == request.notification_id,
                NotificationLog.website_id == request.website_id,
            )
            .first()
        )
        if log is None:
            raise TrackingError("Notification not found", status_code=404)

        now = datetime.now(UTC)
        if tracking_event == TrackingEvent.DELIVERED:
            self._apply_delivered(log, now)
        elif tracking_event == TrackingEvent.CLICKED:
            self._apply_clicked(log, now, request.action)
        else:
            log.dismissed_at = now
            log.status = NotificationStatus.DISMISSED

        if log.subscriber_id:
            subscriber = (
                self.db.query(Subscriber).filter(Subscriber.id == log.subscriber_id).first()
            )
            if subscriber:
                subscriber.last_active_at = now

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to track {tracking_event.value}: {e}")
            raise TrackingError(f"Failed to track event: {e}", status_code=500) from e

        self.db.refresh(log)
        return log, tracking_event

    def _apply_delivered(self, log: NotificationLog, now: datetime) -> None:
        if log.delivered_at is None:
            log.delivered_at = now
            self._bump_campaign(log, "delivered_count")
        log.status = NotificationStatus.DELIVERED

    def _apply_clicked(self, log: NotificationLog, now: datetime, action: str | None) -> None:
        # A click proves delivery even if the delivered event was lost.
        if log.delivered_at is None:
            log.delivered_at = now
            self._bump_campaign(log, "delivered_count")
        if log.clicked_at is None:
            self._bump_campaign(log, "clicked_count")
        log.clicked_at = now
        log.click_action = action or DEFAULT_CLICK_ACTION
        log.status = NotificationStatus.CLICKED

    def _bump_campaign(self, log: NotificationLog, counter: str) -> None:
        if not log.campaign_id:
            return
        column = getattr(Campaign, counter)
        self.db.query(Campaign).filter(Campaign.id == log.campaign_id).update(
            {column: column + 1}
        )
