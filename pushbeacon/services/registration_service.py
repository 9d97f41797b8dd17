"""Subscriber registration: validation and idempotent upsert."""

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pushbeacon.models import Subscriber, Website
from pushbeacon.models.enums import Platform, SubscriberStatus, WebsiteStatus
from pushbeacon.schemas.registration import (
    NormalizedRegistration,
    RegistrationRequest,
    UnsubscribeRequest,
    describe_validation_error,
    normalize_registration,
)
from pushbeacon.services.device_classifier import resolve_device_info
from pushbeacon.services.exceptions import RegistrationError

logger = logging.getLogger(__name__)


class RegistrationService:
    """Registers push subscribers for a website.

    Registration is an upsert: the same (website, endpoint) always maps to
    one row, which is revived to ``active`` and touched on every call.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def parse(self, body: Any) -> NormalizedRegistration:
        """Validate a decoded JSON body and normalize its shape."""
        if not isinstance(body, dict):
            raise RegistrationError("Request body must be a JSON object")
        try:
            request = RegistrationRequest.model_validate(body)
        except ValidationError as e:
            reason = describe_validation_error(e)
            logger.warning(f"Rejected registration: {reason}")
            raise RegistrationError(reason) from e
        return normalize_registration(request)

    def get_accepting_website(self, website_id: str) -> Website:
        """Load a website that is allowed to take new subscribers."""
        website = self.db.query(Website).filter(Website.id == website_id).first()
        if website is None:
            logger.warning(f"Registration for unknown website {website_id}")
            raise RegistrationError("Invalid website", status_code=404)
        status = WebsiteStatus(website.status)
        if not status.accepts_subscribers():
            logger.warning(f"Registration for {status.value} website {website_id}")
            raise RegistrationError("Website not accepting subscribers", status_code=403)
        return website

    def register(self, body: Any) -> Subscriber:
        """Validate a registration body and upsert the subscriber row."""
        registration = self.parse(body)
        logger.info(
            f"Registration for website {registration.website_id} "
            f"({registration.shape.value} body)"
        )

        self.get_accepting_website(registration.website_id)

        if not registration.has_subscription_method:
            raise RegistrationError("No valid subscription provided")

        try:
            subscriber = self._upsert(registration)
        except IntegrityError:
            # Another request inserted the same natural key first.
            self.db.rollback()
            try:
                subscriber = self._upsert(registration)
            except SQLAlchemyError as e:
                self.db.rollback()
                raise self._storage_error(e) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise self._storage_error(e) from e

        logger.info(f"Subscriber registered: {subscriber.id}")
        return subscriber

    def unsubscribe(self, body: Any) -> Subscriber:
        """Mark a web push subscriber as unsubscribed."""
        if not isinstance(body, dict):
            raise RegistrationError("Request body must be a JSON object")
        try:
            request = UnsubscribeRequest.model_validate(body)
        except ValidationError as e:
            raise RegistrationError(describe_validation_error(e)) from e

        subscriber = (
            self.db.query(Subscriber)
            .filter(
                Subscriber.website_id == request.website_id,
                Subscriber.endpoint == request.endpoint,
            )
            .first()
        )
        if subscriber is None:
            raise RegistrationError("Subscriber not found", status_code=404)

        subscriber.status = SubscriberStatus.UNSUBSCRIBED
        self.db.commit()
        self.db.refresh(subscriber)
        logger.info(f"Subscriber {subscriber.id} unsubscribed")
        return subscriber

    def find_existing(self, registration: NormalizedRegistration) -> Subscriber | None:
        """Find the row matching the registration's natural key."""
        query = self.db.query(Subscriber).filter(
            Subscriber.website_id == registration.website_id
        )
        if registration.endpoint:
            return query.filter(Subscriber.endpoint == registration.endpoint).first()
        if registration.apns_token:
            return query.filter(
                Subscriber.endpoint.is_(None),
                Subscriber.apns_token == registration.apns_token,
            ).first()
        return query.filter(
            Subscriber.endpoint.is_(None),
            Subscriber.fcm_token == registration.fcm_token,
        ).first()

    def _upsert(self, registration: NormalizedRegistration) -> Subscriber:
        subscriber = self.find_existing(registration)
        if subscriber is None:
            subscriber = Subscriber(website_id=registration.website_id)
            self.db.add(subscriber)

        device = resolve_device_info(
            registration.user_agent,
            browser=registration.browser,
            browser_version=registration.browser_version,
            device_type=registration.device_type,
            os=registration.os,
        )
        platform = registration.platform

        subscriber.endpoint = registration.endpoint
        subscriber.p256dh_key = registration.p256dh
        subscriber.auth_key = registration.auth
        subscriber.fcm_token = registration.fcm_token if platform == Platform.ANDROID else None
        subscriber.apns_token = registration.apns_token if platform == Platform.IOS else None
        subscriber.platform = platform
        subscriber.browser = device.browser
        subscriber.browser_version = device.browser_version or None
        subscriber.device_type = device.device_type
        subscriber.os = device.os
        subscriber.language = registration.language
        subscriber.timezone = registration.timezone
        subscriber.status = SubscriberStatus.ACTIVE
        subscriber.last_active_at = datetime.now(UTC)

        self.db.commit()
        self.db.refresh(subscriber)
        return subscriber

    @staticmethod
    def _storage_error(error: SQLAlchemyError) -> RegistrationError:
        logger.error(f"Subscriber upsert failed: {error}")
        return RegistrationError(f"Failed to register subscriber: {error}", status_code=500)
