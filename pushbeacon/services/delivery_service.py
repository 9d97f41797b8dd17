"""Campaign delivery over Web Push."""

import json
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

import requests
from pywebpush import WebPushException, webpush
from sqlalchemy.orm import Session

from pushbeacon.config import get_settings
from pushbeacon.models import Campaign, NotificationLog, Subscriber, Website
from pushbeacon.models.enums import (
    CampaignStatus,
    NotificationStatus,
    Platform,
    SubscriberStatus,
)
from pushbeacon.schemas.push import PushPayload
from pushbeacon.services.exceptions import DeliveryError

logger = logging.getLogger(__name__)

# Error codes recorded on failed notification logs
RECIPIENT_UNSUBSCRIBED = "RECIPIENT_UNSUBSCRIBED"
PLATFORM_NOT_SUPPORTED = "PLATFORM_NOT_SUPPORTED"
MISSING_KEYS = "MISSING_KEYS"
SUBSCRIPTION_EXPIRED = "SUBSCRIPTION_EXPIRED"
TRANSPORT_ERROR = "TRANSPORT_ERROR"
PUSH_REJECTED = "PUSH_REJECTED"
DELIVERY_ERROR = "DELIVERY_ERROR"


def is_transport_failure(status_code: int) -> bool:
    """Check if a push service response is worth retrying.

    Rate limiting and server errors are transport problems. Any other
    rejection is final.
    """
    return status_code == 429 or status_code >= 500


class DeliveryService:
    """Sends campaigns to subscribers and records one log row per recipient."""

    def __init__(self, sleep: Callable[[float], None] = time.sleep) -> None:
        self.settings = get_settings()
        self._sleep = sleep

    def build_payload(self, campaign: Campaign, log: NotificationLog) -> dict:
        """Build the JSON payload the service worker renders."""
        payload = PushPayload(
            title=campaign.title,
            body=campaign.body,
            icon=campaign.icon_url,
            image=campaign.image_url,
            badge=campaign.badge_url,
            url=campaign.click_url or "/",
            actions=campaign.actions or [],
            notification_id=log.id,
            require_interaction=bool(campaign.require_interaction),
            tag=f"campaign-{campaign.id}",
        )
        return payload.model_dump(by_alias=True, exclude_none=True)

    def send_campaign(
        self,
        db: Session,
        campaign: Campaign,
        subscriber_ids: list[str] | None = None,
    ) -> dict:
        """Deliver a campaign to its website's subscribers.

        Returns:
            dict with sent/failed counts
        """
        website = db.query(Website).filter(Website.id == campaign.website_id).first()
        if website is None:
            raise DeliveryError("Website not found", status_code=404)

        query = db.query(Subscriber).filter(Subscriber.website_id == website.id)
        if subscriber_ids:
            # Explicit targets are logged even when they can't receive pushes.
            query = query.filter(Subscriber.id.in_(subscriber_ids))
        else:
            query = query.filter(Subscriber.status == SubscriberStatus.ACTIVE)
        subscribers = query.all()

        stats = {"sent": 0, "failed": 0}
        if not subscribers:
            logger.info(f"No subscribers to deliver campaign {campaign.id} to")

        batch_size = max(1, self.settings.delivery_batch_size)
        for start in range(0, len(subscribers), batch_size):
            for subscriber in subscribers[start : start + batch_size]:
                if self._deliver_to(db, website, campaign, subscriber):
                    stats["sent"] += 1
                else:
                    stats["failed"] += 1
            db.commit()

        campaign.sent_count = (campaign.sent_count or 0) + stats["sent"]
        campaign.failed_count = (campaign.failed_count or 0) + stats["failed"]
        campaign.status = CampaignStatus.COMPLETED
        campaign.sent_at = datetime.now(UTC)
        website.notifications_sent = (website.notifications_sent or 0) + stats["sent"]
        db.commit()

        logger.info(
            f"Campaign {campaign.id}: sent {stats['sent']}, failed {stats['failed']} "
            f"of {len(subscribers)} subscribers"
        )
        return stats

    def send_test(
        self,
        db: Session,
        website: Website,
        subscriber: Subscriber,
        title: str,
        body: str,
        icon_url: str | None = None,
        image_url: str | None = None,
        click_url: str | None = None,
    ) -> NotificationLog:
        """Send a one-off notification to a single subscriber.

        The log row has no campaign, so tracking events for it never touch
        campaign counters.
        """
        log = self._start_log(db, website, subscriber)
        if self._check_recipient(subscriber, log):
            payload = PushPayload(
                title=title,
                body=body,
                icon=icon_url,
                image=image_url,
                url=click_url or "/",
                notification_id=log.id,
                tag=f"test-{log.id}",
            )
            if self.send_with_retry(
                website, subscriber, log, payload.model_dump(by_alias=True, exclude_none=True)
            ):
                website.notifications_sent = (website.notifications_sent or 0) + 1

        db.commit()
        db.refresh(log)
        logger.info(
            f"Test notification {log.id} to subscriber {subscriber.id}: {log.status.value}"
        )
        return log

    def _start_log(
        self,
        db: Session,
        website: Website,
        subscriber: Subscriber,
        campaign_id: str | None = None,
    ) -> NotificationLog:
        log = NotificationLog(
            campaign_id=campaign_id,
            subscriber_id=subscriber.id,
            website_id=website.id,
            platform=Platform(subscriber.platform).value,
            status=NotificationStatus.PENDING,
            retry_count=0,
        )
        db.add(log)
        db.flush()
        return log

    def _check_recipient(self, subscriber: Subscriber, log: NotificationLog) -> bool:
        """Fail the log up front if the subscriber can't receive web push."""
        if not subscriber.is_active:
            self._mark_failed(log, RECIPIENT_UNSUBSCRIBED, "Subscriber is not active")
            return False
        if subscriber.platform != Platform.WEB or not subscriber.endpoint:
            self._mark_failed(
                log, PLATFORM_NOT_SUPPORTED, "Only web push subscriptions can be delivered"
            )
            return False
        if not (subscriber.p256dh_key and subscriber.auth_key):
            self._mark_failed(log, MISSING_KEYS, "Subscription has no encryption keys")
            return False
        return True

    def _deliver_to(
        self,
        db: Session,
        website: Website,
        campaign: Campaign,
        subscriber: Subscriber,
    ) -> bool:
        log = self._start_log(db, website, subscriber, campaign.id)
        if not self._check_recipient(subscriber, log):
            return False
        return self.send_with_retry(website, subscriber, log, self.build_payload(campaign, log))

    def send_with_retry(
        self,
        website: Website,
        subscriber: Subscriber,
        log: NotificationLog,
        payload: dict,
    ) -> bool:
        """Push one message, retrying transport failures only."""
        max_retries = self.settings.delivery_max_retries
        delays = self.settings.delivery_retry_delays or [0.0]

        while True:
            try:
                webpush(
                    subscription_info={
                        "endpoint": subscriber.endpoint,
                        "keys": {
                            "p256dh": subscriber.p256dh_key,
                            "auth": subscriber.auth_key,
                        },
                    },
                    data=json.dumps(payload),
                    vapid_private_key=website.vapid_private_key,
                    vapid_claims={"sub": f"mailto:{self.settings.vapid_contact_email}"},
                    ttl=self.settings.push_ttl_seconds,
                )
                log.status = NotificationStatus.SENT
                log.sent_at = datetime.now(UTC)
                log.error_code = None
                log.error_message = None
                return True
            except WebPushException as e:
                # No response means pywebpush refused the message locally.
                status_code = e.response.status_code if e.response is not None else None
                transient = status_code is not None and is_transport_failure(status_code)
                error = str(e)
            except requests.RequestException as e:
                status_code = None
                transient = True
                error = str(e)
            except Exception as e:
                logger.error(f"Push to subscriber {subscriber.id} failed: {e}", exc_info=True)
                self._mark_failed(log, DELIVERY_ERROR, f"{type(e).__name__}: {e}")
                return False

            if transient and log.retry_count < max_retries:
                delay = delays[min(log.retry_count, len(delays) - 1)]
                log.retry_count += 1
                logger.warning(
                    f"Push to subscriber {subscriber.id} failed ({error}), "
                    f"retry {log.retry_count}/{max_retries} in {delay}s"
                )
                self._sleep(delay)
                continue

            if status_code in (404, 410):
                code = SUBSCRIPTION_EXPIRED
            elif status_code is None:
                code = TRANSPORT_ERROR if transient else PUSH_REJECTED
            else:
                code = f"HTTP_{status_code}"
            logger.error(f"Push to subscriber {subscriber.id} failed: {error}")
            self._mark_failed(log, code, error)
            return False

    @staticmethod
    def _mark_failed(log: NotificationLog, code: str, message: str) -> None:
        log.status = NotificationStatus.FAILED
        log.error_code = code
        log.error_message = message[:1000]
