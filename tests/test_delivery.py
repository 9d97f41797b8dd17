"""Tests for campaign delivery and the Celery tasks."""

import binascii
import json
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
import requests
from pywebpush import WebPushException

from pushbeacon.models import Campaign, NotificationLog, Subscriber
from pushbeacon.models.enums import CampaignStatus, NotificationStatus, Platform, SubscriberStatus
from pushbeacon.services.delivery_service import DeliveryService, is_transport_failure
from pushbeacon.tasks.campaigns import process_scheduled_campaigns, send_campaign


def push_error(status_code):
    """WebPushException as raised by pywebpush for an HTTP response."""
    response = MagicMock(status_code=status_code)
    return WebPushException(f"Push failed: {status_code}", response=response)


@pytest.fixture
def make_subscriber(db, website):
    """Factory for subscribers of the active website."""

    def _make(suffix: str = "0001", **fields) -> Subscriber:
        values = {
            "website_id": website.id,
            "endpoint": f"https://push.example.com/send/{suffix}",
            "p256dh_key": "p256dh",
            "auth_key": "auth",
            "status": SubscriberStatus.ACTIVE,
        }
        values.update(fields)
        subscriber = Subscriber(**values)
        db.add(subscriber)
        db.commit()
        db.refresh(subscriber)
        return subscriber

    return _make


@pytest.fixture
def sleep():
    return MagicMock()


@pytest.fixture
def service(sleep):
    return DeliveryService(sleep=sleep)


@pytest.mark.parametrize(
    "status_code,expected",
    [(429, True), (500, True), (503, True), (400, False), (404, False), (410, False)],
)
def test_is_transport_failure(status_code, expected):
    """Test which outcomes are retried."""
    assert is_transport_failure(status_code) is expected


def test_send_campaign(db, service, website, campaign, make_subscriber):
    """Test delivering a campaign to active subscribers."""
    make_subscriber("0001")
    make_subscriber("0002")
    make_subscriber("0003", status=SubscriberStatus.UNSUBSCRIBED)

    with patch("pushbeacon.services.delivery_service.webpush") as mock_webpush:
        stats = service.send_campaign(db, campaign)

    assert stats == {"sent": 2, "failed": 0}
    assert mock_webpush.call_count == 2

    logs = db.query(NotificationLog).all()
    assert len(logs) == 2
    assert all(log.status == NotificationStatus.SENT for log in logs)
    assert all(log.sent_at is not None for log in logs)

    payload = json.loads(mock_webpush.call_args.kwargs["data"])
    assert payload["title"] == "Sale starts now"
    assert payload["url"] == "https://site-1.example.com/sale"
    assert payload["tag"] == f"campaign-{campaign.id}"
    assert payload["notificationId"] in {log.id for log in logs}
    assert mock_webpush.call_args.kwargs["vapid_private_key"] == website.vapid_private_key

    db.refresh(campaign)
    db.refresh(website)
    assert campaign.status == CampaignStatus.COMPLETED
    assert campaign.sent_count == 2
    assert campaign.sent_at is not None
    assert website.notifications_sent == 2


def test_transport_failure_is_retried(db, service, sleep, campaign, make_subscriber):
    """Test that server errors are retried until success."""
    make_subscriber()

    with patch(
        "pushbeacon.services.delivery_service.webpush",
        side_effect=[push_error(503), requests.ConnectionError("reset"), None],
    ) as mock_webpush:
        stats = service.send_campaign(db, campaign)

    assert stats == {"sent": 1, "failed": 0}
    assert mock_webpush.call_count == 3
    log = db.query(NotificationLog).one()
    assert log.status == NotificationStatus.SENT
    assert log.retry_count == 2
    assert [call.args[0] for call in sleep.call_args_list] == [1.0, 5.0]


def test_transport_failure_gives_up(db, service, sleep, campaign, make_subscriber):
    """Test that retries stop at the configured maximum."""
    make_subscriber()

    with patch(
        "pushbeacon.services.delivery_service.webpush", side_effect=push_error(500)
    ) as mock_webpush:
        stats = service.send_campaign(db, campaign)

    assert stats == {"sent": 0, "failed": 1}
    assert mock_webpush.call_count == 4
    log = db.query(NotificationLog).one()
    assert log.status == NotificationStatus.FAILED
    assert log.retry_count == 3
    assert log.error_code == "HTTP_500"
    assert sleep.call_count == 3


def test_expired_subscription_not_retried(db, service, sleep, campaign, make_subscriber):
    """Test that a gone subscription fails without retry."""
    make_subscriber()

    with patch(
        "pushbeacon.services.delivery_service.webpush", side_effect=push_error(410)
    ) as mock_webpush:
        stats = service.send_campaign(db, campaign)

    assert stats == {"sent": 0, "failed": 1}
    assert mock_webpush.call_count == 1
    log = db.query(NotificationLog).one()
    assert log.retry_count == 0
    assert log.error_code == "SUBSCRIPTION_EXPIRED"
    sleep.assert_not_called()


def test_missing_keys_fail_up_front(db, service, sleep, campaign, make_subscriber):
    """Test that a web subscriber without encryption keys is never pushed to."""
    make_subscriber(p256dh_key=None, auth_key=None)

    with patch("pushbeacon.services.delivery_service.webpush") as mock_webpush:
        stats = service.send_campaign(db, campaign)

    assert stats == {"sent": 0, "failed": 1}
    mock_webpush.assert_not_called()
    log = db.query(NotificationLog).one()
    assert log.error_code == "MISSING_KEYS"
    assert log.retry_count == 0
    sleep.assert_not_called()


def test_local_push_error_not_retried(db, service, sleep, campaign, make_subscriber):
    """Test that pywebpush errors without a response fail without retry."""
    make_subscriber()

    with patch(
        "pushbeacon.services.delivery_service.webpush",
        side_effect=WebPushException("Missing keys value: p256dh"),
    ) as mock_webpush:
        stats = service.send_campaign(db, campaign)

    assert stats == {"sent": 0, "failed": 1}
    assert mock_webpush.call_count == 1
    log = db.query(NotificationLog).one()
    assert log.status == NotificationStatus.FAILED
    assert log.error_code == "PUSH_REJECTED"
    assert log.retry_count == 0
    sleep.assert_not_called()


def test_unexpected_error_fails_each_recipient(db, service, campaign, make_subscriber):
    """Test that an unexpected push error is logged per recipient and the campaign completes."""
    make_subscriber("0001")
    make_subscriber("0002")

    with patch(
        "pushbeacon.services.delivery_service.webpush",
        side_effect=binascii.Error("Invalid base64-encoded string"),
    ):
        stats = service.send_campaign(db, campaign)

    assert stats == {"sent": 0, "failed": 2}
    logs = db.query(NotificationLog).all()
    assert len(logs) == 2
    assert all(log.error_code == "DELIVERY_ERROR" for log in logs)
    assert all(log.retry_count == 0 for log in logs)
    db.refresh(campaign)
    assert campaign.status == CampaignStatus.COMPLETED
    assert campaign.failed_count == 2


def test_unsubscribed_target_is_logged(db, service, campaign, make_subscriber):
    """Test that explicit targets that can't receive pushes fail immediately."""
    active = make_subscriber("0001")
    gone = make_subscriber("0002", status=SubscriberStatus.UNSUBSCRIBED)

    with patch("pushbeacon.services.delivery_service.webpush") as mock_webpush:
        stats = service.send_campaign(db, campaign, subscriber_ids=[active.id, gone.id])

    assert stats == {"sent": 1, "failed": 1}
    assert mock_webpush.call_count == 1
    failed = db.query(NotificationLog).filter(NotificationLog.subscriber_id == gone.id).one()
    assert failed.status == NotificationStatus.FAILED
    assert failed.error_code == "RECIPIENT_UNSUBSCRIBED"
    assert failed.retry_count == 0


def test_mobile_subscriber_not_supported(db, service, campaign, make_subscriber):
    """Test that token-only subscribers are logged as unsupported."""
    make_subscriber(endpoint=None, fcm_token="fcm-1", platform=Platform.ANDROID)

    with patch("pushbeacon.services.delivery_service.webpush") as mock_webpush:
        stats = service.send_campaign(db, campaign)

    assert stats == {"sent": 0, "failed": 1}
    mock_webpush.assert_not_called()
    log = db.query(NotificationLog).one()
    assert log.error_code == "PLATFORM_NOT_SUPPORTED"
    assert log.platform == "android"


def test_send_campaign_task(db, campaign, make_subscriber):
    """Test the Celery task end to end."""
    make_subscriber()

    with (
        patch("pushbeacon.tasks.campaigns.SessionLocal", return_value=db),
        patch("pushbeacon.services.delivery_service.webpush"),
    ):
        result = send_campaign(campaign.id)

    assert result == {"sent": 1, "failed": 0}
    assert db.query(Campaign).one().status == CampaignStatus.COMPLETED


def test_send_campaign_task_unexpected_error(db, campaign, make_subscriber):
    """Test that a crashed delivery leaves the campaign queueable again."""
    make_subscriber()
    campaign_id = campaign.id

    with (
        patch("pushbeacon.tasks.campaigns.SessionLocal", return_value=db),
        patch.object(DeliveryService, "send_campaign", side_effect=RuntimeError("boom")),
    ):
        result = send_campaign(campaign_id)

    assert result == {"error": "boom"}
    assert db.query(Campaign).one().status == CampaignStatus.PAUSED


def test_send_campaign_task_missing(db):
    """Test the task with an unknown campaign."""
    with patch("pushbeacon.tasks.campaigns.SessionLocal", return_value=db):
        assert send_campaign("missing") == {"error": "Campaign not found"}


def test_process_scheduled_campaigns(db, website, campaign):
    """Test that only due scheduled campaigns are queued."""
    campaign.status = CampaignStatus.SCHEDULED
    campaign.scheduled_at = datetime.now(UTC) - timedelta(minutes=5)
    later = Campaign(
        website_id=website.id,
        name="Later",
        title="Later",
        body="Not yet",
        status=CampaignStatus.SCHEDULED,
        scheduled_at=datetime.now(UTC) + timedelta(days=1),
    )
    db.add(later)
    db.commit()
    due_id, later_id = campaign.id, later.id

    with (
        patch("pushbeacon.tasks.campaigns.SessionLocal", return_value=db),
        patch("pushbeacon.tasks.campaigns.send_campaign") as mock_task,
    ):
        result = process_scheduled_campaigns()

    assert result == {"queued": 1}
    mock_task.delay.assert_called_once_with(due_id)
    statuses = dict(db.query(Campaign.id, Campaign.status).all())
    assert statuses == {due_id: CampaignStatus.ACTIVE, later_id: CampaignStatus.SCHEDULED}


def test_send_test_notification(client, db, website, make_subscriber):
    """Test a one-off notification through the API."""
    subscriber = make_subscriber()

    with patch("pushbeacon.services.delivery_service.webpush") as mock_webpush:
        response = client.post(
            f"/api/v1/subscribers/{subscriber.id}/test",
            headers={"Authorization": f"Bearer {website.api_token}"},
            json={"title": "Hello", "body": "Test message", "clickUrl": "https://example.com"},
        )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["platform"] == "web"

    payload = json.loads(mock_webpush.call_args.kwargs["data"])
    assert payload["notificationId"] == data["notificationId"]
    assert payload["url"] == "https://example.com"

    log = db.query(NotificationLog).one()
    assert log.campaign_id is None
    assert log.status == NotificationStatus.SENT


def test_send_test_notification_expired(client, db, website, make_subscriber):
    """Test that a rejected test send reports the push service error."""
    subscriber = make_subscriber()

    with patch("pushbeacon.services.delivery_service.webpush", side_effect=push_error(410)):
        response = client.post(
            f"/api/v1/subscribers/{subscriber.id}/test",
            headers={"Authorization": f"Bearer {website.api_token}"},
            json={"title": "Hello", "body": "Test message"},
        )

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert db.query(NotificationLog).one().error_code == "SUBSCRIPTION_EXPIRED"


def test_send_test_notification_other_website(client, make_website, make_subscriber):
    """Test that subscribers of other websites are not reachable."""
    subscriber = make_subscriber()
    other = make_website("site-2")

    response = client.post(
        f"/api/v1/subscribers/{subscriber.id}/test",
        headers={"Authorization": f"Bearer {other.api_token}"},
        json={"title": "Hello", "body": "Test message"},
    )
    assert response.status_code == 404
