"""Celery tasks for campaign delivery."""

import logging
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from pushbeacon.celery_app import app as celery_app
from pushbeacon.database import SessionLocal
from pushbeacon.models import Campaign
from pushbeacon.models.enums import CampaignStatus
from pushbeacon.services.delivery_service import DeliveryService
from pushbeacon.services.exceptions import DeliveryError

logger = logging.getLogger(__name__)


@celery_app.task
def send_campaign(campaign_id: str, subscriber_ids: list[str] | None = None) -> dict:
    """Deliver one campaign now.

    Returns:
        dict with sent/failed counts, or an error
    """
    db: Session = SessionLocal()
    try:
        campaign = db.query(Campaign).filter(Campaign.id == campaign_id).first()
        if not campaign:
            logger.warning(f"Campaign {campaign_id} not found")
            return {"error": "Campaign not found"}

        campaign.status = CampaignStatus.ACTIVE
        db.commit()

        return DeliveryService().send_campaign(db, campaign, subscriber_ids)
    except DeliveryError as e:
        logger.error(f"Campaign {campaign_id} delivery failed: {e.reason}")
        _pause_campaign(db, campaign_id)
        return {"error": e.reason}
    except Exception as e:
        logger.exception(f"Error delivering campaign {campaign_id}")
        _pause_campaign(db, campaign_id)
        return {"error": str(e)}
    finally:
        db.close()


def _pause_campaign(db: Session, campaign_id: str) -> None:
    """Move an interrupted campaign out of ACTIVE so it can be queued again."""
    db.rollback()
    try:
        campaign = db.query(Campaign).filter(Campaign.id == campaign_id).first()
        if campaign and campaign.status == CampaignStatus.ACTIVE:
            campaign.status = CampaignStatus.PAUSED
            db.commit()
    except Exception as db_error:
        logger.error(f"Failed to update campaign status: {db_error}")
        db.rollback()


@celery_app.task
def process_scheduled_campaigns() -> dict:
    """Dispatch scheduled campaigns whose send time has passed.

    This task runs every minute via celery-beat.
    """
    db: Session = SessionLocal()
    try:
        now = datetime.now(UTC)
        due = (
            db.query(Campaign)
            .filter(
                Campaign.status == CampaignStatus.SCHEDULED,
                Campaign.scheduled_at <= now,
            )
            .all()
        )

        for campaign in due:
            # Claim before queueing so the next beat doesn't queue it again.
            campaign.status = CampaignStatus.ACTIVE
            db.commit()
            send_campaign.delay(campaign.id)
            logger.info(f"Queued scheduled campaign {campaign.id}")

        return {"queued": len(due)}
    finally:
        db.close()
