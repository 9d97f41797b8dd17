"""Campaign delivery endpoints, authenticated with the website API token."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from pushbeacon.api.dependencies import get_website_for_token
from pushbeacon.database import get_db
from pushbeacon.models import Campaign, Website
from pushbeacon.models.enums import CampaignStatus
from pushbeacon.schemas.website import CampaignSendResponse
from pushbeacon.tasks.campaigns import send_campaign

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/campaigns", tags=["campaigns"])


@router.post(
    "/{campaign_id}/send",
    response_model=CampaignSendResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def queue_campaign(
    campaign_id: str,
    db: Annotated[Session, Depends(get_db)],
    website: Annotated[Website, Depends(get_website_for_token)],
) -> CampaignSendResponse:
    """Queue a campaign for immediate delivery."""
    campaign = (
        db.query(Campaign)
        .filter(Campaign.id == campaign_id, Campaign.website_id == website.id)
        .first()
    )
    if not campaign:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")

    if campaign.status in (CampaignStatus.ACTIVE, CampaignStatus.COMPLETED):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Campaign is already {campaign.status.value}",
        )

    campaign.status = CampaignStatus.ACTIVE
    db.commit()

    send_campaign.delay(campaign.id)
    logger.info(f"Queued campaign {campaign.id} for website {website.id}")
    return CampaignSendResponse(campaign_id=campaign.id)
