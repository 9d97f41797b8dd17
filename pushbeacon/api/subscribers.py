"""Subscriber endpoints: public registration and token-protected test sends."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from pushbeacon.api.dependencies import (
    get_delivery_service,
    get_json_body,
    get_registration_service,
    get_website_for_token,
)
from pushbeacon.database import get_db
from pushbeacon.models import Subscriber, Website
from pushbeacon.models.enums import NotificationStatus
from pushbeacon.schemas.registration import RegistrationResponse
from pushbeacon.schemas.website import SendTestRequest, SendTestResponse
from pushbeacon.services.delivery_service import DeliveryService
from pushbeacon.services.registration_service import RegistrationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/subscribers", tags=["subscribers"])

# Path used by integration snippets generated before the versioned API
legacy_router = APIRouter(prefix="/api/subscribers", tags=["subscribers"])


@router.post("/register", response_model=RegistrationResponse)
@legacy_router.post("/register", response_model=RegistrationResponse, include_in_schema=False)
async def register_subscriber(
    body: Annotated[Any, Depends(get_json_body)],
    service: Annotated[RegistrationService, Depends(get_registration_service)],
) -> RegistrationResponse:
    """Register (or refresh) a push subscriber for a website."""
    subscriber = service.register(body)
    return RegistrationResponse(subscriber_id=subscriber.id)


@router.post("/unsubscribe")
async def unsubscribe_subscriber(
    body: Annotated[Any, Depends(get_json_body)],
    service: Annotated[RegistrationService, Depends(get_registration_service)],
) -> dict:
    """Mark a subscriber as unsubscribed."""
    subscriber = service.unsubscribe(body)
    return {"success": True, "subscriberId": subscriber.id, "status": subscriber.status.value}


@router.post("/{subscriber_id}/test", response_model=SendTestResponse)
def send_test_notification(
    subscriber_id: str,
    request: SendTestRequest,
    db: Annotated[Session, Depends(get_db)],
    website: Annotated[Website, Depends(get_website_for_token)],
    delivery: Annotated[DeliveryService, Depends(get_delivery_service)],
) -> SendTestResponse:
    """Send a test notification to one of the website's subscribers."""
    subscriber = (
        db.query(Subscriber)
        .filter(Subscriber.id == subscriber_id, Subscriber.website_id == website.id)
        .first()
    )
    if not subscriber:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subscriber not found")

    log = delivery.send_test(
        db,
        website,
        subscriber,
        title=request.title,
        body=request.body,
        icon_url=request.icon_url,
        image_url=request.image_url,
        click_url=request.click_url,
    )
    success = log.status == NotificationStatus.SENT
    return SendTestResponse(
        success=success,
        message="Notification sent" if success else (log.error_message or "Delivery failed"),
        platform=log.platform,
        notification_id=log.id,
    )
