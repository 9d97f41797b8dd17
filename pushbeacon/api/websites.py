"""Website integration endpoints."""

from typing import Annotated
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from pushbeacon.config import get_settings
from pushbeacon.database import get_db
from pushbeacon.models import Website
from pushbeacon.models.enums import WebsiteStatus
from pushbeacon.schemas.website import WebsiteConfigResponse
from pushbeacon.services.vapid import normalize_key

router = APIRouter(prefix="/api/v1/websites", tags=["websites"])

SERVICE_WORKER_PATH = "/service-worker.js"


@router.get("/{website_id}/config", response_model=WebsiteConfigResponse)
async def get_website_config(
    website_id: str,
    db: Annotated[Session, Depends(get_db)],
) -> WebsiteConfigResponse:
    """Get the values a service worker needs to subscribe for a website.

    The service worker URL carries the same values as query parameters for
    integrations that configure the worker from its own URL.
    """
    website = db.query(Website).filter(Website.id == website_id).first()
    if not website or website.status == WebsiteStatus.INACTIVE:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Website not found")

    api_url = get_settings().public_api_url.rstrip("/")
    vapid_public_key = normalize_key(website.vapid_public_key)
    query = urlencode(
        {"websiteId": website.id, "vapidPublicKey": vapid_public_key, "apiUrl": api_url}
    )

    return WebsiteConfigResponse(
        website_id=website.id,
        vapid_public_key=vapid_public_key,
        api_url=api_url,
        service_worker_url=f"{SERVICE_WORKER_PATH}?{query}",
    )
