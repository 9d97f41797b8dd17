"""FastAPI dependencies for request parsing, services and API tokens."""

import logging
import secrets
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from pushbeacon.database import get_db
from pushbeacon.models import Website
from pushbeacon.services.delivery_service import DeliveryService
from pushbeacon.services.exceptions import ServiceError
from pushbeacon.services.registration_service import RegistrationService
from pushbeacon.services.tracking_service import TrackingService

logger = logging.getLogger(__name__)

security = HTTPBearer()


async def get_json_body(request: Request) -> Any:
    """Decode the request body, rejecting malformed JSON before validation."""
    try:
        return await request.json()
    except ValueError as e:
        logger.warning(f"Malformed JSON body on {request.url.path}: {e}")
        raise ServiceError("Invalid JSON body") from e


def get_website_for_token(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> Website:
    """Get the website owning the bearer API token."""
    token = credentials.credentials
    website = db.query(Website).filter(Website.api_token == token).first()

    if website is None or not secrets.compare_digest(website.api_token, token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return website


def get_registration_service(
    db: Annotated[Session, Depends(get_db)],
) -> RegistrationService:
    """Get registration service with dependencies."""
    return RegistrationService(db)


def get_tracking_service(
    db: Annotated[Session, Depends(get_db)],
) -> TrackingService:
    """Get tracking service with dependencies."""
    return TrackingService(db)


def get_delivery_service() -> DeliveryService:
    """Get delivery service instance."""
    return DeliveryService()
