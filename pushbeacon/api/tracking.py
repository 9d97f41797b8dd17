"""Public notification tracking endpoints called by service workers."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from pushbeacon.api.dependencies import get_json_body, get_tracking_service
from pushbeacon.schemas.tracking import TrackEventResponse
from pushbeacon.services.tracking_service import TrackingService

router = APIRouter(prefix="/api/v1/notifications", tags=["tracking"])


@router.post("/track", response_model=TrackEventResponse)
async def track_notification(
    body: Annotated[Any, Depends(get_json_body)],
    service: Annotated[TrackingService, Depends(get_tracking_service)],
) -> TrackEventResponse:
    """Track an event named in the body."""
    _, event = service.track(body)
    return TrackEventResponse(event=event.value)


@router.post("/track/{event}", response_model=TrackEventResponse)
async def track_notification_event(
    event: str,
    body: Annotated[Any, Depends(get_json_body)],
    service: Annotated[TrackingService, Depends(get_tracking_service)],
) -> TrackEventResponse:
    """Track an event named in the path (delivered, clicked, dismissed)."""
    _, tracked = service.track(body, event)
    return TrackEventResponse(event=tracked.value)
