"""Website integration schemas."""

from pydantic import BaseModel, ConfigDict, Field


class WebsiteConfigResponse(BaseModel):
    """Values a service worker needs to reconcile its subscription."""

    model_config = ConfigDict(populate_by_name=True)

    website_id: str = Field(..., alias="websiteId")
    vapid_public_key: str = Field(..., alias="vapidPublicKey")
    api_url: str = Field(..., alias="apiUrl")
    service_worker_url: str = Field(..., alias="serviceWorkerUrl")


class CampaignSendResponse(BaseModel):
    """Acknowledgement that a campaign was queued for delivery."""

    model_config = ConfigDict(populate_by_name=True)

    campaign_id: str = Field(..., alias="campaignId")
    queued: bool = True


class SendTestRequest(BaseModel):
    """One-off notification to a single subscriber."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., min_length=1, max_length=1000)
    icon_url: str | None = Field(None, alias="iconUrl", max_length=2048)
    image_url: str | None = Field(None, alias="imageUrl", max_length=2048)
    click_url: str | None = Field(None, alias="clickUrl", max_length=2048)


class SendTestResponse(BaseModel):
    """Outcome of a one-off notification."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    platform: str
    notification_id: str = Field(..., alias="notificationId")
