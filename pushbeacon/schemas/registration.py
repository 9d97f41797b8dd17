"""Subscriber registration schemas.

Clients send one of two body shapes: the nested form produced by
``PushSubscription.toJSON()`` (``subscription.endpoint``,
``subscription.keys.p256dh``...) or a flattened form with ``endpoint``,
``p256dh`` and ``auth`` at the top level. Both are normalized into a single
``NormalizedRegistration`` before anything touches the database.
"""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pushbeacon.models.enums import DeviceType, Platform

WEBSITE_ID_MAX_LENGTH = 64
ENDPOINT_MAX_LENGTH = 2048
P256DH_MAX_LENGTH = 256
AUTH_MAX_LENGTH = 128
TOKEN_MAX_LENGTH = 512
USER_AGENT_MAX_LENGTH = 1024
SHORT_FIELD_MAX_LENGTH = 64


class SubscriptionKeys(BaseModel):
    """Client encryption keys of a web push subscription."""

    model_config = ConfigDict(extra="ignore")

    p256dh: str | None = Field(None, max_length=P256DH_MAX_LENGTH)
    auth: str | None = Field(None, max_length=AUTH_MAX_LENGTH)


class WebPushSubscriptionIn(BaseModel):
    """Nested subscription object as serialized by the browser."""

    model_config = ConfigDict(extra="ignore")

    endpoint: str = Field(..., max_length=ENDPOINT_MAX_LENGTH)
    keys: SubscriptionKeys | None = None


class RegistrationRequest(BaseModel):
    """Raw registration body, accepting both nested and flattened shapes."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    website_id: str = Field(
        ..., alias="websiteId", min_length=1, max_length=WEBSITE_ID_MAX_LENGTH
    )

    # Nested shape
    subscription: WebPushSubscriptionIn | None = None

    # Flattened shape
    endpoint: str | None = Field(None, max_length=ENDPOINT_MAX_LENGTH)
    p256dh: str | None = Field(None, max_length=P256DH_MAX_LENGTH)
    auth: str | None = Field(None, max_length=AUTH_MAX_LENGTH)

    # Mobile tokens
    fcm_token: str | None = Field(None, alias="fcmToken", max_length=TOKEN_MAX_LENGTH)
    apns_token: str | None = Field(None, alias="apnsToken", max_length=TOKEN_MAX_LENGTH)

    # Device context
    user_agent: str | None = Field(None, alias="userAgent", max_length=USER_AGENT_MAX_LENGTH)
    language: str | None = Field(None, max_length=SHORT_FIELD_MAX_LENGTH)
    timezone: str | None = Field(None, max_length=SHORT_FIELD_MAX_LENGTH)
    browser: str | None = Field(None, max_length=SHORT_FIELD_MAX_LENGTH)
    browser_version: str | None = Field(
        None, alias="browserVersion", max_length=SHORT_FIELD_MAX_LENGTH
    )
    device_type: DeviceType | None = Field(None, alias="deviceType")
    os: str | None = Field(None, max_length=SHORT_FIELD_MAX_LENGTH)
    platform: Platform | None = None

    @field_validator("device_type", "platform", mode="before")
    @classmethod
    def drop_unknown_hint(cls, value, info):
        """Ignore unrecognised hints so the user agent or the default decides."""
        enum = DeviceType if info.field_name == "device_type" else Platform
        if isinstance(value, str) and value in {member.value for member in enum}:
            return value
        return None


class RegistrationShape(str, Enum):
    """Which body shape carried the subscription."""

    NESTED = "nested"
    FLAT = "flat"
    TOKEN = "token"
    NONE = "none"


@dataclass(frozen=True)
class NormalizedRegistration:
    """Canonical registration used by the service layer."""

    website_id: str
    shape: RegistrationShape
    endpoint: str | None = None
    p256dh: str | None = None
    auth: str | None = None
    fcm_token: str | None = None
    apns_token: str | None = None
    user_agent: str | None = None
    language: str | None = None
    timezone: str | None = None
    browser: str | None = None
    browser_version: str | None = None
    device_type: DeviceType | None = None
    os: str | None = None
    platform_hint: Platform | None = None

    @property
    def has_subscription_method(self) -> bool:
        """Check if at least one way to reach the subscriber was provided."""
        return bool(self.endpoint or self.fcm_token or self.apns_token)

    @property
    def platform(self) -> Platform:
        """Derive the platform from the token present, then the hint."""
        if self.apns_token:
            return Platform.IOS
        if self.fcm_token:
            return Platform.ANDROID
        return self.platform_hint or Platform.WEB


def normalize_registration(request: RegistrationRequest) -> NormalizedRegistration:
    """Collapse the accepted body shapes into one NormalizedRegistration."""
    if request.subscription is not None and request.subscription.endpoint:
        keys = request.subscription.keys or SubscriptionKeys()
        shape = RegistrationShape.NESTED
        endpoint, p256dh, auth = request.subscription.endpoint, keys.p256dh, keys.auth
    elif request.endpoint:
        shape = RegistrationShape.FLAT
        endpoint, p256dh, auth = request.endpoint, request.p256dh, request.auth
    else:
        shape = (
            RegistrationShape.TOKEN
            if request.fcm_token or request.apns_token
            else RegistrationShape.NONE
        )
        endpoint = p256dh = auth = None

    return NormalizedRegistration(
        website_id=request.website_id,
        shape=shape,
        endpoint=endpoint,
        p256dh=p256dh or None,
        auth=auth or None,
        fcm_token=request.fcm_token or None,
        apns_token=request.apns_token or None,
        user_agent=request.user_agent,
        language=request.language or None,
        timezone=request.timezone or None,
        browser=request.browser or None,
        browser_version=request.browser_version or None,
        device_type=request.device_type,
        os=request.os or None,
        platform_hint=request.platform,
    )


class RegistrationResponse(BaseModel):
    """Successful registration response."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    subscriber_id: str = Field(..., alias="subscriberId")
    message: str = "Subscriber registered successfully"


class UnsubscribeRequest(BaseModel):
    """Explicit removal of a web push subscriber."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    website_id: str = Field(
        ..., alias="websiteId", min_length=1, max_length=WEBSITE_ID_MAX_LENGTH
    )
    endpoint: str = Field(..., min_length=1, max_length=ENDPOINT_MAX_LENGTH)


def describe_validation_error(exc: ValidationError) -> str:
    """Turn the first pydantic error into a specific, client-facing reason."""
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error["loc"]) or "body"
    kind = error["type"]
    ctx = error.get("ctx", {})

    if kind == "missing":
        return f"{field} is required"
    if kind == "string_too_long":
        return f"{field} must be at most {ctx.get('max_length')} characters"
    if kind == "string_too_short":
        return f"{field} must not be empty"
    if kind == "string_type":
        return f"{field} must be a string"
    if kind in ("model_type", "model_attributes_type", "dict_type"):
        return f"{field} must be an object"
    return f"{field}: {error['msg']}"
