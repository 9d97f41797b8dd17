"""Pytest configuration and fixtures."""

import os
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from pushbeacon.client.config import ReconcilerConfig
from pushbeacon.client.platform import PermissionState, PlatformError
from pushbeacon.database import Base, get_db
from pushbeacon.main import app
from pushbeacon.models import Campaign, Website
from pushbeacon.models.enums import CampaignStatus, WebsiteStatus
from pushbeacon.services.vapid import decode_base64url, generate_vapid_key_pair

CHROME_ANDROID_UA = (
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Mobile Safari/537.36"
)

# Use test database - PostgreSQL in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    # Running in Docker - use PostgreSQL test database
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").rsplit("/", 1)[0] + "/pushbeacon_test"
else:
    # Running locally - use SQLite
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        from sqlalchemy_utils import create_database, database_exists

        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture(scope="function")
def client(db):
    """Create a test client with database override."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(scope="session")
def vapid_keys():
    """One VAPID key pair shared by the whole session."""
    return generate_vapid_key_pair()


@pytest.fixture
def make_website(db, vapid_keys):
    """Factory creating websites with a given status."""

    def _make(
        website_id: str = "site-1",
        status: WebsiteStatus = WebsiteStatus.ACTIVE,
        api_token: str | None = None,
    ) -> Website:
        website = Website(
            id=website_id,
            name=f"Website {website_id}",
            url=f"https://{website_id}.example.com",
            vapid_public_key=vapid_keys.public_key,
            vapid_private_key=vapid_keys.private_key,
            api_token=api_token or f"token-{website_id}",
            status=status,
        )
        db.add(website)
        db.commit()
        db.refresh(website)
        return website

    return _make


@pytest.fixture
def website(make_website):
    """An active website."""
    return make_website()


@pytest.fixture
def campaign(db, website):
    """A draft campaign for the active website."""
    campaign = Campaign(
        website_id=website.id,
        name="Spring sale",
        title="Sale starts now",
        body="Everything 20% off",
        click_url="https://site-1.example.com/sale",
        status=CampaignStatus.DRAFT,
    )
    db.add(campaign)
    db.commit()
    db.refresh(campaign)
    return campaign


@pytest.fixture
def client_config(vapid_keys):
    """Service worker configuration for the test website."""
    return ReconcilerConfig(
        website_id="site-1",
        vapid_public_key=vapid_keys.public_key,
        api_url="http://testserver",
    )


class FakeSubscription:
    """In-memory push subscription owned by a FakePushPlatform."""

    def __init__(self, platform: "FakePushPlatform", key: bytes | None, endpoint: str):
        self._platform = platform
        self.endpoint = endpoint
        self.keys = {"p256dh": f"p256dh-{endpoint[-4:]}", "auth": f"auth-{endpoint[-4:]}"}
        self.application_server_key = key

    async def unsubscribe(self) -> bool:
        self._platform.unsubscribe_calls += 1
        if self._platform.unsubscribe_failures > 0:
            self._platform.unsubscribe_failures -= 1
            if self._platform.unsubscribe_error is not None:
                raise self._platform.unsubscribe_error
            return False
        if self._platform.current is self:
            self._platform.current = None
            return True
        return False


class FakePushPlatform:
    """Scriptable stand-in for the browser's Notification and PushManager APIs.

    ``hidden_conflict`` makes the first subscribe fail with InvalidStateError
    while leaving behind a subscription that only shows up afterwards.
    ``unsubscribe_failures`` unsubscribe calls fail before one succeeds, raising
    ``unsubscribe_error`` when set. ``read_errors`` are raised by successive
    ``get_subscription`` calls, ``None`` entries read normally.
    """

    def __init__(
        self,
        permission: PermissionState = PermissionState.GRANTED,
        request_result: PermissionState = PermissionState.GRANTED,
        supported: bool = True,
        hidden_conflict: bool = False,
        subscribe_error: PlatformError | None = None,
        unsubscribe_failures: int = 0,
        unsubscribe_error: PlatformError | None = None,
        read_errors: list[PlatformError | None] | None = None,
        user_agent: str = CHROME_ANDROID_UA,
    ):
        self.permission = permission
        self.request_result = request_result
        self.supported = supported
        self.hidden_conflict = hidden_conflict
        self.subscribe_error = subscribe_error
        self.unsubscribe_failures = unsubscribe_failures
        self.unsubscribe_error = unsubscribe_error
        self.read_errors = list(read_errors or [])
        self.user_agent = user_agent
        self.language = "en-US"
        self.timezone = "Europe/Berlin"

        self.current: FakeSubscription | None = None
        self.permission_requests = 0
        self.subscribe_calls: list[bytes] = []
        self.unsubscribe_calls = 0
        self.notifications: list[tuple[str, dict[str, Any]]] = []
        self.opened_urls: list[str] = []
        self._counter = 0

    def existing(self, key: bytes | str | None) -> FakeSubscription:
        """Install a subscription as if created by an earlier page load."""
        if isinstance(key, str):
            key = decode_base64url(key)
        self.current = self._new_subscription(key)
        return self.current

    def _new_subscription(self, key: bytes | None) -> FakeSubscription:
        self._counter += 1
        return FakeSubscription(self, key, f"https://push.example.com/send/{self._counter:04d}")

    def is_supported(self) -> bool:
        return self.supported

    async def permission_state(self) -> PermissionState:
        return self.permission

    async def request_permission(self) -> PermissionState:
        self.permission_requests += 1
        self.permission = self.request_result
        return self.permission

    async def get_subscription(self) -> FakeSubscription | None:
        error = self.read_errors.pop(0) if self.read_errors else None
        if error is not None:
            raise error
        return self.current

    async def subscribe(
        self, application_server_key: bytes, user_visible_only: bool = True
    ) -> FakeSubscription:
        self.subscribe_calls.append(application_server_key)
        if self.subscribe_error is not None:
            raise self.subscribe_error
        if self.hidden_conflict:
            self.hidden_conflict = False
            self.current = self._new_subscription(b"\x04" + b"\x01" * 64)
            raise PlatformError(PlatformError.INVALID_STATE, "Stale subscription exists")
        if self.current is not None:
            raise PlatformError(PlatformError.INVALID_STATE, "Already subscribed")
        self.current = self._new_subscription(application_server_key)
        return self.current

    async def show_notification(self, title: str, options: dict[str, Any]) -> None:
        self.notifications.append((title, options))

    async def open_window(self, url: str) -> None:
        self.opened_urls.append(url)


class FakeBackend:
    """Records registration and tracking calls instead of making HTTP requests."""

    def __init__(self, register_error: Exception | None = None):
        self.register_error = register_error
        self.registrations: list[dict] = []
        self.tracked: list[tuple[str, str, str, str | None]] = []

    async def register(self, payload: dict) -> str:
        self.registrations.append(payload)
        if self.register_error is not None:
            raise self.register_error
        return f"subscriber-{len(self.registrations)}"

    async def track(self, website_id, notification_id, event, action=None) -> bool:
        self.tracked.append((website_id, notification_id, event, action))
        return True


@pytest.fixture
def push_platform():
    """Factory for fake push platforms."""
    return FakePushPlatform


@pytest.fixture
def fake_backend():
    """Factory for recording backends."""
    return FakeBackend
