"""
Pytest configuration and fixtures for testing
"""
import json
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from svix.webhooks import Webhook

from config.settings import Settings
from dependencies import get_clock, get_settings, get_store
from main import app
from services.entitlement_store import InMemoryEntitlementStore

TEST_WEBHOOK_SECRET = "whsec_MfKQ9r8GKYqrTwjUPD8ILPZIo2LaLaSw"
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock pinned to a fixed instant, moved forward explicitly."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


def sign_payload(payload: dict, secret: str = TEST_WEBHOOK_SECRET, msg_id: str = "msg_test"):
    """Serialize ``payload`` and build Standard Webhooks headers for it."""
    body = json.dumps(payload)
    timestamp = datetime.now(timezone.utc)
    signature = Webhook(secret).sign(msg_id, timestamp, body)
    headers = {
        "webhook-id": msg_id,
        "webhook-timestamp": str(int(timestamp.timestamp())),
        "webhook-signature": signature,
        "content-type": "application/json",
    }
    return body, headers


def webhook_payload(event_type: str, email=None, timestamp: datetime = NOW, **data):
    if email is not None:
        data["customer"] = {"email": email}
    return {
        "business_id": "bus_test",
        "type": event_type,
        "timestamp": timestamp.isoformat(),
        "data": data,
    }


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        DODO_PAYMENTS_WEBHOOK_KEY=TEST_WEBHOOK_SECRET,
        DODO_PAYMENTS_ENVIRONMENT="test_mode",
        DODO_PAYMENTS_RETURN_URL=None,
        DODO_PAYMENTS_PRODUCT_ID="pdt_test",
        REDIS_URL=None,
        TRIAL_DURATION_HOURS=24,
    )


@pytest.fixture
def store():
    return InMemoryEntitlementStore()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def client(store, clock, test_settings):
    """FastAPI TestClient with the in-memory store, frozen clock and test settings"""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_settings] = lambda: test_settings

    test_client = TestClient(app)

    yield test_client

    # Cleanup: remove dependency overrides
    app.dependency_overrides.clear()
