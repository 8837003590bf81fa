"""
SafeWatch Test Infrastructure (conftest.py)
=============================================
Provides:
  - Fixture-mode environment (demonstration data, local image storage)
  - Incident factory and a signed-in demo session
  - A started EventBus for realtime unit tests
  - FastAPI TestClient, anonymous and signed in
"""

import os
import tempfile
from datetime import datetime, timedelta

import pytest
import pytest_asyncio

# ============================================================================
# Environment must be set before app.config is imported
# ============================================================================
os.environ["DATA_SOURCE"] = "fixture"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="safewatch-test-uploads-")
os.environ["SIGN_IN_URL"] = "/auth"

from app.event_bus import EventBus  # noqa: E402
from app.models.incident import Incident  # noqa: E402
from app.services.auth import UserSession  # noqa: E402
from app.services.realtime import IncidentChannel  # noqa: E402

DEMO_TOKEN = "demo-user1"
OTHER_TOKEN = "demo-user2"


@pytest.fixture
def make_incident():
    """Factory for Incident records with sensible defaults."""
    counter = {"n": 0}
    base = datetime(2025, 3, 1, 12, 0, 0)

    def _make(**overrides) -> Incident:
        counter["n"] += 1
        data = {
            "id": f"inc-{counter['n']}",
            "title": f"Incident {counter['n']}",
            "category": "other",
            "location": "1 Main St",
            "status": "new",
            "user_id": "user1",
            "created_at": base - timedelta(hours=counter["n"]),
        }
        data.update(overrides)
        return Incident.model_validate(data)

    return _make


@pytest.fixture
def sample_incidents(make_incident):
    return [
        make_incident(category="theft", status="new"),
        make_incident(category="vandalism", status="resolved", latitude=40.75, longitude=-73.99),
        make_incident(category="theft", status="investigating", latitude=40.76, longitude=-73.98),
        make_incident(category="emergency", status="new"),
        make_incident(category="theft", status="resolved"),
    ]


@pytest.fixture
def user_session():
    return UserSession(user_id="user1", email="maria@example.com", access_token=DEMO_TOKEN)


@pytest_asyncio.fixture
async def event_bus():
    bus = EventBus()
    await bus.start()
    yield bus
    await bus.stop()


@pytest_asyncio.fixture
async def channel(event_bus):
    return IncidentChannel(event_bus)


# ============================================================================
# HTTP clients (fresh lifespan, and so fresh fixture data, per test)
# ============================================================================

@pytest.fixture
def client():
    from starlette.testclient import TestClient

    from app.main import app

    with TestClient(app, follow_redirects=False) as c:
        yield c


@pytest.fixture
def signed_in_client(client):
    client.cookies.set("sb-access-token", DEMO_TOKEN)
    return client
