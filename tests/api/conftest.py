"""API test fixtures - app wired to an in-memory store and a controllable clock."""

import pytest
from starlette.testclient import TestClient

from api.app import create_app
from core.broadcast import LiveBroadcaster
from core.config import StoreConfig
from core.storage.memory import MemoryNoteStore


# =============================================================================
# COMPONENT FIXTURES
# =============================================================================


@pytest.fixture
def config():
    return StoreConfig(public_base_url="https://ping.test")


@pytest.fixture
def store(clock):
    return MemoryNoteStore(clock=clock)


@pytest.fixture
def broadcaster():
    return LiveBroadcaster(queue_size=8)


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(config, store, broadcaster):
    """Full app. The lifespan (and with it the sweeper) is not started."""
    return create_app(config=config, store=store, broadcaster=broadcaster)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def create_note(client):
    """POST /api/notes and return the response data."""

    def _create(**body) -> dict:
        body.setdefault("text", "hello")
        response = client.post("/api/notes", json=body)
        assert response.status_code == 200, response.text
        return response.json()["data"]

    return _create
