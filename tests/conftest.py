"""Shared test fixtures for the note store test suite."""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
from clients.vault_client import reset_vault_client
reset_vault_client()

from core.models import NoteCreate


# =============================================================================
# CLOCK
# =============================================================================


class FakeClock:
    """Controllable clock handed to stores in place of now_utc."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# NOTE INPUTS
# =============================================================================


@pytest.fixture
def make_note_input():
    """Factory for NoteCreate with sensible defaults."""

    def _make(**overrides) -> NoteCreate:
        values = {
            "text": "Test note",
            "ttl_seconds": 600,
            "one_time": False,
            "e2ee": False,
            "live_mode": False,
        }
        values.update(overrides)
        return NoteCreate(**values)

    return _make


# =============================================================================
# SERVICE URLS
# =============================================================================


def _service_url(env_var: str, vault_getter) -> str:
    """
    URL of a backing service for integration tests.

    Taken from the environment (or .env), else from Vault. Skips the test
    when neither is configured.
    """
    url = os.getenv(env_var)
    if url:
        return url
    try:
        return vault_getter()
    except Exception as e:
        pytest.skip(f"{env_var} not set and Vault unavailable: {e}")


@pytest.fixture(scope="session")
def valkey_url():
    from clients.vault_client import get_valkey_url
    return _service_url("PINGNOTE_VALKEY_URL", get_valkey_url)


@pytest.fixture(scope="session")
def database_url():
    from clients.vault_client import get_database_url
    return _service_url("PINGNOTE_DATABASE_URL", get_database_url)


# =============================================================================
# VALKEY FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def valkey(valkey_url):
    """Session-scoped ValkeyClient."""
    import redis
    from clients.valkey_client import ValkeyClient

    try:
        client = ValkeyClient(valkey_url, timeout_seconds=5)
    except redis.ConnectionError as e:
        pytest.skip(f"Valkey unreachable: {e}")
    yield client
    client.close()


@pytest.fixture
def clean_valkey(valkey):
    """ValkeyClient with note keys removed before and after the test."""

    def _flush():
        for pattern in ("note:*", "code:*"):
            for key in valkey._client.scan_iter(pattern):
                valkey._client.delete(key)

    _flush()
    yield valkey
    _flush()


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def db(database_url):
    """Session-scoped PostgresClient with the notes schema in place."""
    import psycopg2
    from clients.postgres_client import PostgresClient
    from core.storage.postgres import SCHEMA_SQL

    try:
        client = PostgresClient(database_url)
    except psycopg2.OperationalError as e:
        pytest.skip(f"PostgreSQL unreachable: {e}")
    client.execute(SCHEMA_SQL)
    yield client
    client.close()


@pytest.fixture
def clean_db(db):
    """PostgresClient with an empty notes table."""
    db.execute("TRUNCATE notes")
    yield db
    db.execute("TRUNCATE notes")
