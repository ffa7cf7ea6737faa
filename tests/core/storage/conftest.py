"""Store fixtures: every contract test runs once per backend."""

import pytest

from core.storage.memory import MemoryNoteStore


@pytest.fixture(params=["memory", "valkey", "postgres"])
def store(request, clock):
    """A NoteStore on each backend, sharing the test's FakeClock.

    Valkey and PostgreSQL variants are skipped when the service is not configured.
    """
    if request.param == "memory":
        yield MemoryNoteStore(clock=clock)
        return

    if request.param == "valkey":
        from core.storage.valkey import ValkeyNoteStore

        valkey = request.getfixturevalue("clean_valkey")
        yield ValkeyNoteStore(valkey, deleted_grace_seconds=60, clock=clock)
        return

    from core.storage.postgres import PostgresNoteStore

    db = request.getfixturevalue("clean_db")
    yield PostgresNoteStore(db, clock=clock)


@pytest.fixture
def sweepable_store(store):
    """Only backends that rely on cleanup() to reclaim records."""
    if store.native_expiry:
        pytest.skip(f"{store.name} expires records natively")
    return store
