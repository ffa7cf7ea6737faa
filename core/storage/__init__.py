"""
Note store facade.

One backend is chosen from StoreConfig.backend at process start and shared
by every caller. Construction is lazy: the first get_store() call builds
it, later calls return the same instance.
"""

import logging
import threading

from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import get_database_url, get_valkey_url
from core.config import BackendKind, StoreConfig, load_store_config
from core.storage.base import Clock, NoteStore
from core.storage.memory import MemoryNoteStore
from core.storage.postgres import PostgresNoteStore
from core.storage.valkey import ValkeyNoteStore
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

# Singleton instance
_store_instance: NoteStore | None = None
_store_lock = threading.Lock()


def create_store(config: StoreConfig, clock: Clock = now_utc) -> NoteStore:
    """
    Build a new store for the configured backend.

    Connection URLs missing from config are fetched from Vault.
    """
    if config.backend == BackendKind.VALKEY:
        url = config.valkey_url or get_valkey_url()
        valkey = ValkeyClient(url, timeout_seconds=config.operation_timeout_seconds)
        logger.info("Using Valkey note store")
        return ValkeyNoteStore(
            valkey,
            deleted_grace_seconds=config.deleted_grace_seconds,
            clock=clock,
        )

    if config.backend == BackendKind.POSTGRES:
        url = config.database_url or get_database_url()
        postgres = PostgresClient(
            url,
            statement_timeout_ms=int(config.operation_timeout_seconds * 1000),
        )
        store = PostgresNoteStore(postgres, clock=clock)
        store.ensure_schema()
        logger.info("Using PostgreSQL note store")
        return store

    logger.info("Using in-memory note store (data will not persist)")
    return MemoryNoteStore(clock=clock)


def get_store(config: StoreConfig | None = None) -> NoteStore:
    """
    Get the process-wide store, creating it on first use.

    `config` only matters on the first call; it defaults to the
    PINGNOTE_* environment.
    """
    global _store_instance
    if _store_instance is None:
        with _store_lock:
            if _store_instance is None:
                _store_instance = create_store(config or load_store_config())
    return _store_instance


def reset_store() -> None:
    """Close and forget the shared store (tests, shutdown)."""
    global _store_instance
    with _store_lock:
        if _store_instance is not None:
            _store_instance.close()
            _store_instance = None


__all__ = [
    "NoteStore",
    "MemoryNoteStore",
    "ValkeyNoteStore",
    "PostgresNoteStore",
    "create_store",
    "get_store",
    "reset_store",
]
