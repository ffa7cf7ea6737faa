"""
Periodic cleanup of dead notes.

Backends without native expiry (memory, PostgreSQL) keep expired, deleted
and consumed records until something removes them. The sweeper calls
cleanup() on a fixed interval from a daemon thread. It is best-effort:
readers compute visibility from the current time, so a late or failed
sweep only delays reclaiming storage.
"""

import logging
import threading

from core.storage.base import NoteStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Background thread that runs store.cleanup() every `interval_seconds`.

    Usage:
        sweeper = ExpirySweeper(store, interval_seconds=60)
        sweeper.start()
        ...
        sweeper.stop()
    """

    def __init__(self, store: NoteStore, interval_seconds: float):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._store = store
        self._interval = interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> int:
        """
        Run one cleanup pass.

        Errors are logged, never raised - the next tick retries.
        Returns the number of records removed (0 on failure).
        """
        try:
            return self._store.cleanup()
        except Exception:
            logger.exception(f"Cleanup failed on {self._store.name} store")
            return 0

    def start(self) -> None:
        """Start the sweeper thread. No-op for natively expiring stores or if already running."""
        if self._store.native_expiry:
            logger.info(f"{self._store.name} store expires natively; sweeper not started")
            return
        if self.running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name=f"note-sweeper-{self._store.name}",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Sweeper started (every {self._interval}s)")

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the thread to exit and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
            logger.info("Sweeper stopped")

    def _loop(self) -> None:
        # wait() returns True once stop() is called
        while not self._stop_event.wait(self._interval):
            self.run_once()
