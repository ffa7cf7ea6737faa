"""
Live-update fan-out for live-mode notes.

In-process registry of open subscriber channels per token. A live edit is
published once and copied into every channel registered for that token.
Delivery is fire-and-forget: a channel that is closed or full is dropped
from the registry, the publisher never blocks. The registry is not a
source of truth - a viewer that misses an update re-fetches the note.
"""

import logging
import queue
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, Set

from core.models import NotePayload
from utils.timezone import now_utc, to_epoch_ms

logger = logging.getLogger(__name__)


class Subscription:
    """
    One viewer's channel.

    Owned by the subscriber; the broadcaster only pushes into it. Reading
    blocks up to `timeout` and returns None on timeout or once closed.
    `on_message` runs in the publishing thread after every accepted message
    and on close, so a reader waiting elsewhere (e.g. an event loop) can be
    woken instead of polling.
    """

    def __init__(self, token: str, queue_size: int, on_message: Callable[[], None] | None = None):
        self.token = token
        self._on_message = on_message
        self._queue: "queue.Queue[Dict[str, Any] | None]" = queue.Queue(maxsize=queue_size)
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def offer(self, message: Dict[str, Any]) -> bool:
        """Enqueue without blocking. False if closed or full."""
        if self.closed:
            return False
        try:
            self._queue.put_nowait(message)
        except queue.Full:
            return False
        return self._notify()

    def pending(self) -> bool:
        """True if get() would return without waiting."""
        return self.closed or not self._queue.empty()

    def get(self, timeout: float | None = None) -> Dict[str, Any] | None:
        """Next message, or None on timeout / close."""
        if self.closed and self._queue.empty():
            return None
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self) -> None:
        """Mark closed and wake a reader blocked in get()."""
        self._closed.set()
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass
        self._notify()

    def _notify(self) -> bool:
        if self._on_message is None:
            return True
        try:
            self._on_message()
        except RuntimeError:
            # Reader's event loop already closed
            return False
        return True


class LiveBroadcaster:
    """
    Registry token -> open subscriptions.

    Safe to use from many threads. Construct one per process (or per test)
    and hand it to whoever publishes and subscribes.
    """

    def __init__(self, queue_size: int = 64, clock: Callable[[], datetime] = now_utc):
        self._queue_size = queue_size
        self._clock = clock
        self._subscribers: Dict[str, Set[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, token: str, on_message: Callable[[], None] | None = None) -> Subscription:
        """Register a new channel for `token`. See Subscription for `on_message`."""
        subscription = Subscription(token, self._queue_size, on_message)
        with self._lock:
            self._subscribers.setdefault(token, set()).add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """
        Remove and close a channel. Idempotent.

        The token entry goes away with its last subscriber.
        """
        with self._lock:
            self._discard(subscription)
        subscription.close()

    def _discard(self, subscription: Subscription) -> None:
        # Caller holds self._lock
        subscribers = self._subscribers.get(subscription.token)
        if subscribers is None:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscribers[subscription.token]

    @contextmanager
    def subscription(self, token: str) -> Iterator[Subscription]:
        """Subscribe for the duration of a with-block."""
        subscription = self.subscribe(token)
        try:
            yield subscription
        finally:
            self.unsubscribe(subscription)

    def publish(self, token: str, payload: NotePayload) -> int:
        """
        Push an update to every subscriber of `token`.

        Channels that refuse the message are dropped.
        Returns the number of channels that accepted it.
        """
        message = {
            "type": "update",
            "payload": payload.model_dump(exclude_none=True),
            "timestamp": self.timestamp(),
        }

        with self._lock:
            subscribers = list(self._subscribers.get(token, ()))

        delivered = 0
        dropped = []
        for subscription in subscribers:
            if subscription.offer(message):
                delivered += 1
            else:
                dropped.append(subscription)

        if dropped:
            logger.warning(f"Dropping {len(dropped)} unresponsive live subscribers for a note")
            for subscription in dropped:
                self.unsubscribe(subscription)

        return delivered

    def timestamp(self) -> int:
        """Current time from the broadcaster's clock, in epoch milliseconds."""
        return to_epoch_ms(self._clock())

    def subscriber_count(self, token: str) -> int:
        with self._lock:
            return len(self._subscribers.get(token, ()))
