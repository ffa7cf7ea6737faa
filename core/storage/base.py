"""
Note store contract shared by every backend.

A backend persists Note records keyed by token, keeps a short code -> token
index, and guarantees that a consuming read of a one-time note succeeds at
most once no matter how many callers race for it. Lifecycle outcomes come
back as NoteError values; only infrastructure failures raise.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable

from core.identifiers import normalize_short_code
from core.models import CreateNoteResult, GetNoteResult, NoteCreate, NotePayload
from utils.timezone import now_utc

Clock = Callable[[], datetime]


class NoteStore(ABC):
    """Abstract note store. One instance is shared by all request threads."""

    #: Backend name used in logs and StorageUnavailableError.
    name: str = "abstract"

    #: True when the medium reclaims expired records itself (no sweeper needed).
    native_expiry: bool = False

    def __init__(self, clock: Clock = now_utc):
        self._clock = clock

    def _now(self) -> datetime:
        """Current time, truncated to milliseconds so every backend agrees."""
        now = self._clock()
        return now.replace(microsecond=now.microsecond - now.microsecond % 1000)

    @staticmethod
    def _normalize(short_code: str) -> str:
        return normalize_short_code(short_code)

    @abstractmethod
    def create_note(self, data: NoteCreate, token: str, short_code: str) -> CreateNoteResult:
        """
        Persist a new note indexed by token and short code.

        Raises:
            IdentifierConflictError: token or short code already taken.
        """

    @abstractmethod
    def get_note(self, token: str, consume: bool) -> GetNoteResult:
        """
        Read a note, optionally consuming it.

        When `consume` is true and the note is visible, view_count is
        incremented and one-time notes are marked consumed in the same
        atomic step as the read.
        """

    @abstractmethod
    def get_token_by_short_code(self, short_code: str) -> str | None:
        """Resolve a short code (any case) to the token of a visible note."""

    @abstractmethod
    def delete_note(self, token: str) -> bool:
        """Mark a note deleted. False if missing or already deleted."""

    @abstractmethod
    def update_note_content(self, token: str, payload: NotePayload) -> bool:
        """
        Replace the payload fields that are not None on `payload`.

        Fields left as None keep their stored value. Expiry is not reset.
        False if the note is missing or deleted.
        """

    def cleanup(self) -> int:
        """Remove expired, deleted and consumed records. Returns the count removed."""
        return 0

    def close(self) -> None:
        """Release connections. Safe to call more than once."""
