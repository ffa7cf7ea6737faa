"""
In-process note store.

Records live in a dict keyed by token plus a short code -> token index,
both guarded by one lock. Nothing expires on its own: the expiry sweeper
must call cleanup() periodically. State is lost on restart, so this
backend only suits single-process deployments and tests.
"""

import logging
import threading
from datetime import timedelta
from typing import Dict
from uuid import uuid4

from core.exceptions import IdentifierConflictError
from core.models import CreateNoteResult, GetNoteResult, Note, NoteCreate, NoteError, NotePayload
from core.storage.base import Clock, NoteStore
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class MemoryNoteStore(NoteStore):
    """Dict-backed store. Callers always get copies, never the stored objects."""

    name = "memory"

    def __init__(self, clock: Clock = now_utc):
        super().__init__(clock)
        self._notes: Dict[str, Note] = {}
        self._short_codes: Dict[str, str] = {}
        self._lock = threading.RLock()

    def create_note(self, data: NoteCreate, token: str, short_code: str) -> CreateNoteResult:
        short_code = self._normalize(short_code)
        now = self._now()
        note = Note(
            id=uuid4(),
            token=token,
            short_code=short_code,
            created_at=now,
            expires_at=now + timedelta(seconds=data.ttl_seconds),
            one_time=data.one_time,
            live_mode=data.live_mode,
            e2ee=data.e2ee,
            payload=data.to_payload(),
        )

        with self._lock:
            if token in self._notes or short_code in self._short_codes:
                raise IdentifierConflictError("Token or short code already in use")
            self._notes[token] = note
            self._short_codes[short_code] = token

        return CreateNoteResult(token=token, short_code=short_code, expires_at=note.expires_at)

    def get_note(self, token: str, consume: bool) -> GetNoteResult:
        with self._lock:
            note = self._notes.get(token)
            if note is None:
                return GetNoteResult.failed(NoteError.NOT_FOUND)

            error = note.visibility_error(self._now())
            if error is not None:
                return GetNoteResult.failed(error)

            if consume:
                note.view_count += 1
                if note.one_time:
                    note.consumed = True

            return GetNoteResult.found(note.model_copy(deep=True))

    def get_token_by_short_code(self, short_code: str) -> str | None:
        with self._lock:
            token = self._short_codes.get(self._normalize(short_code))
            if token is None:
                return None
            note = self._notes.get(token)
            if note is None or not note.is_visible(self._now()):
                return None
            return token

    def delete_note(self, token: str) -> bool:
        with self._lock:
            note = self._notes.get(token)
            if note is None or note.deleted_at is not None:
                return False
            note.deleted_at = self._now()
            return True

    def update_note_content(self, token: str, payload: NotePayload) -> bool:
        changes = payload.model_dump(exclude_none=True)
        with self._lock:
            note = self._notes.get(token)
            if note is None or note.deleted_at is not None:
                return False
            note.payload = note.payload.model_copy(update=changes)
            return True

    def cleanup(self) -> int:
        now = self._now()
        with self._lock:
            dead = [token for token, note in self._notes.items() if not note.is_visible(now)]
            for token in dead:
                note = self._notes.pop(token)
                self._short_codes.pop(note.short_code, None)

        if dead:
            logger.info(f"Memory store cleanup removed {len(dead)} notes")
        return len(dead)

    def close(self) -> None:
        with self._lock:
            self._notes.clear()
            self._short_codes.clear()
