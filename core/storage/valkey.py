"""
Valkey-backed note store.

Each note is a JSON blob under note:{token}; its short code maps to the
token under code:{SHORT_CODE}. Both keys carry the note's TTL natively, so
Valkey reclaims them without a sweeper.

Every read-modify-write runs as a Lua script. A script executes atomically
on the server, so two racing consuming reads cannot both see a one-time
note as unconsumed, and a client-side timeout leaves the blob either fully
rewritten or untouched. Blob timestamps are epoch milliseconds so the
scripts can compare them with the caller's clock.
"""

import json
import logging
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Dict, Iterator
from uuid import UUID, uuid4

import redis

from clients.valkey_client import ValkeyClient
from core.exceptions import IdentifierConflictError, StorageUnavailableError
from core.models import CreateNoteResult, GetNoteResult, Note, NoteCreate, NoteError, NotePayload
from core.storage.base import Clock, NoteStore
from utils.timezone import from_epoch_ms, now_utc, to_epoch_ms

logger = logging.getLogger(__name__)

# KEYS: note key, code key. ARGV: blob, ttl ms, token.
# Returns 1 on success, 0 if either key is already taken.
_CREATE_SCRIPT = """
if not redis.call('SET', KEYS[1], ARGV[1], 'PX', ARGV[2], 'NX') then
  return 0
end
if not redis.call('SET', KEYS[2], ARGV[3], 'PX', ARGV[2], 'NX') then
  redis.call('DEL', KEYS[1])
  return 0
end
return 1
"""

# KEYS: note key. ARGV: now ms, '1' to consume.
# Returns the (possibly updated) blob, or {"error": code}.
_READ_SCRIPT = """
local data = redis.call('GET', KEYS[1])
if not data then
  return cjson.encode({error = 'not_found'})
end
local note = cjson.decode(data)
if note.deleted_at then
  return cjson.encode({error = 'deleted'})
end
if tonumber(ARGV[1]) >= note.expires_at then
  return cjson.encode({error = 'expired'})
end
if note.one_time and note.consumed then
  return cjson.encode({error = 'consumed'})
end
if ARGV[2] == '1' then
  note.view_count = note.view_count + 1
  if note.one_time then
    note.consumed = true
  end
  data = cjson.encode(note)
  local ttl = redis.call('PTTL', KEYS[1])
  if ttl > 0 then
    redis.call('SET', KEYS[1], data, 'PX', ttl)
  else
    redis.call('SET', KEYS[1], data)
  end
end
return data
"""

# KEYS: note key. ARGV: now ms, grace ms, code key prefix.
# Returns 1 if the note was marked deleted, 0 if missing or already deleted.
_DELETE_SCRIPT = """
local data = redis.call('GET', KEYS[1])
if not data then
  return 0
end
local note = cjson.decode(data)
if note.deleted_at then
  return 0
end
note.deleted_at = tonumber(ARGV[1])
local grace = tonumber(ARGV[2])
local ttl = redis.call('PTTL', KEYS[1])
if ttl > 0 and ttl < grace then
  grace = ttl
end
redis.call('SET', KEYS[1], cjson.encode(note), 'PX', grace)
redis.call('DEL', ARGV[3] .. note.short_code)
return 1
"""

# KEYS: note key. ARGV: JSON object of payload fields to overwrite.
# Returns 1 if updated, 0 if missing or deleted. Remaining TTL is kept.
_UPDATE_SCRIPT = """
local data = redis.call('GET', KEYS[1])
if not data then
  return 0
end
local note = cjson.decode(data)
if note.deleted_at then
  return 0
end
for field, value in pairs(cjson.decode(ARGV[1])) do
  note[field] = value
end
local ttl = redis.call('PTTL', KEYS[1])
if ttl > 0 then
  redis.call('SET', KEYS[1], cjson.encode(note), 'PX', ttl)
else
  redis.call('SET', KEYS[1], cjson.encode(note))
end
return 1
"""

_PAYLOAD_FIELDS = ("plaintext", "ciphertext", "iv")


def _note_to_blob(note: Note) -> Dict[str, Any]:
    """Flatten a Note into the stored JSON shape. None fields are omitted."""
    blob = {
        "id": str(note.id),
        "token": note.token,
        "short_code": note.short_code,
        "created_at": to_epoch_ms(note.created_at),
        "expires_at": to_epoch_ms(note.expires_at),
        "one_time": note.one_time,
        "live_mode": note.live_mode,
        "e2ee": note.e2ee,
        "view_count": note.view_count,
        "consumed": note.consumed,
    }
    if note.deleted_at is not None:
        blob["deleted_at"] = to_epoch_ms(note.deleted_at)
    blob.update(note.payload.model_dump(exclude_none=True))
    return blob


def _note_from_blob(blob: Dict[str, Any]) -> Note:
    deleted_at = blob.get("deleted_at")
    return Note(
        id=UUID(blob["id"]),
        token=blob["token"],
        short_code=blob["short_code"],
        created_at=from_epoch_ms(int(blob["created_at"])),
        expires_at=from_epoch_ms(int(blob["expires_at"])),
        one_time=blob["one_time"],
        live_mode=blob["live_mode"],
        e2ee=blob["e2ee"],
        view_count=int(blob["view_count"]),
        consumed=blob["consumed"],
        deleted_at=from_epoch_ms(int(deleted_at)) if deleted_at is not None else None,
        payload=NotePayload(**{f: blob[f] for f in _PAYLOAD_FIELDS if f in blob}),
    )


class ValkeyNoteStore(NoteStore):
    """
    Note store on Valkey with native per-key expiry.

    cleanup() is a no-op: expired blobs disappear on their own and deleted
    ones linger only for the grace window.
    """

    name = "valkey"
    native_expiry = True

    NOTE_PREFIX = "note:"
    CODE_PREFIX = "code:"

    def __init__(
        self,
        valkey: ValkeyClient,
        deleted_grace_seconds: int = 60,
        clock: Clock = now_utc,
    ):
        super().__init__(clock)
        self._valkey = valkey
        self._grace_ms = deleted_grace_seconds * 1000
        self._create = valkey.register_script(_CREATE_SCRIPT)
        self._read = valkey.register_script(_READ_SCRIPT)
        self._delete = valkey.register_script(_DELETE_SCRIPT)
        self._update = valkey.register_script(_UPDATE_SCRIPT)

    def _note_key(self, token: str) -> str:
        return f"{self.NOTE_PREFIX}{token}"

    def _code_key(self, short_code: str) -> str:
        return f"{self.CODE_PREFIX}{self._normalize(short_code)}"

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        """Surface redis failures as StorageUnavailableError."""
        try:
            yield
        except redis.RedisError as e:
            logger.error(f"Valkey operation failed: {e}")
            raise StorageUnavailableError(self.name, str(e)) from e

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

        with self._translate_errors():
            created = self._create(
                keys=[self._note_key(token), self._code_key(short_code)],
                args=[json.dumps(_note_to_blob(note)), data.ttl_seconds * 1000, token],
            )

        if not created:
            raise IdentifierConflictError("Token or short code already in use")

        return CreateNoteResult(token=token, short_code=short_code, expires_at=note.expires_at)

    def get_note(self, token: str, consume: bool) -> GetNoteResult:
        with self._translate_errors():
            raw = self._read(
                keys=[self._note_key(token)],
                args=[to_epoch_ms(self._now()), "1" if consume else "0"],
            )

        parsed = json.loads(raw)
        if "error" in parsed:
            return GetNoteResult.failed(NoteError(parsed["error"]))
        return GetNoteResult.found(_note_from_blob(parsed))

    def get_token_by_short_code(self, short_code: str) -> str | None:
        with self._translate_errors():
            token = self._valkey.get(self._code_key(short_code))

        if token is None:
            return None

        # The mapping outlives consumption; visibility is re-checked on the note.
        if self.get_note(token, consume=False).error is not None:
            return None
        return token

    def delete_note(self, token: str) -> bool:
        with self._translate_errors():
            deleted = self._delete(
                keys=[self._note_key(token)],
                args=[to_epoch_ms(self._now()), self._grace_ms, self.CODE_PREFIX],
            )
        return bool(deleted)

    def update_note_content(self, token: str, payload: NotePayload) -> bool:
        changes = payload.model_dump(exclude_none=True)
        with self._translate_errors():
            updated = self._update(
                keys=[self._note_key(token)],
                args=[json.dumps(changes)],
            )
        return bool(updated)

    def close(self) -> None:
        self._valkey.close()
