"""Note endpoints: create, read (consume or peek), delete."""

import logging

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from api.base import success_response
from api.middleware import request_id_of
from core.config import StoreConfig
from core.exceptions import IdentifierConflictError, InvalidIdentifierError, NoteUnavailableError
from core.identifiers import generate_short_code, generate_token, is_valid_token
from core.models import Note, NoteCreate, NoteError
from core.storage.base import NoteStore

logger = logging.getLogger(__name__)

# Fresh identifiers are tried this many times before a collision is reported.
CREATE_ATTEMPTS = 3


class CreateNoteRequest(BaseModel):
    """POST /api/notes body. Encrypted notes send ciphertext + iv instead of text."""

    text: str = Field(default="", max_length=50000)
    ttl_seconds: int | None = None
    one_time: bool = False
    e2ee: bool = False
    live_mode: bool = False
    ciphertext: str | None = None
    iv: str | None = None


def clamp_ttl(requested: int | None, config: StoreConfig) -> int:
    """Missing or non-positive TTL -> default; anything above the maximum -> maximum."""
    if requested is None or requested <= 0:
        return config.default_ttl_seconds
    return min(requested, config.max_ttl_seconds)


def require_token(token: str) -> None:
    if not is_valid_token(token):
        raise InvalidIdentifierError("token", token)


def require_visible_note(store: NoteStore, token: str, consume: bool = False) -> Note:
    """Validate, look up and return the note, raising NoteUnavailableError on any lifecycle failure."""
    require_token(token)
    result = store.get_note(token, consume)
    if result.error is not None:
        raise NoteUnavailableError(result.error)
    return result.note


def public_note(note: Note) -> dict:
    """Fields a reader may see. Identity and bookkeeping stay internal."""
    return {
        "e2ee": note.e2ee,
        "one_time": note.one_time,
        "live_mode": note.live_mode,
        "expires_at": note.expires_at.isoformat(),
        "view_count": note.view_count,
        "payload": note.payload.model_dump(exclude_none=True),
    }


def create_notes_router(store: NoteStore, config: StoreConfig) -> APIRouter:
    router = APIRouter()

    @router.post("/notes")
    def create_note(request: Request, body: CreateNoteRequest):
        data = NoteCreate(
            text="" if body.e2ee else body.text,
            ttl_seconds=clamp_ttl(body.ttl_seconds, config),
            one_time=body.one_time,
            e2ee=body.e2ee,
            live_mode=body.live_mode,
            ciphertext=body.ciphertext if body.e2ee else None,
            iv=body.iv if body.e2ee else None,
        )

        for attempt in range(1, CREATE_ATTEMPTS + 1):
            try:
                result = store.create_note(data, generate_token(), generate_short_code())
                break
            except IdentifierConflictError:
                if attempt == CREATE_ATTEMPTS:
                    raise
                logger.warning(f"Identifier collision, retrying (attempt {attempt})")

        base_url = (config.public_base_url or str(request.base_url)).rstrip("/")
        return success_response(
            {
                "token": result.token,
                "short_code": result.short_code,
                "expires_at": result.expires_at.isoformat(),
                "url": f"{base_url}/n/{result.token}",
                "short_url": f"{base_url}/c/{result.short_code}",
            },
            request_id_of(request),
        ).model_dump(mode="json")

    @router.get("/notes/{token}")
    def get_note(request: Request, token: str, peek: bool = Query(False)):
        note = require_visible_note(store, token, consume=not peek)
        return success_response(public_note(note), request_id_of(request)).model_dump(mode="json")

    @router.delete("/notes/{token}")
    def delete_note(request: Request, token: str):
        require_token(token)
        if not store.delete_note(token):
            raise NoteUnavailableError(NoteError.NOT_FOUND)
        return success_response({"deleted": True}, request_id_of(request)).model_dump(mode="json")

    return router
