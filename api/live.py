"""
Live-mode endpoints.

GET streams server-sent events for a note: a `connected` event, then one
`update` event per live edit, with keep-alive comments while idle.
POST writes a live edit to the store and fans it out to open streams.
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from api.base import success_response
from api.middleware import request_id_of
from api.notes import require_visible_note
from core.broadcast import LiveBroadcaster
from core.exceptions import LiveModeDisabledError, NoteUnavailableError
from core.models import Note, NoteError, NotePayload
from core.storage.base import NoteStore

logger = logging.getLogger(__name__)

# Longest an idle stream waits before re-checking the client connection.
DISCONNECT_CHECK_SECONDS = 1.0


class LiveUpdateRequest(BaseModel):
    """POST /api/live/{token} body. Which fields count depends on the note's e2ee flag."""

    text: str | None = Field(default=None, max_length=50000)
    ciphertext: str | None = None
    iv: str | None = None


def format_sse(message: Dict[str, Any]) -> str:
    """Encode one message as a server-sent event frame."""
    return f"data: {json.dumps(message)}\n\n"


def _require_live(note: Note) -> None:
    if not note.live_mode:
        raise LiveModeDisabledError("This note does not have live mode enabled")


async def _event_stream(
    request: Request,
    broadcaster: LiveBroadcaster,
    token: str,
    keepalive_seconds: float,
) -> AsyncIterator[str]:
    loop = asyncio.get_running_loop()
    wakeup = asyncio.Event()

    # Subscribing inside the generator ties the subscription to the
    # stream's lifetime: the finally runs on disconnect or cancellation.
    # Publishers run in worker threads, so they wake this loop thread-safely.
    subscription = broadcaster.subscribe(
        token, on_message=lambda: loop.call_soon_threadsafe(wakeup.set)
    )
    try:
        yield format_sse({"type": "connected", "timestamp": broadcaster.timestamp()})
        last_sent = loop.time()

        while True:
            message = subscription.get(timeout=0)
            if message is not None:
                yield format_sse(message)
                last_sent = loop.time()
                continue

            if subscription.closed:
                break

            if await request.is_disconnected():
                break

            wakeup.clear()
            if subscription.pending():
                # Arrived between get() and clear()
                continue

            remaining = keepalive_seconds - (loop.time() - last_sent)
            keepalive_due = remaining <= DISCONNECT_CHECK_SECONDS
            try:
                await asyncio.wait_for(wakeup.wait(), min(remaining, DISCONNECT_CHECK_SECONDS))
            except asyncio.TimeoutError:
                if keepalive_due:
                    yield ": keepalive\n\n"
                    last_sent = loop.time()
    finally:
        broadcaster.unsubscribe(subscription)


def create_live_router(
    store: NoteStore,
    broadcaster: LiveBroadcaster,
    keepalive_seconds: float = 15,
) -> APIRouter:
    router = APIRouter()

    @router.get("/live/{token}")
    def stream_updates(request: Request, token: str):
        note = require_visible_note(store, token)
        _require_live(note)

        return StreamingResponse(
            _event_stream(request, broadcaster, token, keepalive_seconds),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
            },
        )

    @router.post("/live/{token}")
    def push_update(request: Request, token: str, body: LiveUpdateRequest):
        note = require_visible_note(store, token)
        _require_live(note)

        if note.e2ee:
            payload = NotePayload(ciphertext=body.ciphertext, iv=body.iv)
        else:
            payload = NotePayload(plaintext=body.text)

        if not payload.model_dump(exclude_none=True):
            raise ValueError("No content fields for this note type")

        if not store.update_note_content(token, payload):
            # Deleted between the lookup and the write
            raise NoteUnavailableError(NoteError.DELETED)

        delivered = broadcaster.publish(token, payload)
        logger.debug(f"Live update delivered to {delivered} viewers")

        return success_response({"delivered": delivered}, request_id_of(request)).model_dump(mode="json")

    return router
