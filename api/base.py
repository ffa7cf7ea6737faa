"""Unified API response format and error codes."""

from typing import Any
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field

from core.models import NoteError
from utils.timezone import now_utc


class APIError(BaseModel):
    """Error details in API response."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")


class APIMeta(BaseModel):
    """Metadata included in every API response."""

    timestamp: datetime = Field(..., description="Response timestamp (UTC)")
    request_id: str = Field(..., description="Unique request identifier for tracing")


class APIResponse(BaseModel):
    """
    Unified response format for all JSON endpoints.

    Every endpoint returns this structure, making client parsing predictable.
    """

    success: bool
    data: Any | None = None
    error: APIError | None = None
    meta: APIMeta


def _meta(request_id: str | None) -> APIMeta:
    return APIMeta(timestamp=now_utc(), request_id=request_id or str(uuid4()))


def success_response(data: Any, request_id: str | None = None) -> APIResponse:
    """Create a success response. Pass the middleware's request id to correlate logs."""
    return APIResponse(success=True, data=data, error=None, meta=_meta(request_id))


def error_response(code: str, message: str, request_id: str | None = None) -> APIResponse:
    """Create an error response."""
    return APIResponse(
        success=False,
        data=None,
        error=APIError(code=code, message=message),
        meta=_meta(request_id),
    )


class ErrorCodes:
    """Standard error codes for consistent error handling."""

    # Note lifecycle
    NOTE_NOT_FOUND = "NOTE_NOT_FOUND"
    NOTE_EXPIRED = "NOTE_EXPIRED"
    NOTE_CONSUMED = "NOTE_CONSUMED"
    NOTE_DELETED = "NOTE_DELETED"
    LIVE_MODE_DISABLED = "LIVE_MODE_DISABLED"

    # Validation Errors
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_SHORT_CODE = "INVALID_SHORT_CODE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Infrastructure
    IDENTIFIER_CONFLICT = "IDENTIFIER_CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


# Lifecycle outcome -> (HTTP status, error code, message)
NOTE_ERROR_RESPONSES = {
    NoteError.NOT_FOUND: (404, ErrorCodes.NOTE_NOT_FOUND, "Note not found"),
    NoteError.EXPIRED: (410, ErrorCodes.NOTE_EXPIRED, "This note has expired"),
    NoteError.CONSUMED: (410, ErrorCodes.NOTE_CONSUMED, "This note was already read and is gone"),
    NoteError.DELETED: (410, ErrorCodes.NOTE_DELETED, "This note was deleted"),
}
