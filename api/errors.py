"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes, NOTE_ERROR_RESPONSES
from api.middleware import request_id_of
from core.exceptions import (
    IdentifierConflictError,
    InvalidIdentifierError,
    LiveModeDisabledError,
    NoteUnavailableError,
    StorageUnavailableError,
)

logger = logging.getLogger(__name__)


def _json_error(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, request_id_of(request)).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(NoteUnavailableError)
    async def note_unavailable_handler(request: Request, exc: NoteUnavailableError):
        status_code, code, message = NOTE_ERROR_RESPONSES[exc.error]
        return _json_error(request, status_code, code, message)

    @app.exception_handler(InvalidIdentifierError)
    async def invalid_identifier_handler(request: Request, exc: InvalidIdentifierError):
        code = ErrorCodes.INVALID_SHORT_CODE if exc.kind == "short code" else ErrorCodes.INVALID_TOKEN
        return _json_error(request, 400, code, str(exc))

    @app.exception_handler(LiveModeDisabledError)
    async def live_mode_handler(request: Request, exc: LiveModeDisabledError):
        return _json_error(request, 400, ErrorCodes.LIVE_MODE_DISABLED, str(exc))

    @app.exception_handler(IdentifierConflictError)
    async def conflict_handler(request: Request, exc: IdentifierConflictError):
        logger.warning("Identifier collision on note creation")
        return _json_error(request, 409, ErrorCodes.IDENTIFIER_CONFLICT, "Please retry")

    @app.exception_handler(StorageUnavailableError)
    async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError):
        logger.error(f"Storage unavailable: {exc}")
        return _json_error(
            request, 503, ErrorCodes.SERVICE_UNAVAILABLE, "Storage temporarily unavailable"
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return _json_error(request, 400, ErrorCodes.INVALID_REQUEST, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _json_error(request, 422, ErrorCodes.VALIDATION_ERROR, str(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _json_error(request, 500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
