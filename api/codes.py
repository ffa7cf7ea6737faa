"""GET /api/code/{code} - resolve a short code to its note token."""

from fastapi import APIRouter, Request

from api.base import success_response
from api.middleware import request_id_of
from core.exceptions import InvalidIdentifierError, NoteUnavailableError
from core.identifiers import is_valid_short_code
from core.models import NoteError
from core.storage.base import NoteStore


def create_codes_router(store: NoteStore) -> APIRouter:
    router = APIRouter()

    @router.get("/code/{code}")
    def resolve_code(request: Request, code: str):
        if not is_valid_short_code(code):
            raise InvalidIdentifierError("short code", code)

        token = store.get_token_by_short_code(code)
        if token is None:
            # Unknown, expired, consumed and deleted all look the same here
            raise NoteUnavailableError(NoteError.NOT_FOUND)

        return success_response({"token": token}, request_id_of(request)).model_dump(mode="json")

    return router
