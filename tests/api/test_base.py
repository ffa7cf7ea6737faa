"""Tests for api/base.py - Unified API response format."""

from datetime import timezone

from api.base import (
    success_response,
    error_response,
    ErrorCodes,
    NOTE_ERROR_RESPONSES,
)
from core.models import NoteError


class TestSuccessResponse:
    """Tests for success_response()."""

    def test_structure(self):
        resp = success_response({"foo": "bar"})
        assert resp.success is True
        assert resp.data == {"foo": "bar"}
        assert resp.error is None

    def test_request_id_generated(self):
        resp = success_response({})
        assert resp.meta.request_id is not None
        assert len(resp.meta.request_id) > 0

    def test_request_id_passed_through(self):
        resp = success_response({}, request_id="req-123")
        assert resp.meta.request_id == "req-123"

    def test_timestamp_is_utc(self):
        resp = success_response({})
        assert resp.meta.timestamp.tzinfo == timezone.utc


class TestErrorResponse:
    """Tests for error_response()."""

    def test_structure(self):
        resp = error_response("TEST_ERROR", "Something went wrong")
        assert resp.success is False
        assert resp.data is None
        assert resp.error.code == "TEST_ERROR"
        assert resp.error.message == "Something went wrong"

    def test_request_id_generated(self):
        resp = error_response("ERR", "msg")
        assert resp.meta.request_id is not None
        assert len(resp.meta.request_id) > 0

    def test_timestamp_is_utc(self):
        resp = error_response("ERR", "msg")
        assert resp.meta.timestamp.tzinfo == timezone.utc


class TestNoteErrorResponses:
    """Every lifecycle outcome maps to an HTTP status and code."""

    def test_every_note_error_mapped(self):
        assert set(NOTE_ERROR_RESPONSES) == set(NoteError)

    def test_not_found_is_404(self):
        status, code, _ = NOTE_ERROR_RESPONSES[NoteError.NOT_FOUND]
        assert status == 404
        assert code == ErrorCodes.NOTE_NOT_FOUND

    def test_gone_states_are_410(self):
        for error in (NoteError.EXPIRED, NoteError.CONSUMED, NoteError.DELETED):
            assert NOTE_ERROR_RESPONSES[error][0] == 410

    def test_codes_are_distinct(self):
        codes = [code for _, code, _ in NOTE_ERROR_RESPONSES.values()]
        assert len(set(codes)) == len(codes)
