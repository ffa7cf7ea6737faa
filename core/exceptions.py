"""Typed exceptions for note store failures.

Lifecycle outcomes (not found, expired, consumed, deleted) are never raised
by the store itself - they come back as NoteError values on GetNoteResult.
The exceptions here cover infrastructure trouble and caller mistakes.
"""

from core.models.note import NoteError


class NoteStoreError(Exception):
    """Base class for note store errors."""


class StorageUnavailableError(NoteStoreError):
    """
    The backing medium failed (connection refused, timeout, disk error).

    Callers should treat this as retryable infrastructure trouble, not as a
    statement about the note. The original driver exception is chained.
    """

    def __init__(self, backend: str, message: str):
        self.backend = backend
        super().__init__(f"{backend} storage unavailable: {message}")


class IdentifierConflictError(NoteStoreError):
    """A note with the same token or short code already exists."""


class InvalidIdentifierError(NoteStoreError):
    """Token or short code does not have the expected shape."""

    def __init__(self, kind: str, value: str):
        self.kind = kind
        self.value = value
        super().__init__(f"Invalid {kind}")


class NoteUnavailableError(NoteStoreError):
    """
    Raised at the API boundary when a lookup produced a NoteError.

    Carries the lifecycle code so the error handler can pick 404 vs 410.
    """

    def __init__(self, error: NoteError):
        self.error = error
        super().__init__(f"Note unavailable: {error.value}")


class LiveModeDisabledError(NoteStoreError):
    """Live subscription or update attempted on a note without live mode."""
