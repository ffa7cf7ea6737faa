"""Core domain models."""

from core.models.note import (
    CreateNoteResult,
    GetNoteResult,
    Note,
    NoteCreate,
    NoteError,
    NotePayload,
)

__all__ = [
    "CreateNoteResult",
    "GetNoteResult",
    "Note",
    "NoteCreate",
    "NoteError",
    "NotePayload",
]
