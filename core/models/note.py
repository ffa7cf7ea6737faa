"""Note domain models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator


def reject_nul(value: str | None) -> str | None:
    """Refuse U+0000, which PostgreSQL text columns cannot hold."""
    if value is not None and "\x00" in value:
        raise ValueError("NUL characters are not allowed")
    return value


class NoteError(str, Enum):
    """Why a lookup did not return a note."""

    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    CONSUMED = "consumed"
    DELETED = "deleted"


class NotePayload(BaseModel):
    """
    Note content.

    Either plaintext (regular notes) or ciphertext + iv (end-to-end
    encrypted notes). The encrypted fields are opaque to the store.
    Also used as a partial update: fields left unset are not touched.
    """

    plaintext: str | None = None
    ciphertext: str | None = None
    iv: str | None = None

    @field_validator("plaintext", "ciphertext", "iv")
    @classmethod
    def no_nul(cls, value: str | None) -> str | None:
        return reject_nul(value)


class NoteCreate(BaseModel):
    """Data required to create a note."""

    text: str = Field(default="", max_length=50000)
    ttl_seconds: int = Field(..., gt=0)
    one_time: bool = False
    e2ee: bool = False
    live_mode: bool = False
    ciphertext: str | None = None
    iv: str | None = None

    @field_validator("text", "ciphertext", "iv")
    @classmethod
    def no_nul(cls, value: str | None) -> str | None:
        return reject_nul(value)

    @model_validator(mode="after")
    def require_content(self) -> "NoteCreate":
        """Ensure the content fields match the encryption flag."""
        if self.e2ee:
            if not self.ciphertext or not self.iv:
                raise ValueError("ciphertext and iv are required for encrypted notes")
        elif not self.text:
            raise ValueError("text is required")
        return self

    def to_payload(self) -> NotePayload:
        """Stored payload: only the fields matching the encryption flag."""
        if self.e2ee:
            return NotePayload(ciphertext=self.ciphertext, iv=self.iv)
        return NotePayload(plaintext=self.text)


class Note(BaseModel):
    """Full note record as stored."""

    id: UUID
    token: str
    short_code: str
    created_at: datetime
    expires_at: datetime
    one_time: bool
    live_mode: bool
    e2ee: bool
    view_count: int = 0
    consumed: bool = False
    deleted_at: datetime | None = None
    payload: NotePayload

    model_config = {"from_attributes": True}

    def visibility_error(self, now: datetime) -> NoteError | None:
        """
        Return the reason this note cannot be read at `now`, or None.

        Checked in order: deleted, expired, consumed.
        """
        if self.deleted_at is not None:
            return NoteError.DELETED
        if now >= self.expires_at:
            return NoteError.EXPIRED
        if self.one_time and self.consumed:
            return NoteError.CONSUMED
        return None

    def is_visible(self, now: datetime) -> bool:
        return self.visibility_error(now) is None


class CreateNoteResult(BaseModel):
    """Identifiers and expiry of a freshly created note."""

    token: str
    short_code: str
    expires_at: datetime


class GetNoteResult(BaseModel):
    """Outcome of a lookup. Exactly one of note / error is set."""

    note: Note | None = None
    error: NoteError | None = None

    @model_validator(mode="after")
    def exactly_one(self) -> "GetNoteResult":
        if (self.note is None) == (self.error is None):
            raise ValueError("Exactly one of note or error must be set")
        return self

    @classmethod
    def failed(cls, error: NoteError) -> "GetNoteResult":
        return cls(error=error)

    @classmethod
    def found(cls, note: Note) -> "GetNoteResult":
        return cls(note=note)
