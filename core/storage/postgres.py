"""
PostgreSQL-backed note store.

Notes are rows in a single `notes` table with unique token and short_code
columns. A consuming read locks the row with SELECT ... FOR UPDATE inside
one transaction, so concurrent consumers of the same note are serialized
and only the first sees it unconsumed. Nothing expires on its own: the
expiry sweeper calls cleanup(), which deletes every row failing visibility.
"""

import logging
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Dict, Iterator
from uuid import uuid4

import psycopg2
import psycopg2.errors

from clients.postgres_client import PostgresClient
from core.exceptions import IdentifierConflictError, StorageUnavailableError
from core.models import CreateNoteResult, GetNoteResult, Note, NoteCreate, NoteError, NotePayload
from core.storage.base import Clock, NoteStore
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS notes (
    id UUID PRIMARY KEY,
    token TEXT NOT NULL UNIQUE,
    short_code TEXT NOT NULL UNIQUE,
    created_at TIMESTAMPTZ NOT NULL,
    expires_at TIMESTAMPTZ NOT NULL,
    one_time BOOLEAN NOT NULL DEFAULT FALSE,
    live_mode BOOLEAN NOT NULL DEFAULT FALSE,
    e2ee BOOLEAN NOT NULL DEFAULT FALSE,
    view_count INTEGER NOT NULL DEFAULT 0,
    consumed BOOLEAN NOT NULL DEFAULT FALSE,
    deleted_at TIMESTAMPTZ,
    plaintext TEXT,
    ciphertext TEXT,
    iv TEXT
);

CREATE INDEX IF NOT EXISTS idx_notes_expires_at ON notes (expires_at);
"""

# Payload columns that update_note_content may touch.
_PAYLOAD_COLUMNS = ("plaintext", "ciphertext", "iv")


def _note_from_row(row: Dict[str, Any]) -> Note:
    return Note(
        id=row["id"],
        token=row["token"],
        short_code=row["short_code"],
        created_at=row["created_at"],
        expires_at=row["expires_at"],
        one_time=row["one_time"],
        live_mode=row["live_mode"],
        e2ee=row["e2ee"],
        view_count=row["view_count"],
        consumed=row["consumed"],
        deleted_at=row["deleted_at"],
        payload=NotePayload(
            plaintext=row["plaintext"],
            ciphertext=row["ciphertext"],
            iv=row["iv"],
        ),
    )


class PostgresNoteStore(NoteStore):
    """Note store on a PostgreSQL table with transaction-scoped read-modify-write."""

    name = "postgres"

    def __init__(self, postgres: PostgresClient, clock: Clock = now_utc):
        super().__init__(clock)
        self.postgres = postgres

    def ensure_schema(self) -> None:
        """Create the notes table and its expiry index if missing."""
        with self._translate_errors():
            self.postgres.execute(SCHEMA_SQL)
        logger.info("Notes schema ensured")

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        """Surface driver failures as StorageUnavailableError."""
        try:
            yield
        except psycopg2.errors.UniqueViolation as e:
            raise IdentifierConflictError("Token or short code already in use") from e
        except psycopg2.Error as e:
            logger.error(f"PostgreSQL operation failed: {e}")
            raise StorageUnavailableError(self.name, str(e)) from e

    def create_note(self, data: NoteCreate, token: str, short_code: str) -> CreateNoteResult:
        short_code = self._normalize(short_code)
        now = self._now()
        expires_at = now + timedelta(seconds=data.ttl_seconds)
        payload = data.to_payload()

        with self._translate_errors():
            self.postgres.execute(
                """
                INSERT INTO notes (
                    id, token, short_code, created_at, expires_at,
                    one_time, live_mode, e2ee,
                    plaintext, ciphertext, iv
                ) VALUES (
                    %s, %s, %s, %s, %s,
                    %s, %s, %s,
                    %s, %s, %s
                )
                """,
                (
                    uuid4(), token, short_code, now, expires_at,
                    data.one_time, data.live_mode, data.e2ee,
                    payload.plaintext, payload.ciphertext, payload.iv,
                ),
            )

        return CreateNoteResult(token=token, short_code=short_code, expires_at=expires_at)

    def get_note(self, token: str, consume: bool) -> GetNoteResult:
        now = self._now()
        # Peeks take no row lock; consumers hold it until commit.
        lock = " FOR UPDATE" if consume else ""

        with self._translate_errors(), self.postgres.transaction() as cur:
            cur.execute(f"SELECT * FROM notes WHERE token = %s{lock}", (token,))
            row = cur.fetchone()
            if row is None:
                return GetNoteResult.failed(NoteError.NOT_FOUND)

            error = _note_from_row(row).visibility_error(now)
            if error is not None:
                return GetNoteResult.failed(error)

            if consume:
                cur.execute(
                    """
                    UPDATE notes
                    SET view_count = view_count + 1,
                        consumed = consumed OR one_time
                    WHERE token = %s
                    RETURNING *
                    """,
                    (token,),
                )
                row = cur.fetchone()

        return GetNoteResult.found(_note_from_row(row))

    def get_token_by_short_code(self, short_code: str) -> str | None:
        with self._translate_errors():
            return self.postgres.execute_scalar(
                """
                SELECT token FROM notes
                WHERE short_code = %s
                  AND deleted_at IS NULL
                  AND expires_at > %s
                  AND NOT (one_time AND consumed)
                """,
                (self._normalize(short_code), self._now()),
            )

    def delete_note(self, token: str) -> bool:
        with self._translate_errors():
            count = self.postgres.execute_rowcount(
                "UPDATE notes SET deleted_at = %s WHERE token = %s AND deleted_at IS NULL",
                (self._now(), token),
            )
        return count > 0

    def update_note_content(self, token: str, payload: NotePayload) -> bool:
        changes = payload.model_dump(exclude_none=True)
        if not changes:
            # Nothing to write; still report whether the note is updatable.
            with self._translate_errors():
                row = self.postgres.execute_single(
                    "SELECT 1 FROM notes WHERE token = %s AND deleted_at IS NULL",
                    (token,),
                )
            return row is not None

        columns = [c for c in _PAYLOAD_COLUMNS if c in changes]
        assignments = ", ".join(f"{c} = %s" for c in columns)

        with self._translate_errors():
            count = self.postgres.execute_rowcount(
                f"UPDATE notes SET {assignments} WHERE token = %s AND deleted_at IS NULL",
                (*[changes[c] for c in columns], token),
            )
        return count > 0

    def cleanup(self) -> int:
        with self._translate_errors():
            count = self.postgres.execute_rowcount(
                """
                DELETE FROM notes
                WHERE expires_at <= %s
                   OR deleted_at IS NOT NULL
                   OR (one_time AND consumed)
                """,
                (self._now(),),
            )

        if count:
            logger.info(f"Postgres store cleanup removed {count} notes")
        return count

    def close(self) -> None:
        self.postgres.close()
