"""
Note identifiers: the long URL token and the human-typeable short code.

Tokens are 21 characters from a URL-safe alphabet (~126 bits of entropy).
Short codes are 6 characters from an alphabet without look-alike glyphs
(no 0/O, 1/I/L) and are case-insensitive - always stored upper case.
Generation uses the secrets module; the store itself only validates.
"""

import re
import secrets

TOKEN_LENGTH = 21
TOKEN_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"

SHORT_CODE_LENGTH = 6
SHORT_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"

_TOKEN_RE = re.compile(rf"[A-Za-z0-9_-]{{{TOKEN_LENGTH}}}")
_SHORT_CODE_RE = re.compile(rf"[{SHORT_CODE_ALPHABET}]{{{SHORT_CODE_LENGTH}}}")


def generate_token() -> str:
    """Generate a URL token."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))


def generate_short_code() -> str:
    """Generate a short code (already normalized)."""
    return "".join(secrets.choice(SHORT_CODE_ALPHABET) for _ in range(SHORT_CODE_LENGTH))


def normalize_short_code(code: str) -> str:
    return code.upper()


def is_valid_token(token: object) -> bool:
    """True if `token` is a string of the URL token shape."""
    if not isinstance(token, str):
        return False
    return _TOKEN_RE.fullmatch(token) is not None


def is_valid_short_code(code: object) -> bool:
    """True if `code` is a short code, ignoring case."""
    if not isinstance(code, str):
        return False
    return _SHORT_CODE_RE.fullmatch(normalize_short_code(code)) is not None
