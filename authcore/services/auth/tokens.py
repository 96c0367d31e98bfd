"""Generation and format checks for verification and password-reset tokens."""

from __future__ import annotations

import re
import secrets
from typing import Final
from uuid import uuid4

_UUID4_RE: Final = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}",
    re.IGNORECASE,
)
_RESET_RE: Final = re.compile(r"[0-9a-f]{64}")

RESET_TOKEN_BYTES: Final[int] = 32


def new_verification_token() -> str:
    """Return a random UUID4 string."""
    return str(uuid4())


def is_verification_token(value: object) -> bool:
    """Return ``True`` when ``value`` is a canonical v4 UUID (any case).

    Surrounding whitespace is ignored.
    """
    return isinstance(value, str) and _UUID4_RE.fullmatch(value.strip()) is not None


def new_reset_token() -> str:
    """Return 64 lowercase hex characters drawn from :mod:`secrets`."""
    return secrets.token_hex(RESET_TOKEN_BYTES)


def is_reset_token(value: object) -> bool:
    """Return ``True`` for exactly 64 characters in ``[0-9a-f]``."""
    return isinstance(value, str) and _RESET_RE.fullmatch(value) is not None
