"""Password hashing capability and UTC time helpers."""

from __future__ import annotations

from datetime import UTC, datetime

from werkzeug.security import check_password_hash, generate_password_hash


def hash_password(raw: str) -> str:
    """
    Hash a plain-text password.

    :param raw: Plain text password.
    :type raw: str
    :returns: Salted hash in werkzeug's ``method$salt$hash`` format.
    :rtype: str
    :raises ValueError: If the password is empty or not a string.
    """
    if not isinstance(raw, str) or not raw:
        raise ValueError("Password must be a non-empty string.")
    return generate_password_hash(raw)


def verify_password(password_hash: str | None, raw: str) -> bool:
    """Return ``True`` when ``raw`` matches ``password_hash``."""
    if not password_hash or not isinstance(raw, str):
        return False
    return bool(check_password_hash(password_hash, raw))


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """
    Label naive datetimes as UTC.

    SQLite hands back naive values even for ``DateTime(timezone=True)``
    columns; everything this package writes is UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
