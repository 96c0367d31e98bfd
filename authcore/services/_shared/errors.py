"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic**: they never import Flask or HTTP
helpers. The translation to RFC 7807 responses is handled by
``authcore/core/errors.py`` via ``BaseService.translate_exceptions()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy.exc import IntegrityError


def violates(exc: IntegrityError, constraint_name: str) -> bool:
    """
    Check whether an IntegrityError originates from a specific constraint.

    Parameters
    ----------
    exc : IntegrityError
        The exception raised by SQLAlchemy during flush/commit.
    constraint_name : str
        The name of the database constraint to match (e.g. ``uq_accounts_email``).

    Returns
    -------
    bool
        True if the IntegrityError matches the given constraint.

    Notes
    -----
    PostgreSQL reports the constraint name; SQLite only reports the columns
    (``UNIQUE constraint failed: accounts.email``), so the ``uq_<table>_<column>``
    naming convention is also matched as ``<table>.<column>``.
    """
    message = str(exc.orig).lower() if exc.orig else ""
    name = constraint_name.lower()
    if name in message:
        return True
    if name.startswith("uq_"):
        # Table names may contain underscores too; try every split point.
        parts = name[3:].split("_")
        return any(
            f"{'_'.join(parts[:i])}.{'_'.join(parts[i:])}" in message for i in range(1, len(parts))
        )
    return False


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    These are *not* HTTP errors; the API layer translates them.
    """

    pass


# --------------------------------------------------------------------------- #
# Auth lifecycle errors
# --------------------------------------------------------------------------- #


class AuthErrorCode(str, Enum):
    """Closed set of failure codes raised by the auth lifecycle service."""

    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_FORBIDDEN = "AUTH_FORBIDDEN"
    EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"
    AUTH_TOKEN_INVALID = "AUTH_TOKEN_INVALID"
    AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"
    AUTH_USER_ALREADY_VERIFIED = "AUTH_USER_ALREADY_VERIFIED"
    AUTH_USER_NOT_FOUND = "AUTH_USER_NOT_FOUND"
    AUTH_EMAIL_ALREADY_EXISTS = "AUTH_EMAIL_ALREADY_EXISTS"
    AUTH_USER_ALREADY_EXISTS = "AUTH_USER_ALREADY_EXISTS"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    AUTH_RESET_TOKEN_MALFORMED = "AUTH_RESET_TOKEN_MALFORMED"
    INVALID_RESET_TOKEN = "INVALID_RESET_TOKEN"
    AUTH_TOKEN_ALREADY_USED = "AUTH_TOKEN_ALREADY_USED"
    DATABASE_ERROR = "DATABASE_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


AUTH_ERROR_MESSAGES: dict[AuthErrorCode, str] = {
    AuthErrorCode.AUTH_INVALID_CREDENTIALS: "Invalid email or password.",
    AuthErrorCode.AUTH_FORBIDDEN: "Access denied.",
    AuthErrorCode.EMAIL_NOT_VERIFIED: "Email address has not been verified.",
    AuthErrorCode.AUTH_TOKEN_INVALID: "Verification token is invalid.",
    AuthErrorCode.AUTH_TOKEN_EXPIRED: "Token has expired.",
    AuthErrorCode.AUTH_USER_ALREADY_VERIFIED: "Account is already verified.",
    AuthErrorCode.AUTH_USER_NOT_FOUND: "Account not found.",
    AuthErrorCode.AUTH_EMAIL_ALREADY_EXISTS: "Email is already registered.",
    AuthErrorCode.AUTH_USER_ALREADY_EXISTS: "Username is already taken.",
    AuthErrorCode.INVALID_REFRESH_TOKEN: "Refresh token is invalid or expired.",
    AuthErrorCode.AUTH_RESET_TOKEN_MALFORMED: "Reset token is malformed.",
    AuthErrorCode.INVALID_RESET_TOKEN: "Reset token is invalid.",
    AuthErrorCode.AUTH_TOKEN_ALREADY_USED: "Token has already been used.",
    AuthErrorCode.DATABASE_ERROR: "A storage error occurred.",
    AuthErrorCode.SERVICE_UNAVAILABLE: "Service temporarily unavailable.",
}


@dataclass(eq=False)
class AuthError(ServiceError):
    """
    Failure of an auth lifecycle operation.

    :param code: Stable failure code, switched on at the HTTP boundary.
    :type code: AuthErrorCode
    :param message: Human-readable message; defaults to the per-code text.
    :type message: str | None
    :param details: Optional safe, structured context.
    :type details: dict[str, Any]
    """

    code: AuthErrorCode
    message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.message is None:
            self.message = AUTH_ERROR_MESSAGES[self.code]
        super().__init__(self.message)

    def __str__(self) -> str:
        return str(self.message)


class InvalidInputError(ServiceError):
    """
    Input rejected by the service before any lookup or side effect.

    :param field: Name of the offending input field.
    :param message: Why the value was rejected.
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class TokenVerificationError(ServiceError):
    """Raised by token providers when a token cannot be decoded or trusted."""


class MailDeliveryError(ServiceError):
    """Raised by mailers when a message could not be handed off."""
