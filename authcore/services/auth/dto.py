# authcore/services/auth/dto.py
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from authcore.core.config import parse_duration
from authcore.core.security import as_utc
from authcore.models.account import Account, AccountRole

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class RegisterIn:
    """
    Input DTO for registration.

    :param email: Account email (normalized by the service).
    :param username: Public handle.
    :param password: Raw password (hashed before persistence).
    :param role: Platform role; defaults to ``user``.
    """

    email: str
    username: str
    password: str
    role: AccountRole = AccountRole.USER


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param email: Account email.
    :type email: str
    :param password: Raw password (to be verified).
    :type password: str
    :param client_ip: Peer address recorded as ``last_login_ip``.
    :type client_ip: str | None
    """

    email: str
    password: str
    client_ip: str | None = None


@dataclass(frozen=True, slots=True)
class ResetPasswordIn:
    token: str
    new_password: str


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class AccountOut:
    """Public account representation; never carries secrets or tokens."""

    id: int
    email: str
    username: str
    role: str
    is_verified: bool
    is_active: bool
    last_login_at: datetime | None
    created_at: datetime | None

    @classmethod
    def from_model(cls, account: Account) -> AccountOut:
        role = account.role
        return cls(
            id=account.id,
            email=account.email,
            username=account.username,
            role=role.value if isinstance(role, AccountRole) else str(role),
            is_verified=bool(account.is_verified),
            is_active=bool(account.is_active),
            last_login_at=as_utc(account.last_login_at) if account.last_login_at else None,
            created_at=as_utc(account.created_at) if account.created_at else None,
        )


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Short-lived bearer token.
    :type access_token: str
    :param refresh_token: Long-lived token backed by a session record.
    :type refresh_token: str
    """

    access_token: str
    refresh_token: str


@dataclass(frozen=True, slots=True)
class LoginOut:
    account: AccountOut
    access_token: str
    refresh_token: str


@dataclass(frozen=True, slots=True)
class ResetTokenStatus:
    """
    Diagnostic view of a password reset token.

    :param is_valid: Token can be redeemed right now.
    :param is_expired: Expiry has passed (reported even for used tokens).
    :param user_exists: Token belongs to an active account.
    """

    is_valid: bool
    is_expired: bool
    user_exists: bool


# ------------------------------ Config DTO -------------------------------- #


@dataclass(frozen=True, slots=True)
class AuthTokenConfig:
    """
    Token lifetime configuration.

    :param access_expires: Access token lifetime.
    :type access_expires: timedelta
    :param refresh_expires: Refresh token and session record lifetime.
    :type refresh_expires: timedelta
    :param verification_expires: Email verification window.
    :type verification_expires: timedelta
    :param reset_expires: Password reset window.
    :type reset_expires: timedelta
    """

    access_expires: timedelta = timedelta(minutes=15)
    refresh_expires: timedelta = timedelta(days=7)
    verification_expires: timedelta = timedelta(minutes=10)
    reset_expires: timedelta = timedelta(hours=1)

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> AuthTokenConfig:
        """Build from Flask-style config keys, keeping defaults for missing ones."""
        defaults = cls()
        return cls(
            access_expires=parse_duration(
                config.get("JWT_ACCESS_TOKEN_EXPIRES", defaults.access_expires)
            ),
            refresh_expires=parse_duration(
                config.get("JWT_REFRESH_TOKEN_EXPIRES", defaults.refresh_expires)
            ),
            verification_expires=parse_duration(
                config.get("VERIFICATION_TOKEN_EXPIRES", defaults.verification_expires)
            ),
            reset_expires=parse_duration(config.get("RESET_TOKEN_EXPIRES", defaults.reset_expires)),
        )
