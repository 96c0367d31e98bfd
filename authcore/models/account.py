"""Account model: credentials, verification and password-reset state."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, CheckConstraint, DateTime, String, UniqueConstraint, false, true
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from authcore.core.extensions import db
from authcore.core.security import hash_password, verify_password

from .base import PKMixin, ReprMixin, TimestampMixin

if TYPE_CHECKING:
    from .session_token import SessionToken

EMAIL_MAX_LENGTH = 254
USERNAME_MAX_LENGTH = 50


def normalize_email(value: Any) -> str:
    """
    Trim and lowercase an email address.

    :raises ValueError: If the email is missing, too long or malformed.
    """
    if not value or not isinstance(value, str):
        raise ValueError("Email is required.")
    v = value.strip().lower()
    local, _, domain = v.partition("@")
    if not local or "." not in domain or any(c.isspace() for c in v):
        raise ValueError("Email format looks invalid.")
    if len(v) > EMAIL_MAX_LENGTH:
        raise ValueError(f"Email must be at most {EMAIL_MAX_LENGTH} characters.")
    return v


def normalize_username(value: Any) -> str:
    """Trim a username; blank or over-long values raise ``ValueError``."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Username is required.")
    v = value.strip()
    if len(v) > USERNAME_MAX_LENGTH:
        raise ValueError(f"Username must be at most {USERNAME_MAX_LENGTH} characters.")
    return v


class AccountRole(str, Enum):
    """Platform roles carried in token claims."""

    USER = "user"
    MANAGER = "manager"
    ADMIN = "admin"


class Account(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Authentication identity.

    Fields
    ------
    email : str
        Login email. Stored normalized (lowercase, trimmed).
    username : str
        Public handle, unique per system.
    password_hash : str
        Hashed password (write-only setter via ``password``).
    role : AccountRole
        Role embedded in issued tokens.
    is_verified : bool
        ``True`` once the email verification token has been redeemed.
    is_active : bool
        Deactivated accounts cannot log in or refresh.
    last_login_at, last_login_ip :
        Written only by a successful login.
    verification_token, verification_expires_at :
        Pending email verification pair; both set or both ``NULL``.
    reset_token, reset_expires_at, reset_token_used :
        Password reset state; token and expiry are both set or both ``NULL``.
    """

    __tablename__ = "accounts"

    email: Mapped[str] = mapped_column(String(EMAIL_MAX_LENGTH), nullable=False)
    username: Mapped[str] = mapped_column(String(USERNAME_MAX_LENGTH), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[AccountRole] = mapped_column(
        SAEnum(
            AccountRole,
            name="account_role",
            native_enum=False,
            values_callable=lambda roles: [r.value for r in roles],
            validate_strings=True,
        ),
        nullable=False,
        default=AccountRole.USER,
        server_default=AccountRole.USER.value,
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_login_ip: Mapped[str | None] = mapped_column(String(45))

    verification_token: Mapped[str | None] = mapped_column(String(36), index=True)
    verification_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    reset_token: Mapped[str | None] = mapped_column(String(64), index=True)
    reset_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reset_token_used: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    sessions: Mapped[list[SessionToken]] = relationship(
        back_populates="account",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("email", name="uq_accounts_email"),
        UniqueConstraint("username", name="uq_accounts_username"),
        CheckConstraint(
            "(verification_token IS NULL) = (verification_expires_at IS NULL)",
            name="verification_pair",
        ),
        CheckConstraint(
            "(reset_token IS NULL) = (reset_expires_at IS NULL)",
            name="reset_pair",
        ),
    )

    # -------------------- Password API --------------------
    @property
    def password(self) -> Any:  # pragma: no cover - explicit write-only contract
        """
        Disallow reading passwords.

        :raises AttributeError: Always, to ensure password is write-only.
        """
        raise AttributeError("Password is write-only.")

    @password.setter
    def password(self, raw: str) -> None:
        """
        Hash and set the password.

        :param raw: Plain text password to hash.
        :type raw: str
        :raises ValueError: If the password is empty.
        """
        self.password_hash = hash_password(raw)

    def verify_password(self, raw: str) -> bool:
        """
        Verify a password against the stored hash.

        :param raw: Plain text password candidate.
        :type raw: str
        :returns: ``True`` if it matches; otherwise ``False``.
        :rtype: bool
        """
        return verify_password(self.password_hash, raw)

    # -------------------- Validators --------------------
    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        return normalize_email(value)

    @validates("username")
    def _normalize_username(self, key: str, value: str) -> str:
        return normalize_username(value)
