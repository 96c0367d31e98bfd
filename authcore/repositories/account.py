"""Account repository: credential lookups and token-state writes."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, cast

from sqlalchemy import select, update

from authcore.models.account import Account
from authcore.repositories.base import BaseRepository


class AccountRepository(BaseRepository[Account]):
    """Persistence-only repository for :class:`Account`.

    Verification and reset tokens are always written together with their
    expiry, so the pair CHECK constraints can never be violated through this
    API. It NEVER issues JWTs or manages sessions.
    """

    model = Account

    def _updatable_fields(self) -> set[str]:
        """Publicly allowed updatable fields (not including password or tokens)."""
        return {"email", "username", "role", "is_active"}

    # ---------------------------- Lookups ----------------------------

    def find_by_id(self, account_id: int) -> Account | None:
        return self.get(account_id)

    def find_by_email(self, email: str) -> Account | None:
        """Fetch an account by email (case-insensitive).

        :param email: Email address to normalise and search.
        :type email: str
        :returns: Account or ``None`` when not found.
        :rtype: Account | None
        """
        stmt = select(Account).where(Account.email == email.strip().lower())
        return cast(Account | None, self.session.execute(stmt).scalars().first())

    def find_by_username(self, username: str) -> Account | None:
        stmt = select(Account).where(Account.username == username.strip())
        return cast(Account | None, self.session.execute(stmt).scalars().first())

    def find_by_verification_token(self, token: str) -> Account | None:
        stmt = select(Account).where(Account.verification_token == token)
        return cast(Account | None, self.session.execute(stmt).scalars().first())

    def find_by_reset_token(self, token: str, *, now: datetime) -> Account | None:
        """Return the account holding ``token`` only while it is redeemable.

        :param token: Reset token (64 hex characters).
        :param now: Reference instant in UTC.
        :returns: Account when the token matches, is unused and has not
            expired; otherwise ``None``.
        """
        stmt = select(Account).where(
            Account.reset_token == token,
            Account.reset_token_used.is_(False),
            Account.reset_expires_at >= now,
        )
        return cast(Account | None, self.session.execute(stmt).scalars().first())

    def find_by_reset_token_any(self, token: str) -> Account | None:
        """Return the account holding ``token`` regardless of used/expired state."""
        stmt = select(Account).where(Account.reset_token == token)
        return cast(Account | None, self.session.execute(stmt).scalars().first())

    # ---------------------------- Writes ----------------------------

    def create(self, **fields: Any) -> Account:
        """Insert a new account and flush to obtain its id.

        :param fields: Column values (``email``, ``username``, ``password_hash``,
            ``role``, verification pair, ...).
        :returns: Persisted account.
        :raises sqlalchemy.exc.IntegrityError: On unique-constraint collisions.
        """
        return self.add(Account(**fields))

    def update(self, account_id: int, fields: Mapping[str, Any]) -> Account | None:
        """Apply whitelisted field updates; ``None`` when the account is missing."""
        account = self.get(account_id)
        if account is None:
            return None
        return self.assign_updates(account, fields)

    def set_verified(self, account_id: int) -> bool:
        """Mark the account verified and clear its verification pair."""
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values(is_verified=True, verification_token=None, verification_expires_at=None)
        )
        return self.execute_dml(stmt) == 1

    def set_verification_token(self, account_id: int, token: str, expires_at: datetime) -> bool:
        """Store a new verification pair, superseding any previous one."""
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values(verification_token=token, verification_expires_at=expires_at)
        )
        return self.execute_dml(stmt) == 1

    def set_reset_token(self, account_id: int, token: str, expires_at: datetime) -> bool:
        """Store a fresh, unused reset token with its expiry."""
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values(reset_token=token, reset_expires_at=expires_at, reset_token_used=False)
        )
        return self.execute_dml(stmt) == 1

    def set_new_password(
        self,
        account_id: int,
        token: str,
        password_hash: str,
        *,
        now: datetime,
    ) -> bool:
        """
        Write a new password hash and consume the reset token atomically.

        The ``WHERE`` clause re-checks that ``token`` is still the stored,
        unused and unexpired reset token, so two concurrent resets cannot both
        succeed. The token value is kept so a replay is reported as used.

        :param account_id: Account primary key.
        :param token: Reset token presented by the caller.
        :param password_hash: Already hashed password.
        :param now: Reference instant in UTC.
        :returns: ``True`` when exactly one row was updated.
        :rtype: bool
        """
        stmt = (
            update(Account)
            .where(
                Account.id == account_id,
                Account.reset_token == token,
                Account.reset_token_used.is_(False),
                Account.reset_expires_at >= now,
            )
            .values(password_hash=password_hash, reset_token_used=True)
        )
        return self.execute_dml(stmt) == 1

    def update_login_tracking(self, account_id: int, *, at: datetime, ip: str | None) -> bool:
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values(last_login_at=at, last_login_ip=ip[:45] if ip else None)
        )
        return self.execute_dml(stmt) == 1

    def clean_expired_verification_tokens(self, *, now: datetime) -> int:
        """Clear every verification pair whose expiry is before ``now``.

        :returns: Number of accounts affected.
        :rtype: int
        """
        stmt = (
            update(Account)
            .where(
                Account.verification_token.is_not(None),
                Account.verification_expires_at < now,
            )
            .values(verification_token=None, verification_expires_at=None)
        )
        return self.execute_dml(stmt)
