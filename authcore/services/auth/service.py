# authcore/services/auth/service.py
from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from redis.exceptions import RedisError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from authcore.core.security import as_utc, hash_password
from authcore.models.account import Account, normalize_email, normalize_username
from authcore.services._shared.base import BaseService
from authcore.services._shared.errors import (
    AuthError,
    AuthErrorCode,
    InvalidInputError,
    MailDeliveryError,
    TokenVerificationError,
    violates,
)
from authcore.services._shared.ports.mailer import Mailer
from authcore.services._shared.ports.session_token_store import SessionTokenStore
from authcore.services._shared.ports.token_provider import TokenProvider
from authcore.services.auth.dto import (
    AccountOut,
    AuthTokenConfig,
    LoginIn,
    LoginOut,
    RegisterIn,
    ResetPasswordIn,
    ResetTokenStatus,
    TokenPairOut,
)
from authcore.services.auth.tokens import (
    is_reset_token,
    is_verification_token,
    new_reset_token,
    new_verification_token,
)

log = logging.getLogger(__name__)

REFRESH_TOKEN_TYPE = "refresh"

_STORAGE_ERRORS = (SQLAlchemyError, RedisError)

_REGISTER_CONFLICTS: Mapping[str, AuthErrorCode] = {
    "uq_accounts_email": AuthErrorCode.AUTH_EMAIL_ALREADY_EXISTS,
    "uq_accounts_username": AuthErrorCode.AUTH_USER_ALREADY_EXISTS,
}


class AuthService(BaseService):
    """
    Credential and session-token lifecycle service.

    Registration with email verification, login, refresh-token rotation,
    logout and password recovery. The service is stateless between calls:
    accounts are reached through a unit of work, sessions through a
    :class:`SessionTokenStore`, tokens through a :class:`TokenProvider` and
    email through a :class:`Mailer`.

    Every failure surfaces as :class:`AuthError` with an :class:`AuthErrorCode`;
    storage exceptions are logged and reported as ``DATABASE_ERROR``.
    """

    def __init__(
        self,
        *,
        token_provider: TokenProvider,
        sessions: SessionTokenStore,
        mailer: Mailer,
        token_cfg: AuthTokenConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize the service with its dependencies.

        :param token_provider: Adapter for issuing/decoding signed tokens.
        :param sessions: Store for refresh-token session records.
        :param mailer: Adapter delivering verification and reset emails.
        :param token_cfg: Token lifetimes.
        :param clock: Returns the current aware UTC instant (tests inject one).
        """
        super().__init__()
        self.tokens = token_provider
        self.sessions = sessions
        self.mailer = mailer
        self.cfg = token_cfg or AuthTokenConfig()
        self._clock = clock or (lambda: datetime.now(UTC))

    # ------------------------------------------------------------------ #
    # Registration & verification
    # ------------------------------------------------------------------ #

    def register(self, dto: RegisterIn) -> AccountOut:
        """
        Create an unverified account after its verification email was sent.

        :param dto: Registration input.
        :returns: The created account (no password hash).
        :raises InvalidInputError: Malformed email or blank username; raised
            before any lookup or email is sent.
        :raises AuthError: ``AUTH_EMAIL_ALREADY_EXISTS``,
            ``AUTH_USER_ALREADY_EXISTS``, ``SERVICE_UNAVAILABLE`` when the email
            cannot be delivered (nothing is persisted) or ``DATABASE_ERROR``.
        """
        email = self._checked("email", normalize_email, dto.email)
        username = self._checked("username", normalize_username, dto.username)

        with self._storage_errors("auth.register.lookup_failed"), self.ro_uow() as uow:
            if uow.accounts.find_by_email(email) is not None:
                raise AuthError(AuthErrorCode.AUTH_EMAIL_ALREADY_EXISTS)
            if uow.accounts.find_by_username(username) is not None:
                raise AuthError(AuthErrorCode.AUTH_USER_ALREADY_EXISTS)

        password_hash = hash_password(dto.password)
        token = new_verification_token()
        expires_at = self.now_utc() + self.cfg.verification_expires

        # Delivery comes first: an account nobody can verify is never stored.
        self._deliver(self.mailer.send_verification_email, email, token, "auth.register.mail_failed")

        with (
            self._storage_errors("auth.register.persist_failed", conflicts=_REGISTER_CONFLICTS),
            self.rw_uow() as uow,
        ):
            account = uow.accounts.create(
                email=email,
                username=username,
                password_hash=password_hash,
                role=dto.role,
                verification_token=token,
                verification_expires_at=expires_at,
            )
            out = AccountOut.from_model(account)

        log.info("auth.register.created", extra={"account_id": out.id})
        return out

    def verify_email(self, token: str) -> AccountOut:
        """
        Redeem a verification token.

        :raises AuthError: ``AUTH_TOKEN_INVALID`` (malformed or unknown),
            ``AUTH_USER_ALREADY_VERIFIED`` or ``AUTH_TOKEN_EXPIRED``.
        """
        if not is_verification_token(token):
            raise AuthError(AuthErrorCode.AUTH_TOKEN_INVALID)
        token = token.strip()
        now = self.now_utc()

        with self._storage_errors("auth.verify.failed"), self.rw_uow() as uow:
            account = uow.accounts.find_by_verification_token(token)
            if account is None:
                raise AuthError(AuthErrorCode.AUTH_TOKEN_INVALID)
            if account.is_verified:
                raise AuthError(AuthErrorCode.AUTH_USER_ALREADY_VERIFIED)
            if self._expired(account.verification_expires_at, now):
                raise AuthError(AuthErrorCode.AUTH_TOKEN_EXPIRED)
            uow.accounts.set_verified(account.id)
            out = AccountOut.from_model(account)

        log.info("auth.verify.completed", extra={"account_id": out.id})
        return out

    def resend_verification(self, email: str) -> None:
        """
        Issue a new verification token (invalidating the previous one) and send it.

        :raises AuthError: ``AUTH_USER_NOT_FOUND``, ``AUTH_USER_ALREADY_VERIFIED``
            or ``SERVICE_UNAVAILABLE``.
        """
        token = new_verification_token()
        expires_at = self.now_utc() + self.cfg.verification_expires

        with self._storage_errors("auth.resend.failed"), self.rw_uow() as uow:
            account = uow.accounts.find_by_email(email)
            if account is None:
                raise AuthError(AuthErrorCode.AUTH_USER_NOT_FOUND)
            if account.is_verified:
                raise AuthError(AuthErrorCode.AUTH_USER_ALREADY_VERIFIED)
            to = account.email
            uow.accounts.set_verification_token(account.id, token, expires_at)

        self._deliver(self.mailer.send_verification_email, to, token, "auth.resend.mail_failed")

    # ------------------------------------------------------------------ #
    # Login / refresh / logout
    # ------------------------------------------------------------------ #

    def login(self, dto: LoginIn) -> LoginOut:
        """
        Authenticate credentials, issue a token pair and open a session.

        Session persistence and login tracking are best-effort: failures are
        logged and the tokens are still returned.

        :param dto: Login input.
        :returns: Account plus access/refresh tokens.
        :raises AuthError: ``AUTH_INVALID_CREDENTIALS`` (unknown email),
            ``AUTH_FORBIDDEN`` (wrong password or deactivated account) or
            ``EMAIL_NOT_VERIFIED``.
        """
        with self._storage_errors("auth.login.lookup_failed"), self.ro_uow() as uow:
            account = uow.accounts.find_by_email(dto.email)
            if account is None:
                raise AuthError(AuthErrorCode.AUTH_INVALID_CREDENTIALS)
            if not account.verify_password(dto.password):
                raise AuthError(AuthErrorCode.AUTH_FORBIDDEN)
            if not account.is_verified:
                raise AuthError(AuthErrorCode.EMAIL_NOT_VERIFIED)
            if not account.is_active:
                raise AuthError(AuthErrorCode.AUTH_FORBIDDEN, "Account is deactivated.")
            out = AccountOut.from_model(account)
            claims = self._claims(account)

        pair = self._issue_pair(out.id, claims)
        now = self.now_utc()

        try:
            self.sessions.create(
                user_id=out.id,
                token=pair.refresh_token,
                last_activity_at=now,
                expires_at=now + self.cfg.refresh_expires,
            )
        except _STORAGE_ERRORS:
            log.warning(
                "auth.login.session_persist_failed", exc_info=True, extra={"account_id": out.id}
            )

        try:
            with self.rw_uow() as uow:
                uow.accounts.update_login_tracking(out.id, at=now, ip=dto.client_ip)
        except SQLAlchemyError:
            log.warning("auth.login.tracking_failed", exc_info=True, extra={"account_id": out.id})

        log.info("auth.login.succeeded", extra={"account_id": out.id, "client_ip": dto.client_ip})
        return LoginOut(
            account=out,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )

    def refresh_token(self, token: str) -> TokenPairOut:
        """
        Rotate a refresh token and emit a new token pair.

        Security
        --------
        - A valid signature is not enough: a matching session record must exist.
        - An expired session is deleted and never renewed.
        - The swap is conditional on the stored token still being ``token``,
          so of two concurrent refreshes with the same token only one wins.

        :raises AuthError: ``INVALID_REFRESH_TOKEN`` for every rejection.
        """
        if not token:
            raise AuthError(AuthErrorCode.INVALID_REFRESH_TOKEN)
        now = self.now_utc()

        with self._storage_errors("auth.refresh.lookup_failed"):
            record = self.sessions.find_by_token(token)
        if record is None:
            raise AuthError(AuthErrorCode.INVALID_REFRESH_TOKEN)

        if as_utc(record.expires_at) < now:
            with self._storage_errors("auth.refresh.cleanup_failed"):
                self.sessions.delete_by_id(record.id)
            log.info("auth.refresh.expired", extra={"session_id": record.id})
            raise AuthError(AuthErrorCode.INVALID_REFRESH_TOKEN)

        try:
            token_type = self.tokens.get_token_type(token)
            subject = self.tokens.get_subject(token)
        except TokenVerificationError as exc:
            raise AuthError(AuthErrorCode.INVALID_REFRESH_TOKEN) from exc
        if token_type != REFRESH_TOKEN_TYPE or str(subject) != str(record.user_id):
            raise AuthError(AuthErrorCode.INVALID_REFRESH_TOKEN)

        with self._storage_errors("auth.refresh.account_lookup_failed"), self.ro_uow() as uow:
            account = uow.accounts.find_by_id(record.user_id)
            if account is None or not account.is_active:
                raise AuthError(AuthErrorCode.INVALID_REFRESH_TOKEN)
            claims = self._claims(account)

        pair = self._issue_pair(record.user_id, claims)
        with self._storage_errors("auth.refresh.rotate_failed"):
            rotated = self.sessions.rotate(
                record.id,
                expected_token=token,
                new_token=pair.refresh_token,
                last_activity_at=now,
                expires_at=now + self.cfg.refresh_expires,
            )
        if not rotated:
            log.warning("auth.refresh.lost_rotation", extra={"session_id": record.id})
            raise AuthError(AuthErrorCode.INVALID_REFRESH_TOKEN)

        return pair

    def logout(self, token: str) -> None:
        """
        Delete the session holding ``token``.

        :raises AuthError: ``INVALID_REFRESH_TOKEN`` when nothing was deleted.
        """
        if not token:
            raise AuthError(AuthErrorCode.INVALID_REFRESH_TOKEN)
        with self._storage_errors("auth.logout.failed"):
            deleted = self.sessions.delete_by_token(token)
        if deleted == 0:
            raise AuthError(AuthErrorCode.INVALID_REFRESH_TOKEN)

    # ------------------------------------------------------------------ #
    # Password recovery
    # ------------------------------------------------------------------ #

    def forgot_password(self, email: str) -> None:
        """
        Store a fresh reset token and email it.

        :raises AuthError: ``AUTH_USER_NOT_FOUND`` or ``SERVICE_UNAVAILABLE``.
        """
        token = new_reset_token()
        expires_at = self.now_utc() + self.cfg.reset_expires

        with self._storage_errors("auth.forgot.failed"), self.rw_uow() as uow:
            account = uow.accounts.find_by_email(email)
            if account is None:
                raise AuthError(AuthErrorCode.AUTH_USER_NOT_FOUND)
            to = account.email
            uow.accounts.set_reset_token(account.id, token, expires_at)

        self._deliver(self.mailer.send_password_reset_email, to, token, "auth.forgot.mail_failed")

    def validate_reset_token(self, token: str) -> ResetTokenStatus:
        """
        Report whether a reset token could be redeemed, without mutating anything.

        ``user_exists`` is true once the token belongs to an active account;
        ``is_expired`` is reported independently of the used flag.
        """
        invalid = ResetTokenStatus(is_valid=False, is_expired=False, user_exists=False)
        if not is_reset_token(token):
            return invalid
        now = self.now_utc()

        with self._storage_errors("auth.reset.validate_failed"), self.ro_uow() as uow:
            account = uow.accounts.find_by_reset_token_any(token)
            if account is None or not account.is_active:
                return invalid
            expired = self._expired(account.reset_expires_at, now)
            used = bool(account.reset_token_used)

        return ResetTokenStatus(is_valid=not used and not expired, is_expired=expired, user_exists=True)

    def reset_password(self, dto: ResetPasswordIn) -> None:
        """
        Replace the password using a reset token; the token becomes used.

        :raises AuthError: ``AUTH_RESET_TOKEN_MALFORMED``,
            ``INVALID_RESET_TOKEN``, ``AUTH_TOKEN_ALREADY_USED`` (regardless of
            expiry), ``AUTH_TOKEN_EXPIRED`` or ``DATABASE_ERROR`` when the
            conditional update matched no row.
        """
        if not is_reset_token(dto.token):
            raise AuthError(AuthErrorCode.AUTH_RESET_TOKEN_MALFORMED)
        now = self.now_utc()

        with self._storage_errors("auth.reset.failed"), self.rw_uow() as uow:
            account = uow.accounts.find_by_reset_token(dto.token, now=now)
            if account is None or not account.is_active:
                self._raise_reset_failure(uow.accounts.find_by_reset_token_any(dto.token), now)
            account_id = account.id
            changed = uow.accounts.set_new_password(
                account_id, dto.token, hash_password(dto.new_password), now=now
            )
            if not changed:
                log.error("auth.reset.conditional_update_missed", extra={"account_id": account_id})
                raise AuthError(AuthErrorCode.DATABASE_ERROR)

        log.info("auth.reset.completed", extra={"account_id": account_id})

    # ------------------------------------------------------------------ #
    # Queries & maintenance
    # ------------------------------------------------------------------ #

    def get_me(self, account_id: int | str) -> AccountOut:
        """Return the account for an authenticated identity."""
        coerced = self._coerce_account_id(account_id)
        with self._storage_errors("auth.me.failed"), self.ro_uow() as uow:
            account = uow.accounts.find_by_id(coerced)
            if account is None:
                raise AuthError(AuthErrorCode.AUTH_USER_NOT_FOUND)
            return AccountOut.from_model(account)

    def clean_expired_verification_tokens(self) -> int:
        """Clear expired verification pairs. :returns: Number of accounts affected."""
        with self._storage_errors("auth.verify.cleanup_failed"), self.rw_uow() as uow:
            count = uow.accounts.clean_expired_verification_tokens(now=self.now_utc())
        log.info("auth.verify.cleanup cleared=%d", count)
        return count

    # ------------------------------------------------------------------ #
    # Utilities
    # ------------------------------------------------------------------ #

    def now_utc(self) -> datetime:
        return as_utc(self._clock())

    @staticmethod
    def _checked(field: str, normalize: Callable[[Any], str], value: Any) -> str:
        try:
            return normalize(value)
        except ValueError as exc:
            raise InvalidInputError(field, str(exc)) from exc

    @staticmethod
    def _expired(expires_at: datetime | None, now: datetime) -> bool:
        return expires_at is None or as_utc(expires_at) < now

    @staticmethod
    def _claims(account: Account) -> dict[str, Any]:
        """Minimal claims; rebuilt on every issuance so role changes apply."""
        role = account.role
        return {
            "uid": account.id,
            "email": account.email,
            "role": getattr(role, "value", role),
        }

    def _issue_pair(self, account_id: int, claims: dict[str, Any]) -> TokenPairOut:
        identity = str(account_id)
        access = self.tokens.create_access_token(
            identity=identity,
            additional_claims=claims,
            expires_delta=self.cfg.access_expires,
        )
        refresh = self.tokens.create_refresh_token(
            identity=identity,
            additional_claims=claims,
            expires_delta=self.cfg.refresh_expires,
        )
        return TokenPairOut(access_token=access, refresh_token=refresh)

    @staticmethod
    def _raise_reset_failure(account: Account | None, now: datetime) -> None:
        """Explain why the redeemable-token lookup found nothing."""
        if account is None or not account.is_active:
            raise AuthError(AuthErrorCode.INVALID_RESET_TOKEN)
        if account.reset_token_used:
            raise AuthError(AuthErrorCode.AUTH_TOKEN_ALREADY_USED)
        if AuthService._expired(account.reset_expires_at, now):
            raise AuthError(AuthErrorCode.AUTH_TOKEN_EXPIRED)
        raise AuthError(AuthErrorCode.INVALID_RESET_TOKEN)

    @staticmethod
    def _coerce_account_id(subject: int | str) -> int:
        """Ensure a JWT subject can be treated as an integer account id."""
        if isinstance(subject, int):
            return subject
        if isinstance(subject, str) and subject.isdigit():
            return int(subject)
        raise AuthError(AuthErrorCode.AUTH_USER_NOT_FOUND)

    @staticmethod
    def _deliver(send: Callable[[str, str], None], to: str, token: str, event: str) -> None:
        try:
            send(to, token)
        except MailDeliveryError as exc:
            log.error(event, exc_info=True)
            raise AuthError(AuthErrorCode.SERVICE_UNAVAILABLE) from exc

    @staticmethod
    @contextmanager
    def _storage_errors(
        event: str,
        *,
        conflicts: Mapping[str, AuthErrorCode] | None = None,
    ) -> Iterator[None]:
        """Translate repository/store exceptions into ``AuthError``.

        :param event: Log message emitted with the traceback.
        :param conflicts: Constraint name → code for expected ``IntegrityError``s.
        """
        try:
            yield
        except IntegrityError as exc:
            for constraint, code in (conflicts or {}).items():
                if violates(exc, constraint):
                    raise AuthError(code) from exc
            log.error(event, exc_info=True)
            raise AuthError(AuthErrorCode.DATABASE_ERROR) from exc
        except _STORAGE_ERRORS as exc:
            log.error(event, exc_info=True)
            raise AuthError(AuthErrorCode.DATABASE_ERROR) from exc
