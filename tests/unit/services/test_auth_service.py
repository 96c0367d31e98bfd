# tests/unit/services/test_auth_service.py
"""
AuthService tests wired to in-memory doubles.

Accounts live in the transactional SQLite session; sessions, tokens and mail
use :class:`InMemorySessionTokenStore`, :class:`StubTokenProvider` and
:class:`InMemoryMailer`. The clock is frozen (see ``conftest.FrozenClock``).

Factory data is committed before calling the service: a unit of work that
rolls back on an expected error must not discard the test's own rows.
"""

from __future__ import annotations

from datetime import timedelta

import fakeredis
import pytest
from redis.exceptions import RedisError, WatchError

from authcore.core.security import as_utc
from authcore.infra.redis import RedisSessionTokenStore
from authcore.models import AccountRole
from authcore.repositories import AccountRepository
from authcore.services._shared.errors import AuthError, AuthErrorCode, InvalidInputError
from authcore.services._shared.ports import InMemorySessionTokenStore
from authcore.services.auth.dto import LoginIn, LoginOut, RegisterIn, ResetPasswordIn
from authcore.services.auth.service import AuthService
from authcore.services.auth.tokens import is_reset_token, is_verification_token
from tests.factories.account import DEFAULT_PASSWORD, AccountFactory

RESET = "0f" * 32


# ------------------------------ Helpers ----------------------------------- #
def _code(exc_info: pytest.ExceptionInfo[AuthError]) -> AuthErrorCode:
    return exc_info.value.code


@pytest.fixture()
def repo() -> AccountRepository:
    return AccountRepository()


@pytest.fixture()
def account(session):
    """A verified, active account committed to the test transaction."""
    acc = AccountFactory(email="user@example.com", username="user")
    session.commit()
    return acc


def _login(service: AuthService, email: str = "user@example.com") -> LoginOut:
    return service.login(LoginIn(email=email, password=DEFAULT_PASSWORD, client_ip="198.51.100.7"))


class _BrokenStore(InMemorySessionTokenStore):
    """Session store whose writes fail like an unreachable Redis."""

    def create(self, **kwargs):
        raise RedisError("connection refused")

    def delete_by_token(self, token):
        raise RedisError("connection refused")


class _LosingStore(InMemorySessionTokenStore):
    """Store where every rotation loses to a concurrent refresh."""

    def rotate(self, session_id, **kwargs):
        return False


# ------------------------------ Register ---------------------------------- #
class TestRegister:
    def test_creates_unverified_account_and_sends_token(self, auth_service, mailer, clock, repo, session):
        out = auth_service.register(
            RegisterIn(email="  New@Example.com ", username="newbie", password="s3cret-pass")
        )

        assert out.email == "new@example.com"
        assert out.username == "newbie"
        assert out.role == "user"
        assert out.is_verified is False
        assert not hasattr(out, "password_hash")

        assert len(mailer.outbox) == 1
        sent = mailer.outbox[0]
        assert sent.kind == "verification"
        assert sent.to == "new@example.com"
        assert is_verification_token(sent.token)

        stored = repo.find_by_id(out.id)
        assert stored.verification_token == sent.token
        assert as_utc(stored.verification_expires_at) == clock() + timedelta(minutes=10)
        assert stored.verify_password("s3cret-pass")

    def test_role_is_kept(self, auth_service, session):
        out = auth_service.register(
            RegisterIn(email="boss@example.com", username="boss", password="pw12345678", role=AccountRole.ADMIN)
        )
        assert out.role == "admin"

    def test_email_collision_checked_first(self, auth_service, account, mailer):
        with pytest.raises(AuthError) as exc_info:
            auth_service.register(RegisterIn(email="USER@example.com", username="user", password="x" * 8))
        assert _code(exc_info) is AuthErrorCode.AUTH_EMAIL_ALREADY_EXISTS
        assert mailer.outbox == []

    def test_username_collision(self, auth_service, account, mailer):
        with pytest.raises(AuthError) as exc_info:
            auth_service.register(RegisterIn(email="other@example.com", username="user", password="x" * 8))
        assert _code(exc_info) is AuthErrorCode.AUTH_USER_ALREADY_EXISTS
        assert mailer.outbox == []

    def test_delivery_failure_persists_nothing(self, auth_service, mailer, repo, session):
        mailer.fail = True
        with pytest.raises(AuthError) as exc_info:
            auth_service.register(RegisterIn(email="ghost@example.com", username="ghost", password="x" * 8))
        assert _code(exc_info) is AuthErrorCode.SERVICE_UNAVAILABLE
        assert repo.find_by_email("ghost@example.com") is None

    @pytest.mark.parametrize(
        ("email", "username", "field"),
        [
            ("blank@example.com", "   ", "username"),
            ("dev@localhost", "devuser", "email"),
            ("spaced out@example.com", "spaced", "email"),
        ],
    )
    def test_bad_identity_rejected_before_mail(self, auth_service, mailer, repo, session, email, username, field):
        with pytest.raises(InvalidInputError) as exc_info:
            auth_service.register(RegisterIn(email=email, username=username, password="pw-123456"))

        assert exc_info.value.field == field
        assert mailer.outbox == []
        assert repo.find_by_email(email.strip().lower()) is None

    def test_login_right_after_register_requires_verification(self, auth_service, session):
        auth_service.register(RegisterIn(email="fresh@example.com", username="fresh", password="pw-123456"))
        with pytest.raises(AuthError) as exc_info:
            auth_service.login(LoginIn(email="fresh@example.com", password="pw-123456"))
        assert _code(exc_info) is AuthErrorCode.EMAIL_NOT_VERIFIED


# ---------------------------- Verification -------------------------------- #
class TestVerifyEmail:
    @pytest.fixture()
    def registered(self, auth_service, mailer, session):
        out = auth_service.register(RegisterIn(email="v@example.com", username="v", password="pw-123456"))
        return out, mailer.last_token("verification")

    def test_verifies_and_clears_token(self, auth_service, registered, repo):
        out, token = registered

        verified = auth_service.verify_email(token)

        assert verified.id == out.id
        assert verified.is_verified is True
        stored = repo.find_by_id(out.id)
        assert stored.verification_token is None
        assert stored.verification_expires_at is None

    def test_token_verifies_at_most_once(self, auth_service, registered):
        _, token = registered
        auth_service.verify_email(token)
        with pytest.raises(AuthError) as exc_info:
            auth_service.verify_email(token)
        assert _code(exc_info) is AuthErrorCode.AUTH_TOKEN_INVALID

    def test_surrounding_whitespace_is_ignored(self, auth_service, registered):
        _, token = registered
        assert auth_service.verify_email(f"  {token}\n").is_verified

    @pytest.mark.parametrize("token", ["", "nope", "123e4567-e89b-12d3-a456-426614174000"])
    def test_malformed_token(self, auth_service, token):
        with pytest.raises(AuthError) as exc_info:
            auth_service.verify_email(token)
        assert _code(exc_info) is AuthErrorCode.AUTH_TOKEN_INVALID

    def test_unknown_token(self, auth_service):
        with pytest.raises(AuthError) as exc_info:
            auth_service.verify_email("7c9e6679-7425-40de-944b-e07fc1f90ae7")
        assert _code(exc_info) is AuthErrorCode.AUTH_TOKEN_INVALID

    def test_expired_token(self, auth_service, registered, clock, repo):
        out, token = registered
        clock.advance(minutes=11)
        with pytest.raises(AuthError) as exc_info:
            auth_service.verify_email(token)
        assert _code(exc_info) is AuthErrorCode.AUTH_TOKEN_EXPIRED
        assert repo.find_by_id(out.id).is_verified is False

    def test_already_verified_with_live_token(self, auth_service, clock, session):
        token = "7c9e6679-7425-40de-944b-e07fc1f90ae7"
        AccountFactory(
            is_verified=True,
            verification_token=token,
            verification_expires_at=clock() + timedelta(minutes=5),
        )
        session.commit()
        with pytest.raises(AuthError) as exc_info:
            auth_service.verify_email(token)
        assert _code(exc_info) is AuthErrorCode.AUTH_USER_ALREADY_VERIFIED


class TestResendVerification:
    def test_new_token_supersedes_previous(self, auth_service, mailer, session):
        auth_service.register(RegisterIn(email="r@example.com", username="r", password="pw-123456"))
        first = mailer.last_token("verification")

        auth_service.resend_verification("r@example.com")
        second = mailer.last_token("verification")

        assert second != first
        assert len(mailer.outbox) == 2
        with pytest.raises(AuthError) as exc_info:
            auth_service.verify_email(first)
        assert _code(exc_info) is AuthErrorCode.AUTH_TOKEN_INVALID
        assert auth_service.verify_email(second).is_verified

    def test_resend_restarts_expiry_window(self, auth_service, mailer, clock, session):
        auth_service.register(RegisterIn(email="late@example.com", username="late", password="pw-123456"))
        clock.advance(minutes=30)
        auth_service.resend_verification("late@example.com")
        assert auth_service.verify_email(mailer.last_token("verification")).is_verified

    def test_unknown_email(self, auth_service):
        with pytest.raises(AuthError) as exc_info:
            auth_service.resend_verification("missing@example.com")
        assert _code(exc_info) is AuthErrorCode.AUTH_USER_NOT_FOUND

    def test_already_verified(self, auth_service, account, mailer):
        with pytest.raises(AuthError) as exc_info:
            auth_service.resend_verification(account.email)
        assert _code(exc_info) is AuthErrorCode.AUTH_USER_ALREADY_VERIFIED
        assert mailer.outbox == []

    def test_delivery_failure(self, auth_service, mailer, session):
        AccountFactory(email="p@example.com", pending=True)
        session.commit()
        mailer.fail = True
        with pytest.raises(AuthError) as exc_info:
            auth_service.resend_verification("p@example.com")
        assert _code(exc_info) is AuthErrorCode.SERVICE_UNAVAILABLE


# -------------------------------- Login ----------------------------------- #
class TestLogin:
    def test_issues_pair_and_opens_session(self, auth_service, account, sessions, clock, repo):
        result = _login(auth_service)

        assert result.account.id == account.id
        assert result.access_token.startswith("access.")
        assert result.refresh_token.startswith("refresh.")

        record = sessions.find_by_token(result.refresh_token)
        assert record is not None
        assert record.user_id == account.id
        assert record.last_activity_at == clock()
        assert record.expires_at == clock() + timedelta(days=7)

        stored = repo.find_by_id(account.id)
        assert as_utc(stored.last_login_at) == clock()
        assert stored.last_login_ip == "198.51.100.7"

    def test_claims_carry_identity_and_role(self, auth_service, account, token_provider):
        result = _login(auth_service)
        claims = token_provider.decode(result.access_token)
        assert claims["sub"] == str(account.id)
        assert claims["uid"] == account.id
        assert claims["email"] == "user@example.com"
        assert claims["role"] == "user"

    def test_unknown_email(self, auth_service):
        with pytest.raises(AuthError) as exc_info:
            _login(auth_service, "nobody@example.com")
        assert _code(exc_info) is AuthErrorCode.AUTH_INVALID_CREDENTIALS

    def test_wrong_password(self, auth_service, account, sessions):
        with pytest.raises(AuthError) as exc_info:
            auth_service.login(LoginIn(email=account.email, password="wrong-password"))
        assert _code(exc_info) is AuthErrorCode.AUTH_FORBIDDEN
        assert len(sessions) == 0

    def test_password_checked_before_verification(self, auth_service, session):
        AccountFactory(email="u@example.com", pending=True)
        session.commit()
        with pytest.raises(AuthError) as exc_info:
            auth_service.login(LoginIn(email="u@example.com", password="wrong-password"))
        assert _code(exc_info) is AuthErrorCode.AUTH_FORBIDDEN

    def test_unverified(self, auth_service, session):
        AccountFactory(email="u@example.com", pending=True)
        session.commit()
        with pytest.raises(AuthError) as exc_info:
            _login(auth_service, "u@example.com")
        assert _code(exc_info) is AuthErrorCode.EMAIL_NOT_VERIFIED

    def test_deactivated(self, auth_service, session):
        AccountFactory(email="off@example.com", is_active=False)
        session.commit()
        with pytest.raises(AuthError) as exc_info:
            _login(auth_service, "off@example.com")
        assert _code(exc_info) is AuthErrorCode.AUTH_FORBIDDEN

    def test_session_persist_failure_is_suppressed(self, token_provider, mailer, clock, account):
        service = AuthService(
            token_provider=token_provider, sessions=_BrokenStore(), mailer=mailer, clock=clock
        )
        result = _login(service)
        assert result.refresh_token


# ------------------------------- Refresh ---------------------------------- #
class TestRefresh:
    def test_rotates_and_old_token_stops_working(self, auth_service, account, sessions, clock):
        pair1 = _login(auth_service)
        clock.advance(hours=1)

        pair2 = auth_service.refresh_token(pair1.refresh_token)

        assert pair2.refresh_token != pair1.refresh_token
        assert len(sessions) == 1
        record = sessions.find_by_token(pair2.refresh_token)
        assert record.last_activity_at == clock()
        assert record.expires_at == clock() + timedelta(days=7)

        with pytest.raises(AuthError) as exc_info:
            auth_service.refresh_token(pair1.refresh_token)
        assert _code(exc_info) is AuthErrorCode.INVALID_REFRESH_TOKEN

        # The rotated token keeps working.
        auth_service.refresh_token(pair2.refresh_token)

    @pytest.mark.parametrize("token", ["", "refresh.1.999"])
    def test_unknown_or_empty(self, auth_service, token):
        with pytest.raises(AuthError) as exc_info:
            auth_service.refresh_token(token)
        assert _code(exc_info) is AuthErrorCode.INVALID_REFRESH_TOKEN

    def test_after_logout(self, auth_service, account):
        pair = _login(auth_service)
        auth_service.logout(pair.refresh_token)
        with pytest.raises(AuthError) as exc_info:
            auth_service.refresh_token(pair.refresh_token)
        assert _code(exc_info) is AuthErrorCode.INVALID_REFRESH_TOKEN

    def test_expired_session_is_removed_not_renewed(self, auth_service, account, sessions, clock):
        pair = _login(auth_service)
        clock.advance(days=8)

        with pytest.raises(AuthError) as exc_info:
            auth_service.refresh_token(pair.refresh_token)

        assert _code(exc_info) is AuthErrorCode.INVALID_REFRESH_TOKEN
        assert len(sessions) == 0

    def test_access_token_is_not_a_refresh_token(self, auth_service, account, sessions, clock):
        pair = _login(auth_service)
        sessions.create(
            user_id=account.id,
            token=pair.access_token,
            last_activity_at=clock(),
            expires_at=clock() + timedelta(days=7),
        )
        with pytest.raises(AuthError) as exc_info:
            auth_service.refresh_token(pair.access_token)
        assert _code(exc_info) is AuthErrorCode.INVALID_REFRESH_TOKEN

    def test_subject_must_match_session_owner(self, auth_service, account, sessions, token_provider, clock):
        foreign = token_provider.create_refresh_token(identity=str(account.id + 1000))
        sessions.create(
            user_id=account.id,
            token=foreign,
            last_activity_at=clock(),
            expires_at=clock() + timedelta(days=7),
        )
        with pytest.raises(AuthError) as exc_info:
            auth_service.refresh_token(foreign)
        assert _code(exc_info) is AuthErrorCode.INVALID_REFRESH_TOKEN

    def test_unsigned_token_with_session_rejected(self, auth_service, account, sessions, clock):
        sessions.create(
            user_id=account.id,
            token="forged-token",
            last_activity_at=clock(),
            expires_at=clock() + timedelta(days=7),
        )
        with pytest.raises(AuthError) as exc_info:
            auth_service.refresh_token("forged-token")
        assert _code(exc_info) is AuthErrorCode.INVALID_REFRESH_TOKEN

    def test_deactivated_account(self, auth_service, account, repo, session):
        pair = _login(auth_service)
        repo.update(account.id, {"is_active": False})
        session.commit()
        with pytest.raises(AuthError) as exc_info:
            auth_service.refresh_token(pair.refresh_token)
        assert _code(exc_info) is AuthErrorCode.INVALID_REFRESH_TOKEN

    def test_role_change_is_picked_up(self, auth_service, account, repo, session, token_provider):
        pair = _login(auth_service)
        repo.update(account.id, {"role": AccountRole.MANAGER})
        session.commit()

        rotated = auth_service.refresh_token(pair.refresh_token)

        assert token_provider.decode(rotated.access_token)["role"] == "manager"

    def test_lost_rotation(self, token_provider, mailer, clock, account):
        service = AuthService(
            token_provider=token_provider, sessions=_LosingStore(), mailer=mailer, clock=clock
        )
        pair = _login(service)
        with pytest.raises(AuthError) as exc_info:
            service.refresh_token(pair.refresh_token)
        assert _code(exc_info) is AuthErrorCode.INVALID_REFRESH_TOKEN

    def test_endless_redis_contention_is_a_storage_error(self, token_provider, mailer, clock, account, monkeypatch):
        r = fakeredis.FakeRedis()
        service = AuthService(
            token_provider=token_provider, sessions=RedisSessionTokenStore(r=r), mailer=mailer, clock=clock
        )
        pair = _login(service)

        original_pipeline = r.pipeline

        def conflicted_pipeline(*args, **kwargs):
            pipe = original_pipeline(*args, **kwargs)

            def conflicted(*_a, **_kw):
                raise WatchError("concurrent write")

            pipe.execute = conflicted  # type: ignore[method-assign]
            return pipe

        monkeypatch.setattr(r, "pipeline", conflicted_pipeline)

        with pytest.raises(AuthError) as exc_info:
            service.refresh_token(pair.refresh_token)
        assert _code(exc_info) is AuthErrorCode.DATABASE_ERROR


# -------------------------------- Logout ---------------------------------- #
class TestLogout:
    def test_deletes_only_that_session(self, auth_service, account, sessions):
        first = _login(auth_service)
        second = _login(auth_service)

        auth_service.logout(first.refresh_token)

        assert sessions.find_by_token(first.refresh_token) is None
        assert sessions.find_by_token(second.refresh_token) is not None

    @pytest.mark.parametrize("token", ["", "refresh.1.404"])
    def test_unknown_token(self, auth_service, token):
        with pytest.raises(AuthError) as exc_info:
            auth_service.logout(token)
        assert _code(exc_info) is AuthErrorCode.INVALID_REFRESH_TOKEN

    def test_storage_failure_is_database_error(self, token_provider, mailer, clock):
        service = AuthService(
            token_provider=token_provider, sessions=_BrokenStore(), mailer=mailer, clock=clock
        )
        with pytest.raises(AuthError) as exc_info:
            service.logout("refresh.1.1")
        assert _code(exc_info) is AuthErrorCode.DATABASE_ERROR


# --------------------------- Password recovery ---------------------------- #
class TestForgotPassword:
    def test_stores_and_sends_reset_token(self, auth_service, account, mailer, clock, repo):
        auth_service.forgot_password("User@Example.com")

        token = mailer.last_token("password_reset")
        assert is_reset_token(token)
        stored = repo.find_by_id(account.id)
        assert stored.reset_token == token
        assert stored.reset_token_used is False
        assert as_utc(stored.reset_expires_at) == clock() + timedelta(hours=1)

    def test_unknown_email(self, auth_service, mailer):
        with pytest.raises(AuthError) as exc_info:
            auth_service.forgot_password("missing@example.com")
        assert _code(exc_info) is AuthErrorCode.AUTH_USER_NOT_FOUND
        assert mailer.outbox == []

    def test_delivery_failure(self, auth_service, account, mailer):
        mailer.fail = True
        with pytest.raises(AuthError) as exc_info:
            auth_service.forgot_password(account.email)
        assert _code(exc_info) is AuthErrorCode.SERVICE_UNAVAILABLE


class TestValidateResetToken:
    @pytest.fixture()
    def reset_token(self, auth_service, account, mailer):
        auth_service.forgot_password(account.email)
        return mailer.last_token("password_reset")

    def test_valid(self, auth_service, reset_token):
        status = auth_service.validate_reset_token(reset_token)
        assert (status.is_valid, status.is_expired, status.user_exists) == (True, False, True)

    @pytest.mark.parametrize("token", ["", "xyz", "F" * 64, RESET])
    def test_malformed_or_unknown(self, auth_service, token):
        status = auth_service.validate_reset_token(token)
        assert (status.is_valid, status.is_expired, status.user_exists) == (False, False, False)

    def test_expired(self, auth_service, reset_token, clock):
        clock.advance(hours=2)
        status = auth_service.validate_reset_token(reset_token)
        assert (status.is_valid, status.is_expired, status.user_exists) == (False, True, True)

    def test_used_reports_expiry_independently(self, auth_service, reset_token, clock):
        auth_service.reset_password(ResetPasswordIn(token=reset_token, new_password="n3w-password"))
        status = auth_service.validate_reset_token(reset_token)
        assert (status.is_valid, status.is_expired, status.user_exists) == (False, False, True)

        clock.advance(hours=2)
        status = auth_service.validate_reset_token(reset_token)
        assert (status.is_valid, status.is_expired, status.user_exists) == (False, True, True)

    def test_inactive_account(self, auth_service, account, reset_token, repo, session):
        repo.update(account.id, {"is_active": False})
        session.commit()
        status = auth_service.validate_reset_token(reset_token)
        assert (status.is_valid, status.is_expired, status.user_exists) == (False, False, False)

    def test_does_not_consume_token(self, auth_service, reset_token):
        auth_service.validate_reset_token(reset_token)
        auth_service.validate_reset_token(reset_token)
        assert auth_service.validate_reset_token(reset_token).is_valid


class TestResetPassword:
    @pytest.fixture()
    def reset_token(self, auth_service, account, mailer):
        auth_service.forgot_password(account.email)
        return mailer.last_token("password_reset")

    def test_changes_password_once(self, auth_service, reset_token, repo, account):
        auth_service.reset_password(ResetPasswordIn(token=reset_token, new_password="n3w-password"))

        stored = repo.find_by_id(account.id)
        assert stored.verify_password("n3w-password")
        assert stored.reset_token_used is True
        assert stored.reset_token == reset_token
        assert auth_service.login(LoginIn(email=account.email, password="n3w-password")).access_token

        with pytest.raises(AuthError) as exc_info:
            auth_service.reset_password(ResetPasswordIn(token=reset_token, new_password="another-pass"))
        assert _code(exc_info) is AuthErrorCode.AUTH_TOKEN_ALREADY_USED

    def test_used_wins_over_expired(self, auth_service, reset_token, clock):
        auth_service.reset_password(ResetPasswordIn(token=reset_token, new_password="n3w-password"))
        clock.advance(hours=3)
        with pytest.raises(AuthError) as exc_info:
            auth_service.reset_password(ResetPasswordIn(token=reset_token, new_password="another-pass"))
        assert _code(exc_info) is AuthErrorCode.AUTH_TOKEN_ALREADY_USED

    def test_expired(self, auth_service, reset_token, clock, repo, account):
        clock.advance(hours=2)
        with pytest.raises(AuthError) as exc_info:
            auth_service.reset_password(ResetPasswordIn(token=reset_token, new_password="n3w-password"))
        assert _code(exc_info) is AuthErrorCode.AUTH_TOKEN_EXPIRED
        assert repo.find_by_id(account.id).verify_password(DEFAULT_PASSWORD)

    @pytest.mark.parametrize("token", ["", "short", "Z" * 64, "A" * 64])
    def test_malformed(self, auth_service, token):
        with pytest.raises(AuthError) as exc_info:
            auth_service.reset_password(ResetPasswordIn(token=token, new_password="n3w-password"))
        assert _code(exc_info) is AuthErrorCode.AUTH_RESET_TOKEN_MALFORMED

    def test_unknown(self, auth_service):
        with pytest.raises(AuthError) as exc_info:
            auth_service.reset_password(ResetPasswordIn(token=RESET, new_password="n3w-password"))
        assert _code(exc_info) is AuthErrorCode.INVALID_RESET_TOKEN

    def test_inactive_account(self, auth_service, reset_token, repo, account, session):
        repo.update(account.id, {"is_active": False})
        session.commit()
        with pytest.raises(AuthError) as exc_info:
            auth_service.reset_password(ResetPasswordIn(token=reset_token, new_password="n3w-password"))
        assert _code(exc_info) is AuthErrorCode.INVALID_RESET_TOKEN

    def test_new_forgot_request_replaces_used_token(self, auth_service, reset_token, account, mailer):
        auth_service.reset_password(ResetPasswordIn(token=reset_token, new_password="n3w-password"))
        auth_service.forgot_password(account.email)
        fresh = mailer.last_token("password_reset")

        assert fresh != reset_token
        assert auth_service.validate_reset_token(fresh).is_valid
        with pytest.raises(AuthError) as exc_info:
            auth_service.reset_password(ResetPasswordIn(token=reset_token, new_password="x" * 10))
        assert _code(exc_info) is AuthErrorCode.INVALID_RESET_TOKEN


# --------------------------- Queries / maintenance ------------------------ #
class TestGetMe:
    @pytest.mark.parametrize("as_str", [False, True])
    def test_returns_account(self, auth_service, account, as_str):
        identity = str(account.id) if as_str else account.id
        out = auth_service.get_me(identity)
        assert out.id == account.id
        assert out.email == "user@example.com"

    @pytest.mark.parametrize("identity", [999_999, "999999", "abc"])
    def test_missing(self, auth_service, identity):
        with pytest.raises(AuthError) as exc_info:
            auth_service.get_me(identity)
        assert _code(exc_info) is AuthErrorCode.AUTH_USER_NOT_FOUND


def test_clean_expired_verification_tokens(auth_service, clock, session, repo):
    stale = AccountFactory(
        is_verified=False,
        verification_token="11111111-1111-4111-8111-111111111111",
        verification_expires_at=clock() - timedelta(minutes=1),
    )
    AccountFactory(
        is_verified=False,
        verification_token="22222222-2222-4222-8222-222222222222",
        verification_expires_at=clock() + timedelta(minutes=1),
    )
    session.commit()

    assert auth_service.clean_expired_verification_tokens() == 1
    assert repo.find_by_id(stale.id).verification_token is None
    assert auth_service.clean_expired_verification_tokens() == 0
