"""Shared fixtures: app, transactional database session and auth doubles.

Each test runs inside a SAVEPOINT on one long-lived SQLite connection, so a
unit-of-work ``commit()`` only releases that SAVEPOINT and nothing leaks
between tests.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import event
from sqlalchemy.orm import scoped_session, sessionmaker

from authcore.core.config import TestingConfig
from authcore.core.extensions import db as _db
from authcore.factory import create_app
from authcore.services._shared.ports import (
    InMemoryMailer,
    InMemorySessionTokenStore,
    StubTokenProvider,
)
from authcore.services.auth.dto import AuthTokenConfig
from authcore.services.auth.service import AuthService


class TestConfig(TestingConfig):
    """In-memory SQLite, SQL session store, no Redis or SMTP, pinned lifetimes."""

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = "test-secret-key-with-at-least-32-bytes!"
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=15)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=7)
    VERIFICATION_TOKEN_EXPIRES = timedelta(minutes=10)
    RESET_TOKEN_EXPIRES = timedelta(hours=1)
    SESSION_STORE = "sql"
    REDIS_URL = None
    MAIL_HOST = None
    LOG_LEVEL = "WARNING"


@pytest.fixture(scope="session")
def app():
    os.environ.pop("DATABASE_URL", None)
    application = create_app(TestConfig)
    application.logger.setLevel("WARNING")
    return application


@pytest.fixture(scope="session")
def db(app):
    """Create the schema once; the app context stays pushed for the session."""
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="session")
def connection(db):
    conn = db.engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def session(db, connection):
    """Swap ``db.session`` for a scoped session bound to a per-test SAVEPOINT.

    The SAVEPOINT is re-opened whenever the session ends one, and the outer
    transaction is rolled back when the test finishes.
    """
    outer = connection.begin()
    scoped = scoped_session(sessionmaker(bind=connection, future=True))
    nested = connection.begin_nested()

    @event.listens_for(scoped(), "after_transaction_end")
    def _restart_savepoint(sess, trans):  # pragma: no cover
        nonlocal nested
        if trans.nested and not trans._parent.nested:
            nested = connection.begin_nested()

    original = db.session
    db.session.remove()
    db.session = scoped
    try:
        yield scoped
    finally:
        scoped.remove()
        db.session = original
        outer.rollback()


@pytest.fixture(scope="session")
def faker():
    """Seeded :class:`faker.Faker` instance."""
    from faker import Faker

    Faker.seed(1337)
    return Faker()


# -- Factory Boy writes through db.session, swapped by the fixture above --------
@pytest.fixture(autouse=True)
def _factories_session(session):
    """Open the transactional session for every test so factories can persist."""
    yield


# -- Auth service wiring -------------------------------------------------------
class FrozenClock:
    """Mutable clock returning an aware UTC instant; ``advance`` moves it."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2030, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def mailer() -> InMemoryMailer:
    return InMemoryMailer()


@pytest.fixture()
def sessions() -> InMemorySessionTokenStore:
    return InMemorySessionTokenStore()


@pytest.fixture()
def token_provider(clock) -> StubTokenProvider:
    return StubTokenProvider(clock=clock)


@pytest.fixture()
def auth_service(token_provider, sessions, mailer, clock) -> AuthService:
    """Build an AuthService wired to in-memory doubles and a frozen clock."""
    return AuthService(
        token_provider=token_provider,
        sessions=sessions,
        mailer=mailer,
        token_cfg=AuthTokenConfig(),
        clock=clock,
    )


# -- HTTP layer ------------------------------------------------------------------
@pytest.fixture()
def client(app, mailer):
    """Return a Flask test client whose auth emails land in ``mailer``."""
    app.extensions["authcore.mailer"] = mailer
    try:
        yield app.test_client()
    finally:
        app.extensions.pop("authcore.mailer", None)
