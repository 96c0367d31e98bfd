"""
authcore.services._shared.ports
===============================

*Ports* (hexagonal interfaces) decoupling the auth service from concrete
token, session-storage and mail infrastructure.

Modules
-------
- :mod:`token_provider`:
    :class:`~.TokenProvider` for signing and decoding bearer tokens, plus the
    deterministic :class:`~.StubTokenProvider`.

- :mod:`session_token_store`:
    :class:`~.SessionTokenStore` and the :class:`~.SessionRecord` read model,
    plus the lock-guarded :class:`~.InMemorySessionTokenStore`.

- :mod:`mailer`:
    :class:`~.Mailer` for verification and reset emails, plus
    :class:`~.InMemoryMailer`.

Concrete adapters (SQLAlchemy, Redis, SMTP, Flask-JWT-Extended) live under
``authcore.infra``.
"""

from __future__ import annotations

from .mailer import InMemoryMailer, Mailer, SentMail
from .session_token_store import InMemorySessionTokenStore, SessionRecord, SessionTokenStore
from .token_provider import StubTokenProvider, TokenProvider

__all__ = [
    "TokenProvider",
    "StubTokenProvider",
    "SessionTokenStore",
    "SessionRecord",
    "InMemorySessionTokenStore",
    "Mailer",
    "InMemoryMailer",
    "SentMail",
]
