"""Shared API helpers: service wiring, auth guards and response helpers."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from flask import Response, current_app, jsonify, request
from flask_jwt_extended import verify_jwt_in_request

from authcore.core.extensions import get_redis
from authcore.infra.jwt import JWTTokenProvider
from authcore.infra.mail import SMTPMailer
from authcore.infra.redis import RedisSessionTokenStore
from authcore.infra.sql import SQLAlchemySessionTokenStore
from authcore.services._shared.ports import Mailer, SessionTokenStore
from authcore.services.auth.dto import AuthTokenConfig
from authcore.services.auth.service import AuthService

F = TypeVar("F", bound=Callable[..., Any])


def build_session_store() -> SessionTokenStore:
    """Select the session store configured by ``SESSION_STORE``."""
    backend = str(current_app.config.get("SESSION_STORE", "sql")).lower()
    if backend == "redis":
        return RedisSessionTokenStore(get_redis())
    if backend != "sql":
        raise RuntimeError(f"Unknown SESSION_STORE {backend!r}; expected 'sql' or 'redis'.")
    return SQLAlchemySessionTokenStore()


def build_mailer() -> Mailer:
    """Return the mailer registered on the app, or an SMTP mailer from config."""
    mailer = current_app.extensions.get("authcore.mailer")
    if mailer is not None:
        return mailer
    return SMTPMailer.from_config(current_app.config)


def build_auth_service() -> AuthService:
    """Wire :class:`AuthService` from the current application's configuration.

    Tests may swap collaborators by placing them in ``app.extensions`` under
    ``"authcore.mailer"``.
    """
    return AuthService(
        token_provider=JWTTokenProvider(),
        sessions=build_session_store(),
        mailer=build_mailer(),
        token_cfg=AuthTokenConfig.from_mapping(current_app.config),
    )


def client_ip() -> str | None:
    """Peer address as resolved by ProxyFix."""
    return request.remote_addr


def require_auth(func: F) -> F:
    """Ensure the request carries a valid JWT access token."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        verify_jwt_in_request(optional=False)
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""
    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request.endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
