"""Structured JSON logging with request correlation for the auth service.

Every record becomes one JSON line carrying the request id. Extras named in
``EXTRA_KEYS`` are copied into the payload; keys that could carry a
credential are masked before they reach any handler.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from flask import Flask, g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_HEADERS = (REQUEST_ID_HEADER, "X-Correlation-ID")

EXTRA_KEYS = ("endpoint", "elapsed_ms", "account_id", "session_id", "code", "client_ip")
SECRET_KEYS = frozenset(
    {"password", "new_password", "token", "access_token", "refresh_token", "password_hash"}
)
MASK = "***"


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        payload.update({key: getattr(record, key) for key in EXTRA_KEYS if hasattr(record, key)})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class RequestIdFilter(logging.Filter):
    """Stamp ``request_id`` on every record (``None`` outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = ensure_request_id() if has_request_context() else None
        return True


class SecretMaskingFilter(logging.Filter):
    """Mask ``extra=`` attributes whose name suggests a credential."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key in SECRET_KEYS.intersection(vars(record)):
            setattr(record, key, MASK)
        return True


def ensure_request_id() -> str:
    """Return the current request id, adopting an inbound correlation header
    or generating a UUID4 the first time it is asked for."""

    if not has_request_context():
        return str(uuid4())
    current = g.get("request_id")
    if current:
        return current  # type: ignore[no-any-return]
    inbound = next((request.headers[h] for h in CORRELATION_HEADERS if request.headers.get(h)), None)
    g.request_id = inbound or str(uuid4())
    return g.request_id  # type: ignore[no-any-return]


def _resolve_level(level: str | int) -> int | str:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else level.upper()


def configure_logging(level: str | int = "INFO") -> None:
    """Install a single JSON stdout handler on the root logger."""

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SecretMaskingFilter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_resolve_level(level))


def init_app(app: Flask) -> None:
    """Seed a request id per request and echo it in ``X-Request-ID``."""

    app.logger.addFilter(RequestIdFilter())

    @app.before_request
    def _seed_request_id() -> None:
        # ``g`` can outlive a request when an app context is already pushed.
        g.pop("request_id", None)
        ensure_request_id()

    @app.after_request
    def _inject_response_header(response):
        response.headers.setdefault(REQUEST_ID_HEADER, ensure_request_id())
        return response


__all__ = ["configure_logging", "init_app", "ensure_request_id"]
