"""CORS policy for the auth API."""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS

from authcore.core.logger import REQUEST_ID_HEADER


def init_app(app: Flask) -> None:
    """Configure CORS for ``/api/*`` from ``CORS_ORIGINS``.

    A blank value or ``"*"`` allows any origin without credentials; an explicit
    list allows credentials so browsers may send the ``Authorization`` header.
    """
    origins = [o.strip() for o in app.config.get("CORS_ORIGINS", "").split(",") if o.strip()]
    wildcard = not origins or origins == ["*"]

    CORS(
        app,
        resources={r"/api/*": {"origins": "*" if wildcard else origins}},
        supports_credentials=not wildcard,
        allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
        max_age=app.config.get("CORS_MAX_AGE", 600),
    )
