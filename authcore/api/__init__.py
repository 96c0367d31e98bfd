"""HTTP API package; each version is one parent blueprint."""

from __future__ import annotations

from flask import Flask


def init_app(app: Flask) -> None:
    """Mount every API version beneath ``API_BASE_PREFIX`` (``/api/v1/...``)."""
    from authcore.api.v1 import API_VERSION as V1
    from authcore.api.v1 import bp as v1_bp

    base = str(app.config.get("API_BASE_PREFIX", "/api")).strip("/")
    prefix = f"/{base}/{V1}" if base else f"/{V1}"
    app.register_blueprint(v1_bp, url_prefix=prefix)


__all__ = ["init_app"]
