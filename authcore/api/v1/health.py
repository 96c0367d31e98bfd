"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from authcore.api.deps import json_response, timing
from authcore.core import extensions
from authcore.core.extensions import db

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Report database and (when configured) Redis reachability."""
    payload = {"status": "ok", "db": "ok", "version": current_app.config.get("APP_VERSION", "dev")}
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        current_app.logger.exception("healthcheck.db_error")
        payload["db"] = "fail"
    if extensions.redis_client is not None:
        try:
            extensions.redis_client.ping()
            payload["redis"] = "ok"
        except RedisError:
            current_app.logger.exception("healthcheck.redis_error")
            payload["redis"] = "fail"
    return json_response(payload)
