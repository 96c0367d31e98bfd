"""Version 1 of the HTTP API: a parent blueprint nesting the route modules."""

from __future__ import annotations

from flask import Blueprint

from .auth import bp as auth_bp
from .health import bp as health_bp

API_VERSION = "v1"

bp = Blueprint(API_VERSION, __name__)
bp.register_blueprint(health_bp)  # /health
bp.register_blueprint(auth_bp, url_prefix="/auth")
