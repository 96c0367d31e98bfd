"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from datetime import timedelta
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

_DURATION_RE: Final = re.compile(r"^(\d+)([smhd])$")
_UNIT_SECONDS: Final[Mapping[str, int]] = {"s": 1, "m": 60, "h": 3600, "d": 86400}


# Load .env in development (no-op when missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_duration(value: str | int | float | timedelta) -> timedelta:
    """Convert a compact duration into a :class:`~datetime.timedelta`.

    Parameters
    ----------
    value: str | int | float | timedelta
        ``"7d"``, ``"24h"``, ``"30m"``, ``"60s"``, a bare number of seconds
        (``"900"`` or ``900``), or an existing ``timedelta``.

    Returns
    -------
    datetime.timedelta
        Parsed duration.

    Raises
    ------
    ValueError
        If the string does not follow one of the accepted shapes or the
        resulting duration is not positive.
    """
    if isinstance(value, timedelta):
        parsed = value
    elif isinstance(value, int | float):
        parsed = timedelta(seconds=value)
    else:
        raw = str(value).strip().lower()
        if raw.isdigit():
            parsed = timedelta(seconds=int(raw))
        else:
            match = _DURATION_RE.match(raw)
            if match is None:
                raise ValueError(f"Invalid duration: {value!r}")
            parsed = timedelta(seconds=int(match.group(1)) * _UNIT_SECONDS[match.group(2)])
    if parsed <= timedelta(0):
        raise ValueError(f"Duration must be positive: {value!r}")
    return parsed


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret used for session signing. Defaults to a development-safe
        placeholder and should be overridden in production.
    JWT_SECRET_KEY: str
        Key used by ``flask-jwt-extended`` for signing access and refresh tokens.
    JWT_ACCESS_TOKEN_EXPIRES: timedelta
        Access token lifetime (``JWT_EXPIRES_IN``, default ``15m``).
    JWT_REFRESH_TOKEN_EXPIRES: timedelta
        Refresh token and session record lifetime (``JWT_REFRESH_EXPIRES_IN``,
        default ``7d``).
    VERIFICATION_TOKEN_EXPIRES: timedelta
        Email verification window (``VERIFICATION_EXPIRATION``, default ``10m``).
    RESET_TOKEN_EXPIRES: timedelta
        Password reset window (``RESET_EXPIRATION``, default ``1h``).
    SESSION_STORE: str
        Backend for refresh sessions: ``"sql"`` (default) or ``"redis"``.
    REDIS_URL: str | None
        Redis connection string; required when ``SESSION_STORE == "redis"``.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    SQLALCHEMY_TRACK_MODIFICATIONS: bool
        Disabled to avoid extra overhead from the event system.
    SQLALCHEMY_ECHO: bool
        When ``True`` SQLAlchemy logs SQL statements for debugging.
    MAIL_HOST, MAIL_PORT, MAIL_USER, MAIL_PASSWORD, MAIL_FROM, MAIL_USE_TLS:
        SMTP settings. With ``MAIL_HOST`` unset outgoing mail is only logged.
    FRONTEND_URL: str
        Base URL used to build verification and reset links.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.
    DEBUG: bool
        Toggles Flask debug mode.
    TESTING: bool
        Enables Flask testing mode when ``True``.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_JWT")
    JWT_ACCESS_TOKEN_EXPIRES = parse_duration(os.getenv("JWT_EXPIRES_IN", "15m"))
    JWT_REFRESH_TOKEN_EXPIRES = parse_duration(os.getenv("JWT_REFRESH_EXPIRES_IN", "7d"))

    # Token windows owned by the auth lifecycle
    VERIFICATION_TOKEN_EXPIRES = parse_duration(os.getenv("VERIFICATION_EXPIRATION", "10m"))
    RESET_TOKEN_EXPIRES = parse_duration(os.getenv("RESET_EXPIRATION", "1h"))

    # Session store
    SESSION_STORE = os.getenv("SESSION_STORE", "sql").strip().lower()
    REDIS_URL = os.getenv("REDIS_URL")

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Mail
    MAIL_HOST = os.getenv("MAIL_HOST")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USER = os.getenv("MAIL_USER")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_FROM = os.getenv("MAIL_FROM")
    MAIL_USE_TLS = env_bool("MAIL_USE_TLS", True)
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Local development: debug on, SQL echo on request."""

    DEBUG = env_bool("FLASK_DEBUG", True)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Keeps refresh sessions in SQL and never talks to an SMTP server.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    SESSION_STORE = "sql"
    MAIL_HOST = None
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Production: no debug output; secrets are checked by :func:`validate_config`."""

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)


PLACEHOLDER_SECRETS: Final = frozenset({"CHANGE_ME", "CHANGE_ME_JWT"})
MIN_JWT_SECRET_BYTES: Final[int] = 32


def validate_config(config: Mapping[str, object]) -> None:
    """Refuse to boot a non-debug, non-testing app with unsafe settings.

    Raises
    ------
    RuntimeError
        If a secret is still a placeholder, the JWT key is shorter than
        ``MIN_JWT_SECRET_BYTES`` or ``SESSION_STORE`` is unknown.
    """
    store = str(config.get("SESSION_STORE", "sql"))
    if store not in {"sql", "redis"}:
        raise RuntimeError(f"Unknown SESSION_STORE {store!r}; expected 'sql' or 'redis'.")
    if config.get("DEBUG") or config.get("TESTING"):
        return
    for key in ("SECRET_KEY", "JWT_SECRET_KEY"):
        if config.get(key) in PLACEHOLDER_SECRETS:
            raise RuntimeError(f"{key} must be set outside development.")
    if len(str(config.get("JWT_SECRET_KEY", "")).encode()) < MIN_JWT_SECRET_BYTES:
        raise RuntimeError(f"JWT_SECRET_KEY must be at least {MIN_JWT_SECRET_BYTES} bytes.")
