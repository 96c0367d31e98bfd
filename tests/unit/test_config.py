"""Unit tests for configuration helpers."""

from __future__ import annotations

from datetime import timedelta

import pytest

from authcore.core.config import env_bool, parse_duration, validate_config
from authcore.services.auth.dto import AuthTokenConfig


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("7d", timedelta(days=7)),
        ("24h", timedelta(hours=24)),
        ("30m", timedelta(minutes=30)),
        ("60s", timedelta(seconds=60)),
        ("900", timedelta(seconds=900)),
        (900, timedelta(seconds=900)),
        (" 10M ", timedelta(minutes=10)),
        (timedelta(hours=1), timedelta(hours=1)),
    ],
)
def test_parse_duration_accepts_compact_forms(raw, expected):
    assert parse_duration(raw) == expected


@pytest.mark.parametrize("raw", ["", "abc", "7w", "-5m", "0", "1.5h"])
def test_parse_duration_rejects_invalid(raw):
    with pytest.raises(ValueError):
        parse_duration(raw)


def test_env_bool(monkeypatch):
    monkeypatch.setenv("AUTHCORE_FLAG", "Yes")
    assert env_bool("AUTHCORE_FLAG") is True
    monkeypatch.setenv("AUTHCORE_FLAG", "off")
    assert env_bool("AUTHCORE_FLAG", True) is False
    monkeypatch.delenv("AUTHCORE_FLAG")
    assert env_bool("AUTHCORE_FLAG", True) is True


def test_auth_token_config_from_mapping_uses_defaults_for_missing_keys():
    cfg = AuthTokenConfig.from_mapping({"RESET_TOKEN_EXPIRES": "2h", "JWT_ACCESS_TOKEN_EXPIRES": 60})
    assert cfg.reset_expires == timedelta(hours=2)
    assert cfg.access_expires == timedelta(seconds=60)
    assert cfg.verification_expires == timedelta(minutes=10)
    assert cfg.refresh_expires == timedelta(days=7)


def test_app_config_drives_token_lifetimes(app):
    cfg = AuthTokenConfig.from_mapping(app.config)
    assert cfg.refresh_expires == app.config["JWT_REFRESH_TOKEN_EXPIRES"]
    assert cfg.verification_expires == timedelta(minutes=10)


STRONG = "x" * 40


@pytest.mark.parametrize(
    "overrides",
    [
        {"SECRET_KEY": "CHANGE_ME"},
        {"JWT_SECRET_KEY": "CHANGE_ME_JWT"},
        {"JWT_SECRET_KEY": "too-short"},
        {"SESSION_STORE": "memcached"},
    ],
)
def test_validate_config_rejects_unsafe_production_settings(overrides):
    config = {"SECRET_KEY": STRONG, "JWT_SECRET_KEY": STRONG, "SESSION_STORE": "sql", **overrides}
    with pytest.raises(RuntimeError):
        validate_config(config)


def test_validate_config_is_lenient_in_debug():
    validate_config({"DEBUG": True, "SECRET_KEY": "CHANGE_ME", "JWT_SECRET_KEY": "CHANGE_ME_JWT"})
    validate_config({"SECRET_KEY": STRONG, "JWT_SECRET_KEY": STRONG, "SESSION_STORE": "redis"})
