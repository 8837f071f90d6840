"""
Tests for environment-driven settings in social.graze.wormhole.app.config
"""

import pytest
from pydantic import ValidationError

from social.graze.wormhole.app.config import Settings


def test_defaults(monkeypatch):
    for name in ("PORT", "REDIS_DSN", "REDIS_URL", "CACHE_TTL", "DID_WEB_FALLBACK"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings()

    assert settings.http_port == 5200
    assert settings.redis_dsn is None
    assert settings.cache_ttl_millis == 3_600_000
    assert settings.did_web_fallback is False
    assert settings.degrade_on_resolver_error is True


def test_environment(monkeypatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/1")
    monkeypatch.setenv("CACHE_CAPACITY", "5")
    monkeypatch.setenv("CACHE_TTL", "30")
    monkeypatch.setenv("TELEGRAF_HOST", "stats.internal")
    monkeypatch.setenv("STRICT_MODE", "true")

    settings = Settings()

    assert settings.http_port == 8080
    assert str(settings.redis_dsn).startswith("redis://localhost:6379")
    assert settings.cache_capacity == 5
    assert settings.cache_ttl_millis == 30_000
    assert settings.statsd_host == "stats.internal"
    assert settings.strict_mode is True


def test_retry_policy():
    settings = Settings(
        resolver_timeout=2.0, resolver_max_retries=5, resolver_retry_base_delay=0.5
    )
    policy = settings.retry_policy()
    assert policy.timeout == 2.0
    assert policy.max_retries == 5
    assert policy.base_delay == 0.5
    assert policy.backoff_factor == 2.0


@pytest.mark.parametrize(
    "overrides", [{"cache_capacity": 0}, {"cache_ttl": 0}, {"resolver_timeout": 0}]
)
def test_rejects_invalid_bounds(overrides):
    with pytest.raises(ValidationError):
        Settings(**overrides)
