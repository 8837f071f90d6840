"""
Configuration Module for the Wormhole Service

This module defines the configuration for the Wormhole resolution service,
using Pydantic settings for validation and aiohttp AppKeys for dependency
injection.

The Settings class is loaded from environment variables with defaults that
work for local development. It is passed explicitly to the orchestrator and
the web server; nothing reads configuration from global state.

Key configuration areas include:
- Service networking and error reporting
- Resolver endpoint, timeout and retry behaviour
- Cache capacity, TTL and snapshot persistence
- Destination display options
- Metrics collection
"""

from typing import Final, Optional

from aiohttp import ClientSession, web
from pydantic import AliasChoices, Field, RedisDsn
from pydantic_settings import BaseSettings
from redis import asyncio as redis

from social.graze.wormhole.app.metrics import MetricsClient
from social.graze.wormhole.app.orchestrator import Wormhole
from social.graze.wormhole.cache.bidirectional import BidirectionalCache
from social.graze.wormhole.resolve.retry import RetryPolicy


class Settings(BaseSettings):
    """
    Application settings for the Wormhole service.

    Environment variables are mapped to fields by name, for example
    CACHE_CAPACITY or RESOLVER_HOSTNAME. Aliases are provided where a
    conventional name exists (PORT, REDIS_URL, TELEGRAF_HOST).
    """

    debug: bool = False
    """
    Enable debug mode for verbose logging and detailed error responses.
    Set with DEBUG=true environment variable.
    """

    http_port: int = Field(alias="port", default=5200)
    """
    HTTP port for the service to listen on.
    Set with PORT environment variable.
    """

    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. Optional, no error reporting if not set.
    Set with SENTRY_DSN environment variable.
    """

    redis_dsn: Optional[RedisDsn] = Field(
        None,
        validation_alias=AliasChoices("redis_dsn", "redis_url"),
    )
    """
    Redis connection string for cache snapshots.
    Set with REDIS_DSN or REDIS_URL environment variables.
    When unset, the cache is not persisted.
    """

    cache_snapshot_key: str = "wormhole:did_handle_cache"
    """Redis key holding the cache snapshot."""

    cache_capacity: int = Field(default=100, ge=1)
    """Maximum number of handle <-> DID pairs kept in memory."""

    cache_ttl: int = Field(default=3600, ge=1)
    """
    Lifetime in seconds of a cached pair.
    Set with CACHE_TTL environment variable.
    Default: 3600 (1 hour)
    """

    resolver_hostname: str = "public.api.bsky.app"
    """Host serving com.atproto.identity.resolveHandle."""

    resolver_timeout: float = Field(default=5.0, gt=0)
    """Per-request timeout in seconds."""

    resolver_max_retries: int = Field(default=3, ge=0)
    """Additional attempts after a transport failure or timeout."""

    resolver_retry_base_delay: float = Field(default=0.1, ge=0)
    """
    Delay in seconds before the first retry. Doubles on each attempt and is
    jittered to between 50% and 100% of the computed value.
    """

    did_web_fallback: bool = False
    """
    When a did:web document cannot be fetched or parsed, use the DID's
    domain as its handle instead of reporting a resolution error.
    """

    degrade_on_resolver_error: bool = True
    """
    Return partially resolved records when the resolver fails instead of
    propagating the error.
    """

    show_emojis: bool = True
    """Prefix destination labels with the service emoji."""

    strict_mode: bool = False
    """Only list destinations able to show the record's content type."""

    metrics_backend: str = "none"
    """
    Metrics backend, one of 'telegraf' or 'none'.
    Set with METRICS_BACKEND environment variable.
    """

    statsd_host: str = Field(alias="TELEGRAF_HOST", default="telegraf")
    """StatsD/Telegraf host for metrics collection."""

    statsd_port: int = Field(alias="TELEGRAF_PORT", default=8125)
    """StatsD/Telegraf port for metrics collection."""

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.resolver_max_retries,
            base_delay=self.resolver_retry_base_delay,
            timeout=self.resolver_timeout,
        )

    @property
    def cache_ttl_millis(self) -> int:
        return self.cache_ttl * 1000


# Application context keys for dependency injection
SettingsAppKey: Final = web.AppKey("settings", Settings)
"""AppKey for accessing the application settings"""

SessionAppKey: Final = web.AppKey("http_session", ClientSession)
"""AppKey for accessing the shared aiohttp client session"""

RedisClientAppKey: Final = web.AppKey("redis_client", redis.Redis)
"""AppKey for accessing the Redis client, when one is configured"""

CacheAppKey: Final = web.AppKey("cache", BidirectionalCache)
"""AppKey for accessing the handle <-> DID cache"""

WormholeAppKey: Final = web.AppKey("wormhole", Wormhole)
"""AppKey for accessing the resolution orchestrator"""

MetricsClientAppKey: Final = web.AppKey("metrics_client", MetricsClient)
"""AppKey for accessing the metrics client"""
