"""
Tests for the resolution orchestrator in social.graze.wormhole.app.orchestrator

The resolver is mocked; the cache is real and driven by a fake clock.
"""

from unittest.mock import AsyncMock, MagicMock, Mock, patch

import pytest

from social.graze.wormhole.app.config import Settings
from social.graze.wormhole.app.orchestrator import Wormhole, create_wormhole
from social.graze.wormhole.cache.bidirectional import BidirectionalCache
from social.graze.wormhole.cache.store import NoOpSnapshotStore, RedisSnapshotStore
from social.graze.wormhole.model.record import POST_COLLECTION
from social.graze.wormhole.resolve.errors import (
    DidResolutionException,
    HandleNotFoundException,
    NetworkException,
)

DID = "did:plc:ewvi7nxzyoun6zhxrhs64oiz"
WEB_DID = "did:web:example.com"


@pytest.fixture
def settings():
    return Settings(metrics_backend="none")


@pytest.fixture
def resolver():
    resolver = MagicMock()
    resolver.resolve_handle_to_did = AsyncMock(return_value=DID)
    resolver.resolve_did_to_handle = AsyncMock(return_value=None)
    return resolver


@pytest.fixture
def metrics_client():
    return Mock()


@pytest.fixture
def cache(clock):
    return BidirectionalCache(clock=clock)


@pytest.fixture
def wormhole(settings, resolver, cache, metrics_client):
    return Wormhole(settings, resolver, cache, metrics_client=metrics_client)


def outcomes(metrics_client):
    return [
        call.kwargs["tag_dict"]["outcome"]
        for call in metrics_client.increment.call_args_list
        if call.args[0] == "wormhole.resolve.count"
    ]


class TestResolveInput:
    """Test suite for Wormhole.resolve_input()."""

    @pytest.mark.asyncio
    async def test_handle_resolved_and_cached(self, wormhole, resolver, cache):
        record = await wormhole.resolve_input("alice.example")

        assert record.handle == "alice.example"
        assert record.did == DID
        assert record.canonical_uri == f"at://{DID}"
        assert record.source_url == "alice.example"
        assert await cache.get_by_handle("alice.example") == DID
        resolver.resolve_handle_to_did.assert_awaited_once_with("alice.example")

    @pytest.mark.asyncio
    async def test_cache_hit_skips_resolver(self, wormhole, resolver, metrics_client):
        await wormhole.resolve_input("alice.example")
        record = await wormhole.resolve_input(
            "https://bsky.app/profile/alice.example/post/3k2yihcrp6f2c"
        )

        assert record.did == DID
        assert record.collection == POST_COLLECTION
        assert resolver.resolve_handle_to_did.await_count == 1
        metrics_client.increment.assert_any_call("wormhole.cache.hit", 1)

    @pytest.mark.asyncio
    async def test_cached_did_fills_handle(self, wormhole, resolver, cache):
        await cache.put("example.com", WEB_DID)
        record = await wormhole.resolve_input(WEB_DID)

        assert record.handle == "example.com"
        resolver.resolve_did_to_handle.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_plc_did_left_without_handle(self, wormhole, resolver, cache):
        record = await wormhole.resolve_input(DID)

        assert record.did == DID
        assert record.handle is None
        assert len(cache) == 0
        resolver.resolve_did_to_handle.assert_awaited_once_with(DID)

    @pytest.mark.asyncio
    async def test_web_did_resolved_and_cached(self, wormhole, resolver, cache):
        resolver.resolve_did_to_handle.return_value = "alice.example.com"
        record = await wormhole.resolve_input(WEB_DID)

        assert record.handle == "alice.example.com"
        assert await cache.get_by_did(WEB_DID) == "alice.example.com"

    @pytest.mark.asyncio
    async def test_domain_with_port_not_cached(self, wormhole, resolver, cache):
        resolver.resolve_did_to_handle.return_value = "example.com:8080"
        record = await wormhole.resolve_input(WEB_DID)

        assert record.handle == "example.com:8080"
        assert len(cache) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["", "https://example.com/about"])
    async def test_nothing_actionable(self, wormhole, metrics_client, raw):
        assert await wormhole.resolve_input(raw) is None
        assert outcomes(metrics_client) == ["not_found"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["not a handle", "alice.example/post", "did:plc:bad"])
    async def test_invalid_input(self, wormhole, resolver, metrics_client, raw):
        assert await wormhole.resolve_input(raw) is None
        assert outcomes(metrics_client) == ["invalid"]
        resolver.resolve_handle_to_did.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_metrics_reported(self, wormhole, metrics_client):
        await wormhole.resolve_input("alice.example")

        assert outcomes(metrics_client) == ["resolved"]
        metrics_client.increment.assert_any_call("wormhole.cache.miss", 1)
        metrics_client.timer.assert_called_once()
        assert metrics_client.timer.call_args.args[0] == "wormhole.resolve.time"
        metrics_client.gauge.assert_called_once_with("wormhole.cache.size", 1)


class TestResolverFailures:
    """Test suite for degrading on resolver errors."""

    @pytest.mark.asyncio
    async def test_degrades_to_partial_record(self, wormhole, resolver, cache, metrics_client):
        resolver.resolve_handle_to_did.side_effect = HandleNotFoundException("alice.example")
        with patch("social.graze.wormhole.app.orchestrator.sentry_sdk") as sentry:
            record = await wormhole.resolve_input("alice.example")

        assert record.handle == "alice.example"
        assert record.did is None
        assert len(cache) == 0
        assert outcomes(metrics_client) == ["HandleNotFoundException"]
        sentry.capture_exception.assert_not_called()

    @pytest.mark.asyncio
    async def test_network_errors_reported(self, wormhole, resolver):
        error = NetworkException.timeout("https://public.api.bsky.app/xrpc/")
        resolver.resolve_handle_to_did.side_effect = error
        with patch("social.graze.wormhole.app.orchestrator.sentry_sdk") as sentry:
            record = await wormhole.resolve_input("alice.example")

        assert record.did is None
        sentry.capture_exception.assert_called_once_with(error)

    @pytest.mark.asyncio
    async def test_did_resolution_error_degrades(self, wormhole, resolver):
        resolver.resolve_did_to_handle.side_effect = DidResolutionException(
            WEB_DID, "malformed DID document"
        )
        record = await wormhole.resolve_input(WEB_DID)
        assert record.did == WEB_DID
        assert record.handle is None

    @pytest.mark.asyncio
    async def test_propagates_when_not_degrading(self, resolver, cache, metrics_client):
        settings = Settings(degrade_on_resolver_error=False)
        wormhole = Wormhole(settings, resolver, cache, metrics_client=metrics_client)
        resolver.resolve_handle_to_did.side_effect = HandleNotFoundException("alice.example")

        with pytest.raises(HandleNotFoundException):
            await wormhole.resolve_input("alice.example")
        assert outcomes(metrics_client) == ["HandleNotFoundException"]


class TestDestinations:
    def test_uses_display_settings(self, resolver, cache):
        settings = Settings(show_emojis=False, strict_mode=True)
        wormhole = Wormhole(settings, resolver, cache)
        record = MagicMock()

        with patch(
            "social.graze.wormhole.app.orchestrator.build_destinations", return_value=[]
        ) as build:
            assert wormhole.destinations(record) == []
        build.assert_called_once_with(record, show_emojis=False, strict_mode=True)


class TestStartup:
    @pytest.mark.asyncio
    async def test_restores_cache(self, settings, resolver, cache, clock):
        store = MagicMock()
        store.load_snapshot = AsyncMock(
            return_value={DID: {"handle": "alice.example", "last_accessed_at": clock.now}}
        )
        wormhole = Wormhole(settings, resolver, cache, store=store)

        await wormhole.startup()
        record = await wormhole.resolve_input("alice.example")

        assert record.did == DID
        resolver.resolve_handle_to_did.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_failure_leaves_cache_empty(self, settings, resolver, cache):
        store = MagicMock()
        store.load_snapshot = AsyncMock(side_effect=ConnectionError("redis down"))
        wormhole = Wormhole(settings, resolver, cache, store=store)

        with patch("social.graze.wormhole.app.orchestrator.sentry_sdk") as sentry:
            await wormhole.startup()

        assert len(cache) == 0
        sentry.capture_exception.assert_called_once()


class TestCreateWormhole:
    def test_wiring(self):
        settings = Settings(
            cache_capacity=7,
            cache_ttl=60,
            resolver_hostname="api.example.com",
            resolver_max_retries=1,
            did_web_fallback=True,
        )
        session = MagicMock()
        store = RedisSnapshotStore(MagicMock())

        wormhole = create_wormhole(settings, session, store=store)

        assert wormhole.cache.capacity == 7
        assert wormhole.cache.ttl == 60_000
        assert wormhole.store is store
        assert wormhole.resolver.session is session
        assert wormhole.resolver.api_hostname == "api.example.com"
        assert wormhole.resolver.policy.max_retries == 1
        assert wormhole.resolver.fallback_to_domain is True

    def test_defaults_to_noop_store(self):
        wormhole = create_wormhole(Settings(), MagicMock())
        assert isinstance(wormhole.store, NoOpSnapshotStore)
