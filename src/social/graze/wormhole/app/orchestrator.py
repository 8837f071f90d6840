"""Resolution orchestrator.

Wires the input parser, the handle <-> DID cache and the resolver together
for a single request: parse and canonicalize the input, then fill in the
missing half of the identity from the cache or, failing that, the network.
"""

import logging
from time import time
from typing import TYPE_CHECKING, List, Optional

import sentry_sdk
from aiohttp import ClientSession

from social.graze.wormhole.app.metrics import MetricsClient, NoOpMetricsClient
from social.graze.wormhole.cache.bidirectional import BidirectionalCache
from social.graze.wormhole.cache.store import NoOpSnapshotStore, SnapshotStore
from social.graze.wormhole.model.identity import is_valid_handle
from social.graze.wormhole.model.record import CanonicalRecord
from social.graze.wormhole.resolve.adapters import Destination, build_destinations
from social.graze.wormhole.resolve.errors import (
    NetworkException,
    ResolverException,
    ValidationException,
)
from social.graze.wormhole.resolve.handle import Resolver
from social.graze.wormhole.resolve.parse import parse_input

if TYPE_CHECKING:
    from social.graze.wormhole.app.config import Settings

logger = logging.getLogger(__name__)


class Wormhole:
    """
    Resolve raw user input into canonical records.

    Args:
        settings: Explicit configuration for this instance
        resolver: Network resolver for handles and DIDs
        cache: Handle <-> DID cache consulted before the resolver
        metrics_client: Where to report resolution metrics
        store: Snapshot store the cache is restored from at startup
    """

    def __init__(
        self,
        settings: "Settings",
        resolver: Resolver,
        cache: BidirectionalCache,
        metrics_client: Optional[MetricsClient] = None,
        store: Optional[SnapshotStore] = None,
    ) -> None:
        self.settings = settings
        self.resolver = resolver
        self.cache = cache
        self.metrics_client = metrics_client or NoOpMetricsClient()
        self.store = store or NoOpSnapshotStore()

    async def startup(self) -> None:
        """Restore the cache from the snapshot store.

        A failing store leaves the cache empty rather than preventing startup.
        """
        try:
            snapshot = await self.store.load_snapshot()
        except Exception as e:
            sentry_sdk.capture_exception(e)
            logger.exception("Unable to load cache snapshot")
            return
        await self.cache.load(snapshot)

    async def resolve_input(self, raw: str) -> Optional[CanonicalRecord]:
        """Resolve raw input into a canonical record.

        Args:
            raw: Handle, DID, AT URI or service URL

        Returns:
            The record, with handle and DID filled in where they could be
            resolved, or None when the input holds nothing actionable

        Raises:
            ResolverException: If resolution fails and degrade_on_resolver_error
                is disabled
        """
        start_time = time()
        outcome = "resolved"
        try:
            try:
                record = parse_input(raw)
            except ValidationException as e:
                logger.info("Rejected input %r: %s", raw, e.reason)
                outcome = "invalid"
                return None

            if record is None:
                logger.debug("No identity found in %r", raw)
                outcome = "not_found"
                return None

            try:
                return await self.complete(record)
            except ResolverException as e:
                outcome = type(e).__name__
                if not self.settings.degrade_on_resolver_error:
                    raise
                if isinstance(e, NetworkException):
                    sentry_sdk.capture_exception(e)
                logger.warning("Returning partial record for %r: %s", raw, e)
                return record
        finally:
            self.metrics_client.increment(
                "wormhole.resolve.count", 1, tag_dict={"outcome": outcome}
            )
            self.metrics_client.timer("wormhole.resolve.time", time() - start_time)
            self.metrics_client.gauge("wormhole.cache.size", len(self.cache))

    async def complete(self, record: CanonicalRecord) -> CanonicalRecord:
        """Fill in whichever of handle and DID the record is missing."""
        if record.handle and not record.did:
            did = await self.cache.get_by_handle(record.handle)
            if did is None:
                self.metrics_client.increment("wormhole.cache.miss", 1)
                did = await self.resolver.resolve_handle_to_did(record.handle)
                await self.cache.put(record.handle, did)
            else:
                self.metrics_client.increment("wormhole.cache.hit", 1)
            return record.model_copy(update={"did": did})

        if record.did and not record.handle:
            handle = await self.cache.get_by_did(record.did)
            if handle is None:
                self.metrics_client.increment("wormhole.cache.miss", 1)
                handle = await self.resolver.resolve_did_to_handle(record.did)
                if handle is None:
                    return record
                # did:web fallbacks can yield a domain with a port
                if is_valid_handle(handle):
                    await self.cache.put(handle, record.did)
            else:
                self.metrics_client.increment("wormhole.cache.hit", 1)
            return record.model_copy(update={"handle": handle})

        return record

    def destinations(self, record: CanonicalRecord) -> List[Destination]:
        return build_destinations(
            record,
            show_emojis=self.settings.show_emojis,
            strict_mode=self.settings.strict_mode,
        )


def create_wormhole(
    settings: "Settings",
    session: ClientSession,
    store: Optional[SnapshotStore] = None,
    metrics_client: Optional[MetricsClient] = None,
) -> Wormhole:
    """
    Build an orchestrator from settings.

    The store, when given, is attached as the cache's mutation observer so
    every change is persisted.
    """
    resolver = Resolver(
        session,
        api_hostname=settings.resolver_hostname,
        policy=settings.retry_policy(),
        fallback_to_domain=settings.did_web_fallback,
    )
    cache = BidirectionalCache(
        capacity=settings.cache_capacity,
        ttl=settings.cache_ttl_millis,
        observer=store,
    )
    return Wormhole(settings, resolver, cache, metrics_client=metrics_client, store=store)
