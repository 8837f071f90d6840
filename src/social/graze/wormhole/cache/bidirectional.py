"""Bounded handle <-> DID cache.

The cache keeps a true bijection between handles and DIDs: every live entry
is reachable from both of its keys and no key maps to a stale partner.
Entries expire lazily at read time once their TTL has passed, and the least
recently accessed entry is evicted when a new pair would exceed capacity.

Every method takes the same asyncio lock, so the two-map updates are never
observed half done. A mutation takes a snapshot under that lock and hands
it to a single writer task that feeds the optional observer, so neither reads
nor writes wait on persistence. The writer always delivers the newest
snapshot and skips any it was too slow to deliver; flush() waits for it to
catch up. Observer failures are logged and reported but the in-memory
mutation stands.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Mapping, Optional

import sentry_sdk
from pydantic import BaseModel, ValidationError

from social.graze.wormhole.model.identity import is_valid_did, is_valid_handle
from social.graze.wormhole.resolve.errors import ValidationException

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100
DEFAULT_TTL = 60 * 60 * 1000  # 1 hour, in milliseconds


class SnapshotEntry(BaseModel):
    """Persisted form of one cache entry, keyed by DID in a snapshot."""

    handle: str
    last_accessed_at: int


Snapshot = Dict[str, SnapshotEntry]
MutationObserver = Callable[[Snapshot], Awaitable[None]]
Clock = Callable[[], int]


def wall_clock() -> int:
    """Current time in milliseconds."""
    return int(time.time() * 1000)


@dataclass(slots=True)
class CacheEntry:
    handle: str
    did: str
    last_accessed_at: int
    expires_at: int


class CacheStats(BaseModel):
    hits: int
    misses: int
    size: int


class BidirectionalCache:
    """
    LRU and TTL bounded bidirectional map between handles and DIDs.

    Capacity and TTL are fixed at construction. Timestamps come from clock,
    in milliseconds; tests inject a fake clock.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        ttl: int = DEFAULT_TTL,
        clock: Optional[Clock] = None,
        observer: Optional[MutationObserver] = None,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if ttl < 1:
            raise ValueError("ttl must be at least 1 millisecond")
        self._capacity = capacity
        self._ttl = ttl
        self._clock = clock or wall_clock
        self._observer = observer
        self._by_handle: Dict[str, CacheEntry] = {}
        self._by_did: Dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._lock = asyncio.Lock()
        self._unwritten: Optional[Snapshot] = None
        self._writer: Optional[asyncio.Task] = None

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def ttl(self) -> int:
        return self._ttl

    def __len__(self) -> int:
        return len(self._by_handle)

    def _remove(self, entry: CacheEntry) -> None:
        self._by_handle.pop(entry.handle, None)
        self._by_did.pop(entry.did, None)

    def _evict_lru(self) -> None:
        lru = min(
            self._by_handle.values(),
            key=lambda entry: entry.last_accessed_at,
            default=None,
        )
        if lru is not None:
            logger.debug("Evicting %s <-> %s", lru.handle, lru.did)
            self._remove(lru)

    def _snapshot(self) -> Snapshot:
        return {
            entry.did: SnapshotEntry(
                handle=entry.handle, last_accessed_at=entry.last_accessed_at
            )
            for entry in self._by_did.values()
        }

    def _mutated(self) -> None:
        # Caller holds self._lock.
        if self._observer is None:
            return
        self._unwritten = self._snapshot()
        if self._writer is None or self._writer.done():
            self._writer = asyncio.create_task(self._write_snapshots())

    async def _write_snapshots(self) -> None:
        while self._unwritten is not None:
            snapshot, self._unwritten = self._unwritten, None
            try:
                await self._observer(snapshot)
            except Exception as e:
                sentry_sdk.capture_exception(e)
                logger.exception("Cache mutation observer failed")

    async def flush(self) -> None:
        """Wait until the observer has received the latest snapshot."""
        while self._writer is not None and not self._writer.done():
            await asyncio.shield(self._writer)

    async def put(self, handle: str, did: str) -> None:
        """Insert or replace the pair handle <-> did.

        Raises:
            ValidationException: If either key is malformed
        """
        if not is_valid_handle(handle):
            raise ValidationException.invalid_handle(handle)
        if not is_valid_did(did):
            raise ValidationException.invalid_did(did)

        async with self._lock:
            now = self._clock()

            by_handle = self._by_handle.get(handle)
            if by_handle is not None and by_handle.did != did:
                self._remove(by_handle)
            by_did = self._by_did.get(did)
            if by_did is not None and by_did.handle != handle:
                self._remove(by_did)

            if handle not in self._by_handle and len(self._by_handle) >= self._capacity:
                self._evict_lru()

            entry = CacheEntry(
                handle=handle, did=did, last_accessed_at=now, expires_at=now + self._ttl
            )
            self._by_handle[handle] = entry
            self._by_did[did] = entry
            self._mutated()

    async def _get(self, index: Dict[str, CacheEntry], key: str) -> Optional[CacheEntry]:
        async with self._lock:
            now = self._clock()
            entry = index.get(key)

            if entry is None:
                self._misses += 1
            elif entry.expires_at <= now:
                self._misses += 1
                self._remove(entry)
                self._mutated()
                entry = None
            else:
                entry.last_accessed_at = now
                self._hits += 1
            return entry

    async def get_by_handle(self, handle: str) -> Optional[str]:
        """Return the DID cached for handle, if any."""
        entry = await self._get(self._by_handle, handle)
        return entry.did if entry is not None else None

    async def get_by_did(self, did: str) -> Optional[str]:
        """Return the handle cached for did, if any."""
        entry = await self._get(self._by_did, did)
        return entry.handle if entry is not None else None

    async def clear(self) -> None:
        """Drop every entry and reset statistics."""
        async with self._lock:
            self._by_handle.clear()
            self._by_did.clear()
            self._hits = 0
            self._misses = 0
            self._mutated()

    def stats(self) -> CacheStats:
        return CacheStats(hits=self._hits, misses=self._misses, size=len(self._by_handle))

    async def snapshot(self) -> Snapshot:
        async with self._lock:
            return self._snapshot()

    async def load(self, snapshot: Mapping[str, object]) -> int:
        """Replace the cache contents with a persisted snapshot.

        Entries with a malformed DID, handle or shape are skipped, as are
        duplicate handles. When the snapshot holds more than capacity
        entries the most recently accessed ones are kept. Restored entries
        expire one TTL after their last access.

        Returns:
            Number of entries restored
        """
        entries = []
        for did, raw in snapshot.items():
            try:
                item = SnapshotEntry.model_validate(raw)
            except ValidationError:
                logger.warning("Skipping malformed snapshot entry for %s", did)
                continue
            if not is_valid_did(did) or not is_valid_handle(item.handle):
                logger.warning("Skipping invalid snapshot entry %s", did)
                continue
            entries.append(
                CacheEntry(
                    handle=item.handle,
                    did=did,
                    last_accessed_at=item.last_accessed_at,
                    expires_at=item.last_accessed_at + self._ttl,
                )
            )

        entries.sort(key=lambda entry: entry.last_accessed_at, reverse=True)

        async with self._lock:
            self._by_handle.clear()
            self._by_did.clear()
            for entry in entries:
                if len(self._by_handle) >= self._capacity:
                    break
                if entry.handle in self._by_handle:
                    continue
                self._by_handle[entry.handle] = entry
                self._by_did[entry.did] = entry
            restored = len(self._by_handle)

        logger.info("Restored %d cache entries", restored)
        return restored
