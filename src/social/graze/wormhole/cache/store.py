"""Cache snapshot persistence.

Snapshots are stored as a single JSON document mapping DID to
{"handle", "last_accessed_at"}. Writes are last-write-wins.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

from pydantic import TypeAdapter

from social.graze.wormhole.cache.bidirectional import Snapshot, SnapshotEntry

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_KEY = "wormhole:did_handle_cache"

snapshot_adapter = TypeAdapter(Dict[str, SnapshotEntry])


class SnapshotStore(ABC):
    """Where cache snapshots are loaded from and saved to."""

    @abstractmethod
    async def load_snapshot(self) -> Dict[str, Any]:
        """
        Load the last saved snapshot.

        Entries are returned unvalidated; the cache skips malformed ones.
        A missing snapshot is an empty mapping.
        """
        pass

    @abstractmethod
    async def save_snapshot(self, snapshot: Snapshot) -> None:
        """Replace the stored snapshot."""
        pass

    async def __call__(self, snapshot: Snapshot) -> None:
        await self.save_snapshot(snapshot)


class NoOpSnapshotStore(SnapshotStore):
    """Store used when no persistence is configured."""

    async def load_snapshot(self) -> Dict[str, Any]:
        return {}

    async def save_snapshot(self, snapshot: Snapshot) -> None:
        pass


class RedisSnapshotStore(SnapshotStore):
    """
    Snapshot store backed by a single Redis string key.

    Args:
        redis_client: redis.asyncio client (or a compatible fake)
        key: Redis key holding the JSON snapshot
    """

    def __init__(self, redis_client: Any, key: str = DEFAULT_SNAPSHOT_KEY) -> None:
        self.redis_client = redis_client
        self.key = key

    async def load_snapshot(self) -> Dict[str, Any]:
        raw = await self.redis_client.get(self.key)
        if raw is None:
            return {}
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring undecodable cache snapshot at %s", self.key)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring cache snapshot at %s: not an object", self.key)
            return {}
        return data

    async def save_snapshot(self, snapshot: Snapshot) -> None:
        await self.redis_client.set(self.key, snapshot_adapter.dump_json(snapshot))
