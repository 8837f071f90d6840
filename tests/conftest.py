"""
Shared test configuration and fixtures for Wormhole tests.

Provides a controllable clock for cache tests, factories for mocked aiohttp
sessions and responses, and a fakeredis client for the snapshot store.
"""

from typing import Any, Dict, List, Optional, Union
from unittest.mock import AsyncMock, MagicMock

import fakeredis.aioredis
import pytest
import pytest_asyncio


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int) -> None:
        self.now += millis


def build_response(
    status: int = 200,
    body: Union[str, bytes] = b"",
    headers: Optional[Dict[str, str]] = None,
) -> MagicMock:
    """Build the async context manager returned by a mocked session.get()."""
    response = MagicMock()
    response.status = status
    response.read = AsyncMock(
        return_value=body.encode("utf-8") if isinstance(body, str) else body
    )
    response.headers = headers or {}

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)
    return context


def build_session(outcomes: List[Any]) -> MagicMock:
    """
    Build a mocked ClientSession whose get() yields outcomes in order.

    Each outcome is either a context manager from build_response or an
    exception instance to raise from get().
    """
    session = MagicMock()
    session.get = MagicMock(side_effect=outcomes)
    return session


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def make_session():
    return build_session


@pytest_asyncio.fixture
async def fake_redis():
    """Create a fakeredis client for testing."""
    client = fakeredis.aioredis.FakeRedis(decode_responses=False)
    yield client
    await client.flushall()
    await client.aclose()
