"""HTTP fetching with timeout and retry.

Each attempt is bounded by its own timeout. Only transport failures and
timeouts are retried, using exponential backoff with jitter; any HTTP
response, whatever its status, is returned to the caller to classify.
"""

import asyncio
import logging
import random
from dataclasses import dataclass

import aiohttp
from aiohttp import ClientSession
from multidict import CIMultiDict
from pydantic import BaseModel, Field

from social.graze.wormhole.resolve.errors import NetworkException

logger = logging.getLogger(__name__)


class RetryPolicy(BaseModel):
    """
    Retry configuration for resolver requests.

    Attributes:
        max_retries: Additional attempts after the first one
        base_delay: Delay in seconds before the first retry
        backoff_factor: Multiplier applied to the delay per attempt
        timeout: Per-attempt timeout in seconds
    """

    max_retries: int = Field(default=3, ge=0)
    base_delay: float = Field(default=0.1, ge=0)
    backoff_factor: float = Field(default=2.0, ge=1)
    timeout: float = Field(default=5.0, gt=0)

    def compute_delay(self, attempt: int) -> float:
        """Backoff before retry number attempt + 1, jittered to 50-100%."""
        delay = self.base_delay * (self.backoff_factor**attempt)
        return delay * random.uniform(0.5, 1.0)


DEFAULT_RETRY_POLICY = RetryPolicy()


@dataclass(repr=False, eq=False)
class HttpResponse:
    """Status, headers and body of a completed request."""

    status: int
    headers: CIMultiDict
    body: bytes


async def fetch_with_retry(
    session: ClientSession, url: str, policy: RetryPolicy = DEFAULT_RETRY_POLICY
) -> HttpResponse:
    """GET a URL, retrying transport failures.

    Args:
        session: HTTP client session
        url: URL to fetch
        policy: Retry and timeout configuration

    Returns:
        HttpResponse for the first attempt that produced a response

    Raises:
        NetworkException: If every attempt failed at the transport level
    """
    timeout = aiohttp.ClientTimeout(total=policy.timeout)
    attempt = 0
    while True:
        try:
            async with session.get(url, timeout=timeout) as resp:
                body = await resp.read()
                return HttpResponse(
                    status=resp.status, headers=CIMultiDict(resp.headers), body=body
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            if attempt >= policy.max_retries:
                logger.warning(
                    "Giving up on %s after %d attempts: %r", url, attempt + 1, e
                )
                if isinstance(e, asyncio.TimeoutError):
                    raise NetworkException.timeout(url) from e
                raise NetworkException.transport_failure(url) from e

            delay = policy.compute_delay(attempt)
            attempt += 1
            logger.info(
                "Retry %d/%d for %s in %.3f seconds: %r",
                attempt,
                policy.max_retries,
                url,
                delay,
                e,
            )
            await asyncio.sleep(delay)
