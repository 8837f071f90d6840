"""AT Protocol handle and DID resolution.

Resolves handles to DIDs through the identity resolveHandle XRPC endpoint and
did:web DIDs back to handles through their well-known DID documents. did:plc
DIDs are opaque and are not reverse resolved.
"""

import json
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, List, Optional
from urllib.parse import quote

import sentry_sdk
from aiohttp import ClientSession
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from social.graze.wormhole.model.identity import (
    AT_URI_PREFIX,
    DidMethod,
    did_method,
    did_web_document_url,
    did_web_domain,
    is_valid_did,
    is_valid_handle,
)
from social.graze.wormhole.resolve.errors import (
    DidResolutionException,
    HandleNotFoundException,
    InvalidHandleException,
    NetworkException,
    RateLimitedException,
)
from social.graze.wormhole.resolve.retry import (
    DEFAULT_RETRY_POLICY,
    HttpResponse,
    RetryPolicy,
    fetch_with_retry,
)

logger = logging.getLogger(__name__)

DEFAULT_RESOLVER_HOSTNAME = "public.api.bsky.app"


class ResolveHandleResponse(BaseModel):
    """Body of a successful com.atproto.identity.resolveHandle call."""

    did: str


class DidDocument(BaseModel):
    """The parts of a DID document needed for reverse resolution."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    also_known_as: List[str] = Field(default_factory=list, alias="alsoKnownAs")


def handle_predicate(value: Any) -> bool:
    """Check if an alsoKnownAs entry is an AT URI.

    Args:
        value: Entry from a DID document's alsoKnownAs list

    Returns:
        True if value is a string starting with at://
    """
    return isinstance(value, str) and value.startswith(AT_URI_PREFIX)


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Parse a Retry-After header given as delta seconds or an HTTP date."""
    if value is None:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0, int((retry_at - datetime.now(timezone.utc)).total_seconds()))


def resolve_handle_url(api_hostname: str, handle: str) -> str:
    return "https://{host}/xrpc/com.atproto.identity.resolveHandle?handle={handle}".format(
        host=api_hostname, handle=quote(handle, safe="")
    )


def parse_json_object(body: bytes) -> Optional[dict]:
    try:
        data = json.loads(body.decode("utf-8"))
    except ValueError:
        # UnicodeDecodeError and JSONDecodeError are both ValueErrors
        return None
    return data if isinstance(data, dict) else None



def classify_handle_response(resp: HttpResponse, url: str, handle: str) -> str:
    """Turn a resolveHandle response into a DID or the matching exception."""
    if resp.status == 404:
        raise HandleNotFoundException(handle)
    if resp.status == 429:
        raise RateLimitedException(
            url, parse_retry_after(resp.headers.get("Retry-After"))
        )
    if not 200 <= resp.status < 300:
        raise NetworkException.unexpected_status(url, resp.status)

    data = parse_json_object(resp.body)
    if data is None:
        raise NetworkException.malformed_response(url)
    try:
        parsed = ResolveHandleResponse.model_validate(data)
    except PydanticValidationError as e:
        raise NetworkException.malformed_response(url) from e
    if not is_valid_did(parsed.did):
        raise NetworkException.malformed_response(url)
    return parsed.did


async def resolve_handle_to_did(
    session: ClientSession,
    handle: str,
    api_hostname: str = DEFAULT_RESOLVER_HOSTNAME,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
) -> str:
    """Resolve an AT Protocol handle to its DID.

    Args:
        session: HTTP client session
        handle: Handle to resolve
        api_hostname: Host serving com.atproto.identity.resolveHandle
        policy: Timeout and retry configuration

    Returns:
        The DID the handle points at

    Raises:
        InvalidHandleException: If the handle is malformed (no request is made)
        HandleNotFoundException: If the service answers 404
        RateLimitedException: If the service answers 429
        NetworkException: On transport failure, other statuses or a malformed body
    """
    if not is_valid_handle(handle):
        raise InvalidHandleException(handle)

    url = resolve_handle_url(api_hostname, handle)
    resp = await fetch_with_retry(session, url, policy)
    return classify_handle_response(resp, url, handle)


def handle_from_document(did: str, body: bytes) -> Optional[str]:
    """Pull the first AT URI handle out of a DID document body.

    Raises:
        DidResolutionException: If the document is not UTF-8 JSON, does not
            have the expected shape, or its handle is malformed
    """
    data = parse_json_object(body)
    if data is None:
        raise DidResolutionException(did, "malformed DID document")
    try:
        document = DidDocument.model_validate(data)
    except PydanticValidationError as e:
        raise DidResolutionException(did, "malformed DID document") from e

    also_known_as = next(filter(handle_predicate, document.also_known_as), None)
    if also_known_as is None:
        return None

    handle = also_known_as.removeprefix(AT_URI_PREFIX)
    if not is_valid_handle(handle):
        raise DidResolutionException(did, "invalid handle in DID document")
    return handle


async def fetch_did_web_handle(
    session: ClientSession, did: str, policy: RetryPolicy
) -> Optional[str]:
    url = did_web_document_url(did)
    try:
        resp = await fetch_with_retry(session, url, policy)
    except NetworkException as e:
        raise DidResolutionException(did, e.reason) from e

    if resp.status != 200:
        raise DidResolutionException(
            did, f"HTTP {resp.status} fetching DID document", resp.status
        )
    return handle_from_document(did, resp.body)


async def resolve_did_to_handle(
    session: ClientSession,
    did: str,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    fallback_to_domain: bool = False,
) -> Optional[str]:
    """Resolve a DID to its handle, if it has one we can find.

    Only did:web DIDs are reverse resolved; did:plc DIDs return None without
    making a request.

    Args:
        session: HTTP client session
        did: DID to resolve
        policy: Timeout and retry configuration
        fallback_to_domain: Return the did:web domain instead of raising when
            the DID document cannot be fetched or parsed

    Returns:
        The handle, or None if the DID has no reverse mapping

    Raises:
        DidResolutionException: If the DID is malformed, or the document
            fetch or parse fails and fallback_to_domain is not set
    """
    method = did_method(did)
    if method is None:
        raise DidResolutionException(did, "invalid DID format")
    if method != DidMethod.web:
        return None

    try:
        return await fetch_did_web_handle(session, did, policy)
    except DidResolutionException as e:
        if not fallback_to_domain:
            raise
        sentry_sdk.capture_exception(e)
        logger.warning("Falling back to domain for %s: %s", did, e.reason)
        return did_web_domain(did)


class Resolver:
    """
    Handle and DID resolver bound to a session and configuration.

    The orchestrator and HTTP handlers hold one of these instead of passing
    the session, hostname and retry policy around.
    """

    def __init__(
        self,
        session: ClientSession,
        api_hostname: str = DEFAULT_RESOLVER_HOSTNAME,
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        fallback_to_domain: bool = False,
    ) -> None:
        self.session = session
        self.api_hostname = api_hostname
        self.policy = policy
        self.fallback_to_domain = fallback_to_domain

    async def resolve_handle_to_did(self, handle: str) -> str:
        return await resolve_handle_to_did(
            self.session, handle, api_hostname=self.api_hostname, policy=self.policy
        )

    async def resolve_did_to_handle(self, did: str) -> Optional[str]:
        return await resolve_did_to_handle(
            self.session,
            did,
            policy=self.policy,
            fallback_to_domain=self.fallback_to_domain,
        )
