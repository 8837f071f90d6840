"""Exceptions raised by the resolution engine.

ValidationException covers client input problems and is never retried.
ResolverException and its subclasses describe network lookups: transport
failures surface as NetworkException after the retry budget is spent, while
HandleNotFoundException, RateLimitedException and DidResolutionException are
definitive outcomes that callers may degrade on.
"""

from typing import Any, Optional


class WormholeException(Exception):
    """Base class for every error raised by the engine."""


class ValidationException(WormholeException):
    """
    Raised when a handle, DID or fragment is malformed.

    Attributes:
        reason: Human-readable reason
        field: Name of the offending field, if any
        value: The rejected value, if any
    """

    def __init__(
        self, reason: str, field: Optional[str] = None, value: Any = None
    ) -> None:
        super().__init__(reason)
        self.reason = reason
        self.field = field
        self.value = value

    @staticmethod
    def missing_identifier(fragment: Any = None) -> "ValidationException":
        """Fragment is empty or has no identifier segment."""
        return ValidationException(
            "error-wormhole-1000 missing identifier", "fragment", fragment
        )

    @staticmethod
    def invalid_handle(handle: Any) -> "ValidationException":
        return ValidationException(
            "error-wormhole-1001 invalid handle format", "handle", handle
        )

    @staticmethod
    def invalid_did(did: Any) -> "ValidationException":
        return ValidationException("error-wormhole-1002 invalid DID format", "did", did)

    @staticmethod
    def record_key_required(collection: str) -> "ValidationException":
        """A record-bearing collection was given without a record key."""
        return ValidationException(
            f"error-wormhole-1003 {collection} requires a record key",
            "record_key",
            None,
        )

    @staticmethod
    def undecodable(raw: Any) -> "ValidationException":
        return ValidationException(
            "error-wormhole-1004 input could not be decoded", "input", raw
        )

    @staticmethod
    def invalid_url(raw: Any) -> "ValidationException":
        return ValidationException("error-wormhole-1005 invalid URL", "input", raw)


class InvalidHandleException(ValidationException):
    """The resolver was asked to look up a malformed handle."""

    def __init__(self, handle: Any) -> None:
        super().__init__("error-wormhole-1101 invalid handle format", "handle", handle)
        self.handle = handle


class ResolverException(WormholeException):
    """Base class for failures of a network lookup."""


class NetworkException(ResolverException):
    """
    Transport failure, timeout, unexpected status or malformed response.

    Attributes:
        url: The URL that was requested
        reason: Short description of what went wrong
        status: HTTP status, when a response was received
    """

    def __init__(self, url: str, reason: str, status: Optional[int] = None) -> None:
        message = f"error-wormhole-1200 {reason} ({url})"
        if status is not None:
            message = f"error-wormhole-1200 HTTP {status}: {reason} ({url})"
        super().__init__(message)
        self.url = url
        self.reason = reason
        self.status = status

    @staticmethod
    def timeout(url: str) -> "NetworkException":
        return NetworkException(url, "timeout")

    @staticmethod
    def transport_failure(url: str) -> "NetworkException":
        return NetworkException(url, "transport failure")

    @staticmethod
    def malformed_response(url: str) -> "NetworkException":
        return NetworkException(url, "malformed response")

    @staticmethod
    def unexpected_status(url: str, status: int) -> "NetworkException":
        return NetworkException(url, "unexpected status", status)


class HandleNotFoundException(ResolverException):
    """The lookup service definitively reported the handle as unknown."""

    def __init__(self, handle: str, status: int = 404) -> None:
        super().__init__(f"error-wormhole-1300 handle not found: {handle}")
        self.handle = handle
        self.status = status


class RateLimitedException(ResolverException):
    """
    The lookup service asked us to back off.

    Not retried by the resolver; retry_after is the server's hint in seconds,
    if it sent one.
    """

    def __init__(self, url: str, retry_after: Optional[int] = None) -> None:
        super().__init__(f"error-wormhole-1301 rate limited ({url})")
        self.url = url
        self.retry_after = retry_after


class DidResolutionException(ResolverException):
    """
    A DID could not be turned into a handle.

    Attributes:
        did: The DID being resolved
        reason: Short description of what went wrong
        status_code: HTTP status of the DID document fetch, if any
    """

    def __init__(
        self, did: str, reason: str, status_code: Optional[int] = None
    ) -> None:
        super().__init__(f"error-wormhole-1400 {reason}: {did}")
        self.did = did
        self.reason = reason
        self.status_code = status_code
