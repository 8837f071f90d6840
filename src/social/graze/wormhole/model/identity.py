"""AT Protocol identity formats.

Format rules for handles and the two supported DID methods, plus the
deterministic mapping from a did:web DID to its well-known document URL.
"""

import re
from enum import IntEnum
from typing import Optional
from urllib.parse import unquote

AT_URI_PREFIX = "at://"
DID_PREFIX = "did:"
DID_PLC_PREFIX = "did:plc:"
DID_WEB_PREFIX = "did:web:"

HANDLE_MAX_LENGTH = 253

HANDLE_PATTERN = re.compile(r"^([a-zA-Z0-9-]+\.)+[a-zA-Z0-9-]+$")
DID_PLC_PATTERN = re.compile(r"^did:plc:[a-z0-9]{24}$")
DID_WEB_PATTERN = re.compile(
    r"^did:web:[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}(%3[aA][0-9]+)?(:[a-zA-Z0-9._-]+)*$"
)


class DidMethod(IntEnum):
    """Supported DID methods.

    plc DIDs are content-derived and opaque. web DIDs wrap a DNS name and
    publish a well-known document that can be used for reverse lookups.
    """

    plc = 1
    web = 2


def is_valid_handle(value: Optional[str]) -> bool:
    """Check that value is a domain-shaped AT Protocol handle."""
    if not value or len(value) > HANDLE_MAX_LENGTH:
        return False
    return HANDLE_PATTERN.match(value) is not None


def did_method(value: Optional[str]) -> Optional[DidMethod]:
    """Classify a DID by method.

    Args:
        value: Candidate DID string

    Returns:
        The DidMethod when value is a well-formed plc or web DID, None otherwise
    """
    if not value:
        return None
    if DID_PLC_PATTERN.match(value):
        return DidMethod.plc
    if DID_WEB_PATTERN.match(value):
        return DidMethod.web
    return None


def is_valid_did(value: Optional[str]) -> bool:
    return did_method(value) is not None


def did_web_domain(did: str) -> str:
    """Return the decoded host (and port) wrapped by a did:web DID."""
    method_specific_id = did.removeprefix(DID_WEB_PREFIX).split("#")[0]
    return unquote(method_specific_id.split(":")[0])


def did_web_document_url(did: str) -> str:
    """Build the DID document URL for a did:web DID.

    A bare domain uses the /.well-known/did.json location, path segments
    are appended to the domain and end in /did.json.
    """
    parts = did.removeprefix(DID_WEB_PREFIX).split("#")[0].split(":")
    parts[0] = unquote(parts[0])

    if len(parts) == 1:
        parts.append(".well-known")

    return "https://{inner}/did.json".format(inner="/".join(parts))
