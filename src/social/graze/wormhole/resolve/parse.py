"""Raw input parsing.

Entry point for anything a user might paste: a handle, a DID, an AT URI or
a link to one of the registered AT Protocol web apps.
"""

import logging
import re
from typing import Optional
from urllib.parse import unquote, urlsplit

from social.graze.wormhole.model.record import CanonicalRecord
from social.graze.wormhole.resolve.adapters import extract, extract_generic
from social.graze.wormhole.resolve.canonical import canonicalize
from social.graze.wormhole.resolve.errors import ValidationException

logger = logging.getLogger(__name__)

EMBEDDED_AT_URI = re.compile(r"at://[\w:.\-/]+")


def fragment_from_url(url: str) -> Optional[str]:
    """Find the identity fragment inside an http(s) URL.

    Raises:
        ValidationException: If the URL cannot be split
    """
    embedded = EMBEDDED_AT_URI.search(url)
    if embedded is not None:
        return embedded.group(0)

    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise ValidationException.invalid_url(url) from e

    fragment = extract(parts)
    if fragment is not None:
        return fragment

    logger.debug("no adapter matched %s, trying generic extraction", parts.hostname)
    return extract_generic(parts)


def parse_input(raw: str) -> Optional[CanonicalRecord]:
    """Parse user input into a CanonicalRecord.

    Args:
        raw: Handle, DID, AT URI or service URL, possibly percent-encoded

    Returns:
        CanonicalRecord with source_url set to raw, or None when the input
        is empty or is a URL without a recognizable identity

    Raises:
        ValidationException: If an identity was found but is malformed
    """
    if not raw or not raw.strip():
        return None

    try:
        text = unquote(raw.strip(), errors="strict")
    except UnicodeDecodeError as e:
        raise ValidationException.undecodable(raw) from e

    text = text.removeprefix("@")

    if text.startswith(("http://", "https://")):
        fragment = fragment_from_url(text)
        if fragment is None:
            return None
    else:
        fragment = text

    return canonicalize(fragment).model_copy(update={"source_url": raw})
