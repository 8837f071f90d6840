"""Fragment canonicalization.

Turns a raw fragment (handle, DID or AT URI, optionally followed by a
collection and record key) into a CanonicalRecord. Pure: no network calls.
"""

import logging

from social.graze.wormhole.model.identity import (
    AT_URI_PREFIX,
    DID_PREFIX,
    is_valid_did,
    is_valid_handle,
)
from social.graze.wormhole.model.record import (
    RECORD_BEARING_COLLECTIONS,
    CanonicalRecord,
    expand_collection,
)
from social.graze.wormhole.resolve.errors import ValidationException

logger = logging.getLogger(__name__)


def normalize_at_uri(fragment: str) -> str:
    """Bring a fragment into at://rest form.

    Repairs the single-slash "at:/" form some services emit and prepends the
    scheme when it is missing.
    """
    if fragment.startswith(AT_URI_PREFIX):
        return fragment
    if fragment.startswith("at:/"):
        return AT_URI_PREFIX + fragment.removeprefix("at:/")
    return AT_URI_PREFIX + fragment


def canonicalize(fragment: str) -> CanonicalRecord:
    """Canonicalize a raw fragment.

    Args:
        fragment: Handle, DID or AT URI with an optional /collection/rkey suffix

    Returns:
        CanonicalRecord for the fragment

    Raises:
        ValidationException: If the fragment, its identifier or the
            collection/record key combination is invalid
    """
    if not isinstance(fragment, str) or not fragment.strip():
        raise ValidationException.missing_identifier(fragment)

    uri = normalize_at_uri(fragment.strip())
    id_part, *rest_parts = uri.removeprefix(AT_URI_PREFIX).split("/")
    rest_parts = [part for part in rest_parts if part]

    if not id_part:
        raise ValidationException.missing_identifier(fragment)

    did = None
    handle = None
    if id_part.startswith(DID_PREFIX):
        if not is_valid_did(id_part):
            raise ValidationException.invalid_did(id_part)
        did = id_part
    else:
        if not is_valid_handle(id_part):
            raise ValidationException.invalid_handle(id_part)
        handle = id_part

    collection = None
    record_key = None
    if rest_parts:
        collection = expand_collection(rest_parts[0])
    if len(rest_parts) > 1:
        record_key = rest_parts[1]

    if collection in RECORD_BEARING_COLLECTIONS and not record_key:
        raise ValidationException.record_key_required(collection)

    record = CanonicalRecord(
        handle=handle, did=did, collection=collection, record_key=record_key
    )
    logger.debug("canonicalized %r to %s", fragment, record.canonical_uri)
    return record
