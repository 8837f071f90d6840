"""Canonical record model.

A CanonicalRecord is the normalized form of any AT Protocol reference the
engine understands: a profile (handle and/or DID) optionally narrowed to a
single record by collection and record key.
"""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, computed_field

from social.graze.wormhole.model.identity import AT_URI_PREFIX

POST_COLLECTION = "app.bsky.feed.post"
FEED_GENERATOR_COLLECTION = "app.bsky.feed.generator"
LIST_COLLECTION = "app.bsky.graph.list"

# Order matters: the first alias that expands to a collection is the one used
# when building display paths.
NSID_SHORTCUTS: Dict[str, str] = {
    "post": POST_COLLECTION,
    "feed": FEED_GENERATOR_COLLECTION,
    "lists": LIST_COLLECTION,
    "p": POST_COLLECTION,
    "f": FEED_GENERATOR_COLLECTION,
    "l": LIST_COLLECTION,
}

RECORD_BEARING_COLLECTIONS = frozenset(
    [POST_COLLECTION, FEED_GENERATOR_COLLECTION, LIST_COLLECTION]
)


def expand_collection(value: str) -> str:
    """Expand a collection shortcut, passing unknown collections through."""
    return NSID_SHORTCUTS.get(value, value)


def collection_alias(collection: Optional[str]) -> Optional[str]:
    """Reverse shortcut lookup used for display paths."""
    if collection is None:
        return None
    return next(
        (key for key, value in NSID_SHORTCUTS.items() if value == collection), None
    )


class CanonicalRecord(BaseModel):
    """Fully or partially resolved AT Protocol reference.

    display_path and canonical_uri are derived from the stored fields so they
    can never disagree with them, including after a resolver fills in the
    missing half of the identity.
    """

    model_config = ConfigDict(frozen=True)

    handle: Optional[str] = None
    did: Optional[str] = None
    collection: Optional[str] = None
    record_key: Optional[str] = None
    source_url: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.handle is not None or self.did is not None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def display_path(self) -> str:
        account = self.handle or self.did
        if account is None:
            return ""
        path = f"/profile/{account}"
        if self.collection and self.record_key:
            alias = collection_alias(self.collection)
            if alias is not None:
                path += f"/{alias}/{self.record_key}"
        return path

    @computed_field  # type: ignore[prop-decorator]
    @property
    def canonical_uri(self) -> Optional[str]:
        account = self.did or self.handle
        if account is None:
            return None
        uri = f"{AT_URI_PREFIX}{account}"
        if self.collection and self.record_key:
            uri += f"/{self.collection}/{self.record_key}"
        return uri
