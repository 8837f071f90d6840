"""Service adapter registry.

A static table of AT Protocol web apps. Each adapter knows the hostnames it
serves, how to pull a raw identity fragment out of one of its URLs, and how
to build its own URL for a canonical record.

Extraction never performs I/O. A URL that no adapter recognizes yields None
so callers can fall back to extract_generic.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, FrozenSet, List, Optional, Pattern
from urllib.parse import SplitResult, parse_qs

from pydantic import BaseModel

from social.graze.wormhole.model.identity import (
    AT_URI_PREFIX,
    DID_PREFIX,
    DidMethod,
    did_method,
)
from social.graze.wormhole.model.record import (
    FEED_GENERATOR_COLLECTION,
    LIST_COLLECTION,
    POST_COLLECTION,
    CanonicalRecord,
)

Extractor = Callable[[SplitResult], Optional[str]]
UrlBuilder = Callable[[CanonicalRecord], Optional[str]]

AT_URI_IN_PATH = re.compile(r"at://[\w:.\-/]+")
SINGLE_SLASH_AT_URI_IN_PATH = re.compile(r"at:/[\w:.\-/]+")


class ContentSupport(str, Enum):
    """Which kinds of content a service can display."""

    only_profiles = "only-profiles"
    only_posts = "only-posts"
    profiles_and_posts = "profiles-and-posts"
    full = "full"


@dataclass(frozen=True)
class ExtractionRule:
    """How to find the identity fragment in a service URL.

    Rules are tried in declaration order: custom extractor, query parameter,
    identifier pattern (handle or DID followed by the rest of the path),
    handle-only pattern, DID-only pattern.
    """

    custom: Optional[Extractor] = None
    query_param: Optional[str] = None
    identifier_pattern: Optional[Pattern[str]] = None
    handle_pattern: Optional[Pattern[str]] = None
    did_pattern: Optional[Pattern[str]] = None


@dataclass(frozen=True)
class ServiceAdapter:
    name: str
    emoji: str
    hostnames: FrozenSet[str]
    content_support: ContentSupport
    build_url: UrlBuilder
    rule: ExtractionRule = field(default_factory=ExtractionRule)
    requires_handle: bool = False
    requires_did: bool = False
    requires_record_key: bool = False
    plc_only: bool = False


class Destination(BaseModel):
    """A link to one service for a canonical record."""

    label: str
    url: str


def query_value(url: SplitResult, name: str) -> Optional[str]:
    values = parse_qs(url.query).get(name)
    if not values:
        return None
    return values[0]


def extract_pdsls(url: SplitResult) -> Optional[str]:
    # /at://did:plc:xyz/app.bsky.feed.post/abc
    match = AT_URI_IN_PATH.search(url.path)
    return match.group(0) if match else None


def extract_atp_tools(url: SplitResult) -> Optional[str]:
    # atp.tools writes at:/ instead of at://
    match = SINGLE_SLASH_AT_URI_IN_PATH.search(url.path)
    if match is None:
        return None
    return AT_URI_PREFIX + match.group(0).removeprefix("at:/").lstrip("/")


def extract_skythread(url: SplitResult) -> Optional[str]:
    if not url.path.startswith("/skythread"):
        return None
    author = query_value(url, "author")
    post = query_value(url, "post")
    if author and author.startswith(DID_PREFIX) and post:
        return f"{author}/{POST_COLLECTION}/{post}"
    return None


PROFILE_IDENTIFIER = re.compile(r"^/profile/([^/]+)")


SERVICE_ADAPTERS: List[ServiceAdapter] = [
    ServiceAdapter(
        name="deer.social",
        emoji="🦌",
        hostnames=frozenset(["deer.social"]),
        content_support=ContentSupport.full,
        rule=ExtractionRule(identifier_pattern=PROFILE_IDENTIFIER),
        build_url=lambda record: f"https://deer.social{record.display_path}",
    ),
    ServiceAdapter(
        name="bsky.app",
        emoji="🦋",
        hostnames=frozenset(["bsky.app"]),
        content_support=ContentSupport.full,
        rule=ExtractionRule(identifier_pattern=PROFILE_IDENTIFIER),
        build_url=lambda record: f"https://bsky.app{record.display_path}",
    ),
    ServiceAdapter(
        name="pdsls.dev",
        emoji="⚙️",
        hostnames=frozenset(["pdsls.dev"]),
        content_support=ContentSupport.full,
        rule=ExtractionRule(custom=extract_pdsls),
        build_url=lambda record: f"https://pdsls.dev/{record.canonical_uri}",
    ),
    ServiceAdapter(
        name="atp.tools",
        emoji="🛠️",
        hostnames=frozenset(["atp.tools"]),
        content_support=ContentSupport.full,
        rule=ExtractionRule(custom=extract_atp_tools),
        build_url=lambda record: "https://atp.tools/{uri}".format(
            uri=(record.canonical_uri or "").replace(AT_URI_PREFIX, "at:/", 1)
        ),
    ),
    ServiceAdapter(
        name="clearsky",
        emoji="☀️",
        hostnames=frozenset(["clearsky.app"]),
        content_support=ContentSupport.only_profiles,
        rule=ExtractionRule(did_pattern=re.compile(r"^/(did:[^/]+)")),
        build_url=lambda record: f"https://clearsky.app/{record.did}/blocked-by",
        requires_did=True,
    ),
    ServiceAdapter(
        name="skythread",
        emoji="☁️",
        hostnames=frozenset(["blue.mackuba.eu"]),
        content_support=ContentSupport.only_posts,
        rule=ExtractionRule(custom=extract_skythread),
        build_url=lambda record: (
            "https://blue.mackuba.eu/skythread/?author={did}&post={rkey}".format(
                did=record.did, rkey=record.record_key
            )
        ),
        requires_did=True,
        requires_record_key=True,
    ),
    ServiceAdapter(
        name="cred.blue",
        emoji="🍥",
        hostnames=frozenset(["cred.blue"]),
        content_support=ContentSupport.only_profiles,
        rule=ExtractionRule(handle_pattern=re.compile(r"^/([^/]+)$")),
        build_url=lambda record: f"https://cred.blue/{record.handle}",
        requires_handle=True,
    ),
    ServiceAdapter(
        name="tangled.sh",
        emoji="🪢",
        hostnames=frozenset(["tangled.sh"]),
        content_support=ContentSupport.only_profiles,
        rule=ExtractionRule(handle_pattern=re.compile(r"^/@?([^/]+)$")),
        build_url=lambda record: f"https://tangled.sh/@{record.handle}",
        requires_handle=True,
    ),
    ServiceAdapter(
        name="frontpage.fyi",
        emoji="📰",
        hostnames=frozenset(["frontpage.fyi"]),
        content_support=ContentSupport.only_profiles,
        rule=ExtractionRule(handle_pattern=re.compile(r"^/profile/([^/]+)$")),
        build_url=lambda record: f"https://frontpage.fyi/profile/{record.handle}",
        requires_handle=True,
    ),
    ServiceAdapter(
        name="boat.kelinci",
        emoji="⛵",
        hostnames=frozenset(["boat.kelinci.net"]),
        content_support=ContentSupport.only_profiles,
        rule=ExtractionRule(query_param="q"),
        build_url=lambda record: f"https://boat.kelinci.net/plc-oplogs?q={record.did}",
        requires_did=True,
        plc_only=True,
    ),
    ServiceAdapter(
        name="plc.directory",
        emoji="🪪",
        hostnames=frozenset(["plc.directory"]),
        content_support=ContentSupport.only_profiles,
        rule=ExtractionRule(did_pattern=re.compile(r"^/(did:plc:[^/]+)")),
        build_url=lambda record: f"https://plc.directory/{record.did}",
        requires_did=True,
        plc_only=True,
    ),
    ServiceAdapter(
        name="toolify.blue",
        emoji="🔧",
        hostnames=frozenset(["toolify.blue"]),
        content_support=ContentSupport.profiles_and_posts,
        rule=ExtractionRule(identifier_pattern=PROFILE_IDENTIFIER),
        build_url=lambda record: f"https://toolify.blue{record.display_path}",
    ),
]


def match_with_rest(pattern: Optional[Pattern[str]], path: str) -> Optional[str]:
    """Match pattern at the start of path and keep whatever follows it."""
    if pattern is None:
        return None
    match = pattern.match(path)
    if match is None or not match.group(1):
        return None
    rest = path[match.end() :]
    return f"{match.group(1)}{rest}" if rest else match.group(1)


def apply_rule(rule: ExtractionRule, url: SplitResult) -> Optional[str]:
    if rule.custom is not None:
        result = rule.custom(url)
        if result:
            return result

    if rule.query_param is not None:
        param = query_value(url, rule.query_param)
        if param and (param.startswith(DID_PREFIX) or "." in param):
            return param

    for pattern in (rule.identifier_pattern, rule.handle_pattern, rule.did_pattern):
        result = match_with_rest(pattern, url.path)
        if result:
            return result

    return None


def find_adapter(hostname: Optional[str]) -> Optional[ServiceAdapter]:
    if not hostname:
        return None
    return next(
        (adapter for adapter in SERVICE_ADAPTERS if hostname in adapter.hostnames),
        None,
    )


def extract(url: SplitResult) -> Optional[str]:
    """Extract a raw identity fragment from a service URL.

    Args:
        url: URL split with urllib.parse.urlsplit

    Returns:
        The fragment (handle, DID or AT URI, possibly with a path suffix), or
        None if no adapter serves the host or the adapter found nothing
    """
    adapter = find_adapter(url.hostname)
    if adapter is None:
        return None
    return apply_rule(adapter.rule, url)


def extract_generic(url: SplitResult) -> Optional[str]:
    """Best-effort extraction for hosts without an adapter.

    Accepts a DID in the q query parameter, or scans the path for a DID
    segment or a dotted segment directly after "profile" and keeps the rest
    of the path after it.
    """
    q = query_value(url, "q")
    if q and q.startswith(DID_PREFIX):
        return q

    parts = url.path.split("/")
    for index, part in enumerate(parts):
        follows_profile = index > 0 and parts[index - 1].lower() == "profile"
        if part.startswith(DID_PREFIX) or ("." in part and follows_profile):
            rest = "/".join(parts[index + 1 :])
            return f"{part}/{rest}" if rest else part
    return None


def supports_content(adapter: ServiceAdapter, record: CanonicalRecord) -> bool:
    """Strict mode filter for records that point at a single item."""
    if not record.record_key:
        return True
    if record.collection == POST_COLLECTION:
        return adapter.content_support in (
            ContentSupport.only_posts,
            ContentSupport.profiles_and_posts,
            ContentSupport.full,
        )
    if record.collection in (FEED_GENERATOR_COLLECTION, LIST_COLLECTION):
        return adapter.content_support == ContentSupport.full
    return True


def build_destinations(
    record: CanonicalRecord, show_emojis: bool = True, strict_mode: bool = False
) -> List[Destination]:
    """Build every service link available for a record.

    Args:
        record: Canonical record to link to
        show_emojis: Prefix labels with the service emoji
        strict_mode: Only include services able to show the record's content type

    Returns:
        Destinations in registry order
    """
    if not record.is_resolved:
        return []

    is_did_web = did_method(record.did) == DidMethod.web
    destinations: List[Destination] = []

    for adapter in SERVICE_ADAPTERS:
        if adapter.requires_handle and not record.handle:
            continue
        if adapter.requires_did and not record.did:
            continue
        if adapter.requires_record_key and not record.record_key:
            continue
        if adapter.plc_only and is_did_web:
            continue
        if strict_mode and not supports_content(adapter, record):
            continue

        url = adapter.build_url(record)
        if not url:
            continue
        label = f"{adapter.emoji} {adapter.name}" if show_emojis else adapter.name
        destinations.append(Destination(label=label, url=url))

    return destinations
