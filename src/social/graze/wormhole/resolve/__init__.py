"""
Identifier Resolution

This package parses user input into canonical AT Protocol records and
resolves handles and DIDs over the network.

Key Components:
- adapters.py: Per-service URL extraction rules and destination links
- canonical.py: Canonicalization of at:// fragments
- parse.py: Entry point from raw user input
- handle.py: Handle -> DID and DID -> handle resolution
- retry.py: HTTP fetching with timeout, exponential backoff and jitter
- errors.py: Exception hierarchy
- __main__.py: CLI interface for resolution

Resolution Types:
1. Handle Resolution
   - com.atproto.identity.resolveHandle on a configurable AppView host

2. DID Resolution
   - did:plc DIDs are content-derived and resolve to no handle without I/O
   - did:web DIDs resolve through the well-known DID document and its
     first at:// alsoKnownAs entry
"""
