"""
Wormhole - AT Protocol Identifier Resolution

This package turns whatever a user pastes (a handle, a DID, an at:// URI or a
link to one of the AT Protocol web apps) into a canonical record, fills in the
missing handle or DID over the network, and builds the equivalent link on
every other known service.

Key Components:
- model: Identity formats and the CanonicalRecord
- resolve: Service adapters, canonicalization, input parsing and network
  resolution with retries
- cache: Bounded handle <-> DID cache and its snapshot stores
- app: Configuration, orchestrator, metrics and the aiohttp service

Resolution Flow:
1. Percent-decode the input and, for URLs, extract a fragment using the
   service adapter matching the hostname (or the generic fallback)
2. Canonicalize the fragment into a CanonicalRecord, expanding collection
   shortcuts such as "post" and "feed"
3. Look up the missing half of the identity in the cache, then the network
4. Write successful lookups back to the cache, which persists a snapshot
"""
