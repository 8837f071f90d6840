"""
Handle <-> DID Cache

This package provides the in-memory cache that sits in front of the resolver
and the stores that persist it between restarts.

Key Components:
- bidirectional.py: BidirectionalCache, an LRU and TTL bounded bijection
  between handles and DIDs with hit/miss statistics
- store.py: SnapshotStore implementations (Redis and no-op) used as the
  cache's mutation observer and to restore it at startup

The cache never performs I/O itself. A store is attached as the observer and
receives a full snapshot after each mutation; failures there are reported
and do not roll back the in-memory change.
"""
