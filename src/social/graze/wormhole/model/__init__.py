"""
Data Models

This package defines the value types shared by the resolution engine.

Key Models:
- identity.py: Handle and DID format rules, DID method classification and
  did:web document URLs
- record.py: CanonicalRecord, the normalized form of a handle, DID or AT URI,
  and the collection shortcut table

Models carry no I/O. Records are immutable pydantic models whose display path
and canonical AT URI are computed from the stored fields.
"""
