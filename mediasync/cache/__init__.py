"""Local cache for offline-first reads.

Provides:
- LocalCache: JSON key/value cache that picks its medium per call
- SessionMode: the ephemeral/durable switch
- EphemeralBackend / SQLiteBackend: the two storage media
- GuestSession: demo sessions kept entirely in the ephemeral medium
"""

from .backends import EphemeralBackend, SQLiteBackend, StorageBackend
from .guest import GuestSession
from .local_cache import LocalCache, SessionMode

__all__ = [
    "EphemeralBackend",
    "GuestSession",
    "LocalCache",
    "SessionMode",
    "SQLiteBackend",
    "StorageBackend",
]
