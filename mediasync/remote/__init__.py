"""Remote document store adapters."""

from .base import RemoteCollection, RemoteStore, UserIdProvider
from .http_store import HttpRemoteStore
from .memory_store import InMemoryRemoteStore

__all__ = [
    "HttpRemoteStore",
    "InMemoryRemoteStore",
    "RemoteCollection",
    "RemoteStore",
    "UserIdProvider",
]
