"""Local key/value cache that never raises to its caller."""

import json
import logging
from typing import Any

from .backends import StorageBackend

logger = logging.getLogger(__name__)


class SessionMode:
    """Externally toggled flag telling whether the session is ephemeral.

    Guest sessions are ephemeral: their data lives in session-scoped storage
    and is never written to the remote store.
    """

    def __init__(self, ephemeral: bool = False):
        self.is_ephemeral = ephemeral

    def set_ephemeral(self, value: bool) -> None:
        self.is_ephemeral = value


class LocalCache:
    """JSON value cache over an ephemeral and a durable backend.

    The backend is picked on every call from ``SessionMode.is_ephemeral`` so
    a mode switch takes effect immediately. Backend and serialization errors
    are logged and reported through the fallback value or a False result.
    """

    def __init__(
        self,
        session: SessionMode,
        durable: StorageBackend,
        ephemeral: StorageBackend,
    ):
        self.session = session
        self._durable = durable
        self._ephemeral = ephemeral

    @property
    def backend(self) -> StorageBackend:
        return self._ephemeral if self.session.is_ephemeral else self._durable

    def get(self, key: str, fallback: Any = None) -> Any:
        """Return the decoded value stored under key, or fallback."""
        try:
            raw = self.backend.read(key)
        except Exception as e:
            logger.error(f"Cache read failed for {key}: {e}")
            return fallback

        if raw is None:
            return fallback

        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            return fallback

    def set(self, key: str, value: Any) -> bool:
        try:
            encoded = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Cannot serialize value for {key}: {e}")
            return False

        try:
            self.backend.write(key, encoded)
        except Exception as e:
            logger.error(f"Cache write failed for {key}: {e}")
            return False
        return True

    def remove(self, key: str) -> bool:
        try:
            self.backend.delete(key)
        except Exception as e:
            logger.error(f"Cache remove failed for {key}: {e}")
            return False
        return True

    def keys(self) -> list[str]:
        try:
            return self.backend.keys()
        except Exception as e:
            logger.error(f"Cache key listing failed: {e}")
            return []

    def clear(self) -> bool:
        try:
            self.backend.clear()
        except Exception as e:
            logger.error(f"Cache clear failed: {e}")
            return False
        return True
