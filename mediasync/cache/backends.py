"""Storage media behind the local cache.

Both backends store JSON strings by key. The ephemeral backend lives only as
long as the process (a guest session); the SQLite backend persists across
sessions.
"""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

CACHE_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_cache (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class StorageBackend:
    """Raw string key/value medium. Implementations may raise."""

    def read(self, key: str) -> str | None:
        raise NotImplementedError

    def write(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> list[str]:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class EphemeralBackend(StorageBackend):
    """Session-scoped in-memory medium."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def read(self, key: str) -> str | None:
        return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)

    def clear(self) -> None:
        self._data.clear()


class SQLiteBackend(StorageBackend):
    """Durable medium backed by a single SQLite table."""

    def __init__(self, db_path: str | Path):
        """Initialize the backend.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path).expanduser()
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Initialize database connection and schema."""
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.executescript(CACHE_SCHEMA)
        self._conn.commit()
        logger.info(f"Cache database connected at {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def _ensure_connected(self) -> sqlite3.Connection:
        if self._conn is None:
            self.connect()
        return self._conn

    def read(self, key: str) -> str | None:
        conn = self._ensure_connected()
        row = conn.execute("SELECT value FROM kv_cache WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def write(self, key: str, value: str) -> None:
        conn = self._ensure_connected()
        conn.execute(
            """
            INSERT INTO kv_cache (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value, datetime.now().isoformat()),
        )
        conn.commit()

    def delete(self, key: str) -> None:
        conn = self._ensure_connected()
        conn.execute("DELETE FROM kv_cache WHERE key = ?", (key,))
        conn.commit()

    def keys(self) -> list[str]:
        conn = self._ensure_connected()
        return [row[0] for row in conn.execute("SELECT key FROM kv_cache ORDER BY key")]

    def clear(self) -> None:
        conn = self._ensure_connected()
        conn.execute("DELETE FROM kv_cache")
        conn.commit()
