"""
Ordered key-value backends.

Both backends satisfy KeyValueStoreProtocol. The in-memory backend keeps a
sorted key list beside a dict; the sqlite backend relies on the primary-key
B-tree for ordering. Neither is thread-safe on its own: the ledger store
serialises all access through its lock.
"""

import logging
import sqlite3
from bisect import bisect_left, bisect_right, insort
from collections.abc import Iterable

from src.ledger.config import StorageConfig
from src.ledger.protocols.ledger import KeyValueStoreProtocol

logger = logging.getLogger(__name__)

# Greater than any character used in ledger keys
_PREFIX_END = "\U0010ffff"


class InMemoryKeyValueStore:
    """Sorted in-process key-value store."""

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._data: dict[str, str] = {}
        self._keys: list[str] = []

    def __len__(self) -> int:
        """Number of stored keys."""
        return len(self._keys)

    def get(self, key: str) -> str | None:
        """Get the value stored under a key."""
        return self._data.get(key)

    def scan(
        self,
        prefix: str,
        start_after: str | None = None,
        reverse: bool = False,
        limit: int | None = None,
    ) -> list[tuple[str, str]]:
        """Scan keys sharing a prefix, in key order."""
        lo = bisect_left(self._keys, prefix)
        hi = bisect_left(self._keys, prefix + _PREFIX_END)

        if start_after is not None:
            if reverse:
                hi = min(hi, bisect_left(self._keys, start_after))
            else:
                lo = max(lo, bisect_right(self._keys, start_after))

        selected = self._keys[lo:hi]
        if reverse:
            selected.reverse()
        if limit is not None:
            selected = selected[:limit]
        return [(key, self._data[key]) for key in selected]

    def write_batch(
        self,
        puts: Iterable[tuple[str, str]] = (),
        deletes: Iterable[str] = (),
    ) -> None:
        """Apply deletes then puts."""
        # Materialise first so a failing iterator leaves the store untouched
        puts = list(puts)
        deletes = list(deletes)

        for key in deletes:
            if key in self._data:
                del self._data[key]
                del self._keys[bisect_left(self._keys, key)]

        for key, value in puts:
            if key not in self._data:
                insort(self._keys, key)
            self._data[key] = value


class SqliteKeyValueStore:
    """
    Durable key-value store on a single sqlite table.

    Batches run inside one transaction, so a failed batch leaves no partial
    writes behind.
    """

    def __init__(self, path: str) -> None:
        """
        Open (or create) the database.

        Args:
            path: Database file, or ":memory:"

        """
        self.path = path
        self._conn = sqlite3.connect(path, check_same_thread=False)
        with self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS kv ("
                "key TEXT PRIMARY KEY, value TEXT NOT NULL"
                ") WITHOUT ROWID"
            )
        logger.info(f"Opened sqlite key-value store at {path}")

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def get(self, key: str) -> str | None:
        """Get the value stored under a key."""
        row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def scan(
        self,
        prefix: str,
        start_after: str | None = None,
        reverse: bool = False,
        limit: int | None = None,
    ) -> list[tuple[str, str]]:
        """Scan keys sharing a prefix, in key order."""
        clauses = ["key >= ?", "key < ?"]
        params: list[str | int] = [prefix, prefix + _PREFIX_END]

        if start_after is not None:
            clauses.append("key < ?" if reverse else "key > ?")
            params.append(start_after)

        order = "DESC" if reverse else "ASC"
        params.append(limit if limit is not None else -1)
        sql = (
            f"SELECT key, value FROM kv WHERE {' AND '.join(clauses)} "
            f"ORDER BY key {order} LIMIT ?"
        )
        return [(row[0], row[1]) for row in self._conn.execute(sql, params)]

    def write_batch(
        self,
        puts: Iterable[tuple[str, str]] = (),
        deletes: Iterable[str] = (),
    ) -> None:
        """Apply deletes then puts in one transaction."""
        with self._conn:
            self._conn.executemany(
                "DELETE FROM kv WHERE key = ?", [(key,) for key in deletes]
            )
            self._conn.executemany(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                list(puts),
            )


def build_key_value_store(config: StorageConfig) -> KeyValueStoreProtocol:
    """
    Create the backend named by the storage configuration.

    Raises:
        ValueError: If the backend is not supported

    """
    match config.backend:
        case "memory":
            return InMemoryKeyValueStore()
        case "sqlite":
            return SqliteKeyValueStore(config.sqlite_path)
        case _:
            raise ValueError(f"Unsupported storage backend: {config.backend}")
