# src/seo_audit/store.py
"""Key/value + list store abstraction with in-memory and SQLite backends."""

import asyncio
import copy
import fnmatch
import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from seo_audit.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS kv_values (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS kv_lists (
    key TEXT NOT NULL,
    position INTEGER NOT NULL,
    value TEXT NOT NULL,
    PRIMARY KEY (key, position)
);
"""


def _slice_range(items: list, start: int, end: int) -> list:
    """Inclusive range with negative indices counted from the end."""
    length = len(items)
    if start < 0:
        start = max(length + start, 0)
    if end < 0:
        end = length + end
    if start >= length or end < start:
        return []
    return items[start:end + 1]


class AbstractStore(ABC):
    """Abstract base class defining the store interface.

    Every operation is atomic for the single key it touches. No cross-key
    transactions are offered. Implementations raise StoreUnavailable when the
    underlying substrate fails.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the value stored at key, or None."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> bool:
        """Store a JSON-serializable value at key."""

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete keys (values or lists) and return how many existed."""

    @abstractmethod
    async def exists(self, *keys: str) -> int:
        """Return how many of the given keys exist."""

    @abstractmethod
    async def push_end(self, key: str, *items: Any) -> int:
        """Append items to the list at key and return its new length."""

    @abstractmethod
    async def push_start(self, key: str, *items: Any) -> int:
        """Prepend items to the list at key and return its new length.

        Items are pushed one at a time, so the last item ends up first.
        """

    @abstractmethod
    async def pop_start(self, key: str, count: int = 1) -> Optional[List[Any]]:
        """Remove and return up to count items from the head, or None if empty."""

    @abstractmethod
    async def pop_end(self, key: str, count: int = 1) -> Optional[List[Any]]:
        """Remove and return up to count items from the tail, or None if empty."""

    @abstractmethod
    async def range(self, key: str, start: int, end: int) -> List[Any]:
        """Return list items between start and end, both inclusive."""

    @abstractmethod
    async def length(self, key: str) -> int:
        """Return the length of the list at key (0 if absent)."""

    @abstractmethod
    async def scan_keys(self, pattern: str = "*") -> List[str]:
        """Return every key matching a glob pattern."""

    async def close(self) -> None:
        """Release any resources held by the store."""


class InMemoryStore(AbstractStore):
    """Dict-backed store for development and tests.

    Values are deep-copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self):
        self._values: dict[str, Any] = {}
        self._lists: dict[str, list] = {}

    async def get(self, key: str) -> Optional[Any]:
        logger.debug(f"[memory] GET {key}")
        return copy.deepcopy(self._values.get(key))

    async def set(self, key: str, value: Any) -> bool:
        logger.debug(f"[memory] SET {key}")
        self._lists.pop(key, None)
        self._values[key] = copy.deepcopy(value)
        return True

    async def delete(self, *keys: str) -> int:
        count = 0
        for key in keys:
            if self._values.pop(key, None) is not None:
                count += 1
            elif self._lists.pop(key, None) is not None:
                count += 1
        return count

    async def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if key in self._values or key in self._lists)

    async def push_end(self, key: str, *items: Any) -> int:
        items_list = self._lists.setdefault(key, [])
        items_list.extend(copy.deepcopy(item) for item in items)
        return len(items_list)

    async def push_start(self, key: str, *items: Any) -> int:
        items_list = self._lists.setdefault(key, [])
        for item in items:
            items_list.insert(0, copy.deepcopy(item))
        return len(items_list)

    async def pop_start(self, key: str, count: int = 1) -> Optional[List[Any]]:
        items_list = self._lists.get(key)
        if not items_list:
            return None
        popped = items_list[:count]
        del items_list[:count]
        if not items_list:
            del self._lists[key]
        return popped

    async def pop_end(self, key: str, count: int = 1) -> Optional[List[Any]]:
        items_list = self._lists.get(key)
        if not items_list:
            return None
        count = min(count, len(items_list))
        popped = list(reversed(items_list[-count:]))
        del items_list[-count:]
        if not items_list:
            del self._lists[key]
        return popped

    async def range(self, key: str, start: int, end: int) -> List[Any]:
        return copy.deepcopy(_slice_range(self._lists.get(key, []), start, end))

    async def length(self, key: str) -> int:
        return len(self._lists.get(key, []))

    async def scan_keys(self, pattern: str = "*") -> List[str]:
        keys = list(self._values) + list(self._lists)
        return [key for key in keys if fnmatch.fnmatchcase(key, pattern)]


class SqliteStore(AbstractStore):
    """Durable SQLite-backed store.

    Values and list items are JSON-encoded. Blocking sqlite calls run in a
    worker thread; a lock serializes them so each operation stays atomic.
    """

    def __init__(self, path: str = "seo_audit.db"):
        """Initialize the SQLite store.

        Args:
            path: Database file path (or ':memory:')
        """
        self.path = path.replace("sqlite:///", "")
        self._lock = threading.Lock()
        self.conn: Optional[sqlite3.Connection] = None
        self.connect()

    def connect(self) -> None:
        """Open the connection and make sure the schema exists."""
        try:
            self.conn = sqlite3.connect(self.path, check_same_thread=False)
            with self.conn:
                self.conn.executescript(CREATE_TABLES_SQL)
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot open SQLite store {self.path}: {e}") from e
        logger.debug(f"Connected to SQLite store: {self.path}")

    async def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.debug("Closed SQLite store connection")

    async def _run(self, func, *args):
        def locked():
            if self.conn is None:
                raise StoreUnavailable("SQLite store is closed")
            with self._lock:
                try:
                    with self.conn:
                        return func(self.conn, *args)
                except sqlite3.Error as e:
                    raise StoreUnavailable(f"SQLite store error: {e}") from e

        return await asyncio.to_thread(locked)

    async def get(self, key: str) -> Optional[Any]:
        def op(conn):
            row = conn.execute(
                "SELECT value FROM kv_values WHERE key = ?", (key,)
            ).fetchone()
            return json.loads(row[0]) if row else None

        return await self._run(op)

    async def set(self, key: str, value: Any) -> bool:
        encoded = json.dumps(value)

        def op(conn):
            conn.execute("DELETE FROM kv_lists WHERE key = ?", (key,))
            conn.execute(
                "INSERT OR REPLACE INTO kv_values (key, value) VALUES (?, ?)",
                (key, encoded),
            )
            return True

        return await self._run(op)

    async def delete(self, *keys: str) -> int:
        def op(conn):
            count = 0
            for key in keys:
                removed = conn.execute(
                    "DELETE FROM kv_values WHERE key = ?", (key,)
                ).rowcount
                if not removed:
                    removed = conn.execute(
                        "DELETE FROM kv_lists WHERE key = ?", (key,)
                    ).rowcount
                if removed:
                    count += 1
            return count

        return await self._run(op)

    async def exists(self, *keys: str) -> int:
        def op(conn):
            count = 0
            for key in keys:
                row = conn.execute(
                    "SELECT 1 FROM kv_values WHERE key = ? "
                    "UNION SELECT 1 FROM kv_lists WHERE key = ? LIMIT 1",
                    (key, key),
                ).fetchone()
                if row:
                    count += 1
            return count

        return await self._run(op)

    async def push_end(self, key: str, *items: Any) -> int:
        encoded = [json.dumps(item) for item in items]

        def op(conn):
            (last,) = conn.execute(
                "SELECT MAX(position) FROM kv_lists WHERE key = ?", (key,)
            ).fetchone()
            position = 0 if last is None else last + 1
            conn.executemany(
                "INSERT INTO kv_lists (key, position, value) VALUES (?, ?, ?)",
                [(key, position + offset, value) for offset, value in enumerate(encoded)],
            )
            return self._count(conn, key)

        return await self._run(op)

    async def push_start(self, key: str, *items: Any) -> int:
        encoded = [json.dumps(item) for item in items]

        def op(conn):
            (first,) = conn.execute(
                "SELECT MIN(position) FROM kv_lists WHERE key = ?", (key,)
            ).fetchone()
            position = 0 if first is None else first - 1
            conn.executemany(
                "INSERT INTO kv_lists (key, position, value) VALUES (?, ?, ?)",
                [(key, position - offset, value) for offset, value in enumerate(encoded)],
            )
            return self._count(conn, key)

        return await self._run(op)

    async def pop_start(self, key: str, count: int = 1) -> Optional[List[Any]]:
        return await self._run(self._pop, key, count, "ASC")

    async def pop_end(self, key: str, count: int = 1) -> Optional[List[Any]]:
        return await self._run(self._pop, key, count, "DESC")

    async def range(self, key: str, start: int, end: int) -> List[Any]:
        def op(conn):
            rows = conn.execute(
                "SELECT value FROM kv_lists WHERE key = ? ORDER BY position ASC",
                (key,),
            ).fetchall()
            return [json.loads(value) for (value,) in _slice_range(rows, start, end)]

        return await self._run(op)

    async def length(self, key: str) -> int:
        return await self._run(self._count, key)

    async def scan_keys(self, pattern: str = "*") -> List[str]:
        def op(conn):
            rows = conn.execute(
                "SELECT key FROM kv_values UNION SELECT DISTINCT key FROM kv_lists"
            ).fetchall()
            return [key for (key,) in rows if fnmatch.fnmatchcase(key, pattern)]

        return await self._run(op)

    @staticmethod
    def _count(conn: sqlite3.Connection, key: str) -> int:
        (count,) = conn.execute(
            "SELECT COUNT(*) FROM kv_lists WHERE key = ?", (key,)
        ).fetchone()
        return count

    @staticmethod
    def _pop(conn: sqlite3.Connection, key: str, count: int, order: str) -> Optional[List[Any]]:
        rows = conn.execute(
            f"SELECT position, value FROM kv_lists WHERE key = ? "
            f"ORDER BY position {order} LIMIT ?",
            (key, count),
        ).fetchall()
        if not rows:
            return None
        conn.executemany(
            "DELETE FROM kv_lists WHERE key = ? AND position = ?",
            [(key, position) for position, _ in rows],
        )
        return [json.loads(value) for _, value in rows]


def get_store(backend: Optional[str] = None, **kwargs) -> AbstractStore:
    """Factory function to create the configured store.

    Args:
        backend: Store backend ('memory' or 'sqlite'). Defaults to 'memory'.
        **kwargs: Additional arguments passed to the store constructor.

    Returns:
        An instance of AbstractStore.

    Raises:
        ValueError: If an unknown backend is specified.
    """
    backend = backend or "memory"

    if backend == "memory":
        logger.info("Using in-memory store backend")
        return InMemoryStore()
    elif backend == "sqlite":
        logger.info("Using SQLite store backend")
        return SqliteStore(**kwargs)
    else:
        raise ValueError(
            f"Unknown store backend: '{backend}'. "
            "Supported backends: 'memory', 'sqlite'"
        )
