"""Persisted key-value stores backing the response cache."""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import aiosqlite

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when a key-value store backend fails.

    Cache callers treat this as a miss and go to the network.

    Attributes:
        backend: The store backend that raised this error.
        message: Human-readable error description.
    """

    def __init__(self, backend: str, message: str) -> None:
        self.backend = backend
        self.message = message
        super().__init__(f"[{backend}] {message}")


@runtime_checkable
class KeyValueStore(Protocol):
    """Protocol for persisted key-value stores.

    Values must be JSON-serializable. Backend faults raise StoreError.
    """

    async def get_item(self, key: str) -> Any | None:
        """Return the stored value, or None if absent."""
        ...

    async def set_item(self, key: str, value: Any) -> bool:
        """Store a value, replacing any previous one."""
        ...

    async def remove_item(self, key: str) -> bool:
        """Remove a value. Removing a missing key is not an error."""
        ...


class MemoryStore:
    """In-process store backed by a dict of JSON strings.

    Values are serialized on write, so readers always get an independent copy.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get_item(self, key: str) -> Any | None:
        raw = self._data.get(key)
        if raw is None:
            logger.debug(f"Memory store miss: {key}")
            return None
        logger.debug(f"Memory store hit: {key}")
        return json.loads(raw)

    async def set_item(self, key: str, value: Any) -> bool:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StoreError("memory", f"Value for {key} is not serializable: {e}") from e
        logger.debug(f"Memory store set: {key}")
        return True

    async def remove_item(self, key: str) -> bool:
        self._data.pop(key, None)
        logger.debug(f"Memory store removed: {key}")
        return True

    def __len__(self) -> int:
        return len(self._data)


class SQLiteStore:
    """SQLite key-value store with WAL mode for persistence."""

    def __init__(self, db_path: str | Path = "~/.cache/avatarlink/store.db") -> None:
        """Initialize SQLite store with database path.

        Args:
            db_path: Path to SQLite database file

        Raises:
            StoreError: If the database directory cannot be created.
        """
        self._db_path = Path(db_path).expanduser()
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError("sqlite", f"Cannot create {self._db_path.parent}: {e}") from e
        self._conn: aiosqlite.Connection | None = None
        self._conn_lock = asyncio.Lock()

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def connect(self) -> None:
        """Open the connection and create the table if needed."""
        async with self._conn_lock:
            if self._conn is None:
                self._conn = await self._open()
                logger.info(f"SQLite store initialized at {self._db_path}")

    async def _open(self) -> aiosqlite.Connection:
        try:
            conn = await aiosqlite.connect(str(self._db_path), timeout=30.0)
        except aiosqlite.Error as e:
            raise StoreError("sqlite", f"Failed to open {self._db_path}: {e}") from e

        try:
            # Enable WAL mode for better concurrency
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA synchronous=NORMAL")

            await conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            await conn.commit()
        except aiosqlite.Error as e:
            await conn.close()
            raise StoreError("sqlite", f"Failed to initialize {self._db_path}: {e}") from e
        return conn

    async def close(self) -> None:
        """Close SQLite connection."""
        async with self._conn_lock:
            if self._conn is not None:
                await self._conn.close()
                self._conn = None

    async def _get_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            await self.connect()
        assert self._conn is not None  # For mypy
        return self._conn

    async def get_item(self, key: str) -> Any | None:
        """Retrieve a value from SQLite.

        Args:
            key: Store key

        Returns:
            Decoded value if found, None otherwise
        """
        conn = await self._get_conn()
        try:
            cursor = await conn.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreError("sqlite", f"Failed to read {key}: {e}") from e

        if row is None:
            logger.debug(f"SQLite store miss: {key}")
            return None

        logger.debug(f"SQLite store hit: {key}")
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            raise StoreError("sqlite", f"Corrupt value for {key}") from e

    async def set_item(self, key: str, value: Any) -> bool:
        """Store a value in SQLite.

        Args:
            key: Store key
            value: JSON-serializable value

        Returns:
            True once the write is committed
        """
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StoreError("sqlite", f"Value for {key} is not serializable: {e}") from e

        conn = await self._get_conn()
        try:
            await conn.execute(
                "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
                (key, payload, datetime.now(timezone.utc).isoformat()),
            )
            await conn.commit()
        except aiosqlite.Error as e:
            raise StoreError("sqlite", f"Failed to write {key}: {e}") from e
        logger.debug(f"SQLite store set: {key}")
        return True

    async def remove_item(self, key: str) -> bool:
        """Remove a value from SQLite.

        Args:
            key: Store key

        Returns:
            True once the delete is committed, whether or not the key existed
        """
        conn = await self._get_conn()
        try:
            await conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            await conn.commit()
        except aiosqlite.Error as e:
            raise StoreError("sqlite", f"Failed to remove {key}: {e}") from e
        logger.debug(f"SQLite store removed: {key}")
        return True


__all__ = [
    "StoreError",
    "KeyValueStore",
    "MemoryStore",
    "SQLiteStore",
]
