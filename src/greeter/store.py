"""Durable key-value state for the greeter actor.

Provides the ``StateStore`` protocol, an ``InMemoryStore`` for tests and
development, and a ``SqliteStore`` that survives process restarts.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol, TYPE_CHECKING

import msgpack

from greeter.errors import StoreUnavailableError

if TYPE_CHECKING:
    from greeter.config import StoreConfig

log = logging.getLogger(__name__)


class StateStore(Protocol):
    """Protocol for the actor's durable state.

    ``put`` must not return before the value is durable. Both operations
    raise ``StoreUnavailableError`` when the medium cannot serve them.

    Examples
    --------
    >>> store: StateStore = InMemoryStore()
    >>> await store.put("greeting", "Hi")
    >>> await store.get("greeting")
    'Hi'
    """

    async def get(self, key: str) -> str | None:
        """Return the value stored under ``key``, or ``None`` when absent."""
        ...

    async def put(self, key: str, value: str) -> None:
        """Durably store ``value`` under ``key``."""
        ...


class InMemoryStore:
    """Dictionary-backed store. Data is lost when the process exits.

    Shared between actor incarnations within one process, which is enough
    to observe state surviving an actor restart in tests.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def put(self, key: str, value: str) -> None:
        self._data[key] = value

    def close(self) -> None:
        pass


class SqliteStore:
    """SQLite-backed store for durable persistence.

    Uses stdlib ``sqlite3`` in WAL mode with ``asyncio.to_thread`` for
    non-blocking I/O. A ``threading.Lock`` serializes access to the shared
    connection. Values are packed with msgpack. Rows are partitioned by
    ``namespace`` so several actor names can share one file.

    Parameters
    ----------
    path : str | Path
        Database file, or ``":memory:"``.
    namespace : str
        Partition for this store's keys, normally the actor name.
    serialize, deserialize : Callable
        Value codec. Defaults to ``msgpack.packb`` / ``msgpack.unpackb``.

    Examples
    --------
    >>> store = SqliteStore("greeter.db", namespace="foo")
    >>> await store.put("name", "Sam")
    >>> await store.get("name")
    'Sam'
    """

    def __init__(
        self,
        path: str | Path = ":memory:",
        *,
        namespace: str = "default",
        serialize: Callable[[Any], bytes] = msgpack.packb,
        deserialize: Callable[[bytes], Any] = msgpack.unpackb,
    ) -> None:
        self._namespace = namespace
        self._serialize = serialize
        self._deserialize = deserialize
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(str(path), check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS state (
                    namespace   TEXT NOT NULL,
                    key         TEXT NOT NULL,
                    value       BLOB NOT NULL,
                    PRIMARY KEY (namespace, key)
                )
                """
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Cannot open state store at {path}: {exc}") from exc

    @property
    def namespace(self) -> str:
        return self._namespace

    async def get(self, key: str) -> str | None:
        return await asyncio.to_thread(self._get_sync, key)

    def _get_sync(self, key: str) -> str | None:
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT value FROM state WHERE namespace = ? AND key = ?",
                    (self._namespace, key),
                ).fetchone()
            except sqlite3.Error as exc:
                raise StoreUnavailableError(f"Failed to read {key!r}: {exc}") from exc
        if row is None:
            return None
        return self._deserialize(row[0])

    async def put(self, key: str, value: str) -> None:
        data = self._serialize(value)
        await asyncio.to_thread(self._put_sync, key, data)

    def _put_sync(self, key: str, data: bytes) -> None:
        with self._lock:
            try:
                self._conn.execute(
                    "INSERT INTO state (namespace, key, value) VALUES (?, ?, ?) "
                    "ON CONFLICT (namespace, key) DO UPDATE SET value = excluded.value",
                    (self._namespace, key, data),
                )
                self._conn.commit()
            except sqlite3.Error as exc:
                raise StoreUnavailableError(f"Failed to write {key!r}: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def open_store(config: StoreConfig, namespace: str) -> InMemoryStore | SqliteStore:
    """Build the store described by ``config`` for one actor name."""
    match config.backend:
        case "memory":
            return InMemoryStore()
        case "sqlite":
            log.info(
                "Opening sqlite store",
                extra={"fields": {"path": str(config.path), "namespace": namespace}},
            )
            return SqliteStore(config.path, namespace=namespace)
        case other:
            msg = f"Unknown store backend: {other!r}"
            raise ValueError(msg)
