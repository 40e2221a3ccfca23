from __future__ import annotations

import sqlite3
from pathlib import Path

import msgpack
import pytest

from greeter.config import StoreConfig
from greeter.errors import StoreUnavailableError
from greeter.store import InMemoryStore, SqliteStore, open_store


async def test_in_memory_get_absent_returns_none() -> None:
    store = InMemoryStore()
    assert await store.get("greeting") is None


async def test_in_memory_put_then_get() -> None:
    store = InMemoryStore({"name": "Sam"})
    await store.put("greeting", "Hi")
    assert await store.get("greeting") == "Hi"
    assert await store.get("name") == "Sam"


async def test_sqlite_put_then_get() -> None:
    store = SqliteStore()
    await store.put("greeting", "Hi")
    assert await store.get("greeting") == "Hi"
    assert await store.get("name") is None
    store.close()


async def test_sqlite_overwrites_value() -> None:
    store = SqliteStore()
    await store.put("greeting", "Hi")
    await store.put("greeting", "")
    assert await store.get("greeting") == ""
    store.close()


async def test_sqlite_survives_reopen(tmp_path: Path) -> None:
    path = tmp_path / "greeter.db"
    store = SqliteStore(path, namespace="foo")
    await store.put("name", "Sam")
    store.close()

    reopened = SqliteStore(path, namespace="foo")
    assert await reopened.get("name") == "Sam"
    reopened.close()


async def test_sqlite_namespaces_are_isolated(tmp_path: Path) -> None:
    path = tmp_path / "greeter.db"
    foo = SqliteStore(path, namespace="foo")
    bar = SqliteStore(path, namespace="bar")
    await foo.put("greeting", "Hi")

    assert await bar.get("greeting") is None
    assert foo.namespace == "foo"
    foo.close()
    bar.close()


async def test_sqlite_stores_msgpack_values(tmp_path: Path) -> None:
    path = tmp_path / "greeter.db"
    store = SqliteStore(path, namespace="foo")
    await store.put("greeting", "Hi")
    store.close()

    conn = sqlite3.connect(str(path))
    (raw,) = conn.execute("SELECT value FROM state WHERE key = 'greeting'").fetchone()
    conn.close()
    assert msgpack.unpackb(raw) == "Hi"


async def test_sqlite_failure_raises_store_unavailable() -> None:
    store = SqliteStore()
    store.close()
    with pytest.raises(StoreUnavailableError):
        await store.put("greeting", "Hi")
    with pytest.raises(StoreUnavailableError):
        await store.get("greeting")


def test_sqlite_unopenable_path_raises(tmp_path: Path) -> None:
    with pytest.raises(StoreUnavailableError):
        SqliteStore(tmp_path / "missing" / "greeter.db")


def test_open_store_memory() -> None:
    assert isinstance(open_store(StoreConfig(backend="memory"), "foo"), InMemoryStore)


def test_open_store_sqlite(tmp_path: Path) -> None:
    store = open_store(StoreConfig(backend="sqlite", path=tmp_path / "g.db"), "foo")
    assert isinstance(store, SqliteStore)
    assert store.namespace == "foo"
    store.close()


def test_open_store_unknown_backend() -> None:
    with pytest.raises(ValueError):
        open_store(StoreConfig(backend="redis"), "foo")  # type: ignore[arg-type]
