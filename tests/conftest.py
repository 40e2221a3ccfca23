"""Shared fixtures: fake stream transports and a store that can be made to fail."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from greeter.connection import Connection
from greeter.errors import StoreUnavailableError
from greeter.payloads import OutboundPayload, decode
from greeter.store import InMemoryStore


class FakeTransport:
    """Records what the greeter sends and how it closes the stream."""

    def __init__(
        self, *, fail: bool = False, delay: float = 0.0, close_delay: float = 0.0
    ) -> None:
        self.fail = fail
        self.delay = delay
        self.close_delay = close_delay
        self.sent: list[str] = []
        self.close_calls: list[tuple[int, str]] = []

    @property
    def closed(self) -> bool:
        return bool(self.close_calls)

    async def send_text(self, data: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionResetError("peer gone")
        self.sent.append(data)

    async def close(self, code: int, reason: str) -> None:
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        self.close_calls.append((code, reason))

    @property
    def payloads(self) -> list[OutboundPayload]:
        return [decode(raw) for raw in self.sent]


class FlakyStore(InMemoryStore):
    """In-memory store whose reads or writes can be switched to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_reads = False
        self.fail_writes = False

    async def get(self, key: str) -> str | None:
        if self.fail_reads:
            raise StoreUnavailableError("store offline")
        return await super().get(key)

    async def put(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise StoreUnavailableError("quota exceeded")
        await super().put(key, value)


type Connect = Callable[..., tuple[Connection, FakeTransport]]


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def connect() -> Connect:
    """Factory for a connection over a fresh ``FakeTransport``."""

    def factory(
        *, fail: bool = False, delay: float = 0.0, close_delay: float = 0.0
    ) -> tuple[Connection, FakeTransport]:
        transport = FakeTransport(fail=fail, delay=delay, close_delay=close_delay)
        return Connection(transport), transport

    return factory
