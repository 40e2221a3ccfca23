"""Live stream connections and the registry that tracks them.

A ``Connection`` wraps whatever transport carries the stream behind the
small ``StreamTransport`` protocol. The registry is plain in-memory state
owned by exactly one greeter actor and rebuilt empty on every restart.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol
from uuid import uuid4

from greeter.payloads import OutboundPayload, encode

NORMAL_CLOSURE = 1000
GOING_AWAY = 1001

# Reserved codes that must never appear in a close frame.
_UNSENDABLE_CLOSE_CODES = frozenset({1004, 1005, 1006, 1015})


class StreamTransport(Protocol):
    """The slice of a websocket the greeter needs."""

    @property
    def closed(self) -> bool: ...

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int, reason: str) -> None: ...


def sendable_close_code(code: int | None) -> int:
    """Map a received close code to one that may be sent back."""
    if code is None or code in _UNSENDABLE_CLOSE_CODES:
        return NORMAL_CLOSURE
    if 1000 <= code <= 1014 or 3000 <= code <= 4999:
        return code
    return NORMAL_CLOSURE


class Connection:
    """Handle to one open bidirectional stream.

    Two connections are never equal, even when they come from the same
    caller.
    """

    __slots__ = ("_id", "_transport")

    def __init__(self, transport: StreamTransport) -> None:
        self._id = uuid4().hex[:8]
        self._transport = transport

    @property
    def id(self) -> str:
        return self._id

    @property
    def closed(self) -> bool:
        return self._transport.closed

    async def send(self, payload: OutboundPayload) -> None:
        await self._transport.send_text(encode(payload))

    async def close(self, code: int | None = NORMAL_CLOSURE, reason: str = "") -> None:
        """Close the underlying transport. Closing twice is a no-op."""
        if self._transport.closed:
            return
        await self._transport.close(sendable_close_code(code), reason)

    def __repr__(self) -> str:
        return f"Connection({self._id})"


class ConnectionRegistry:
    """The set of connections currently attached to one actor instance."""

    def __init__(self) -> None:
        self._members: dict[str, Connection] = {}

    def add(self, connection: Connection) -> None:
        self._members[connection.id] = connection

    def discard(self, connection: Connection) -> bool:
        """Remove ``connection``; return whether it was a member."""
        return self._members.pop(connection.id, None) is not None

    def snapshot(self) -> tuple[Connection, ...]:
        """Copy of the members, safe to iterate while the registry changes."""
        return tuple(self._members.values())

    def __contains__(self, connection: object) -> bool:
        return isinstance(connection, Connection) and connection.id in self._members

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[Connection]:
        return iter(self.snapshot())
