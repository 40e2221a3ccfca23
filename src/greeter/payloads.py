"""Stream payloads exchanged with websocket clients.

Outbound payloads are tagged dataclasses encoded as one JSON object per
message. Inbound frames are wrapped as ``TextMessage`` or
``BinaryMessage``; the greeter never inspects their content.
"""

from __future__ import annotations

import json
from dataclasses import dataclass


WELCOME_TEXT = "Welcome!"


@dataclass(frozen=True)
class Welcome:
    """Sent once to a connection when it is accepted."""

    text: str = WELCOME_TEXT


@dataclass(frozen=True)
class UserCount:
    """Number of connected observers."""

    users: int


@dataclass(frozen=True)
class Hello:
    """A composed greeting such as ``"Hello, World!"``."""

    text: str


@dataclass(frozen=True)
class Acknowledged:
    """Fixed reply to any inbound message in the plain protocol."""


@dataclass(frozen=True)
class GreetingChanged:
    """The greeting template after a write, in the plain protocol."""

    greeting: str


type OutboundPayload = Welcome | UserCount | Hello | Acknowledged | GreetingChanged


@dataclass(frozen=True)
class TextMessage:
    data: str


@dataclass(frozen=True)
class BinaryMessage:
    data: bytes


type InboundPayload = TextMessage | BinaryMessage


def encode(payload: OutboundPayload) -> str:
    """Encode an outbound payload as a JSON object.

    Examples
    --------
    >>> encode(UserCount(3))
    '{"users": 3}'
    >>> encode(Acknowledged())
    '{"hello": "world"}'
    """
    match payload:
        case Welcome(text=text):
            body: dict[str, object] = {"welcome": text}
        case UserCount(users=users):
            body = {"users": users}
        case Hello(text=text):
            body = {"hello": text}
        case Acknowledged():
            body = {"hello": "world"}
        case GreetingChanged(greeting=greeting):
            body = {"greeting": greeting}
        case _:
            msg = f"Cannot encode payload: {payload!r}"
            raise TypeError(msg)
    return json.dumps(body)


def decode(raw: str | bytes) -> OutboundPayload:
    """Decode a JSON object produced by :func:`encode`.

    Used by clients of the stream. ``{"hello": "world"}`` always decodes to
    ``Hello("world")`` since both protocols send the same bytes for it.

    Raises
    ------
    ValueError
        If the object does not match any known payload.
    """
    body = json.loads(raw)
    if not isinstance(body, dict) or len(body) != 1:
        msg = f"Expected a single-key JSON object, got {raw!r}"
        raise ValueError(msg)

    match body:
        case {"welcome": str(text)}:
            return Welcome(text)
        case {"users": int(users)}:
            return UserCount(users)
        case {"hello": str(text)}:
            return Hello(text)
        case {"greeting": str(greeting)}:
            return GreetingChanged(greeting)
        case _:
            msg = f"Unknown payload: {raw!r}"
            raise ValueError(msg)
