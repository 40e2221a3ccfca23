"""The greeter actor: durable name/greeting state fanned out to live streams.

One instance owns the ``ConnectionRegistry`` and is the only writer of the
``name`` and ``greeting`` keys in its ``StateStore``. Every operation,
whether it arrives as a request or as a stream event, is a message handled
to completion before the next one is taken, so a write is always durable
before its broadcast goes out and broadcasts never interleave.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass
from typing import TYPE_CHECKING

from greeter.behaviors import Behaviors
from greeter.config import Variant
from greeter.connection import GOING_AWAY, Connection, ConnectionRegistry
from greeter.core.scheduler import ScheduleOnce, scheduler
from greeter.errors import GreeterError, UnsupportedOperationError
from greeter.payloads import (
    Acknowledged,
    GreetingChanged,
    Hello,
    InboundPayload,
    OutboundPayload,
    UserCount,
    Welcome,
)

if TYPE_CHECKING:
    from greeter.core.behavior import Behavior
    from greeter.core.context import ActorContext
    from greeter.core.ref import ActorRef
    from greeter.store import StateStore


NAME_KEY = "name"
GREETING_KEY = "greeting"
DEFAULT_NAME = "World"
DEFAULT_GREETING = "Hello"

CLOSE_REASON = "Greeter is closing the stream"
SEND_FAILED_CODE = 1011


# --- replies ---


@dataclass(frozen=True)
class Ack:
    """Positive reply to a write or an accept."""


@dataclass(frozen=True)
class OperationFailed:
    """Negative reply carrying the error that stopped the operation.

    Parameters
    ----------
    error : GreeterError
        The failure, re-raised on the caller's side.
    """

    error: GreeterError


# --- requests ---


@dataclass(frozen=True)
class GetGreeting:
    reply_to: ActorRef[str | OperationFailed]


@dataclass(frozen=True)
class GetName:
    reply_to: ActorRef[str | OperationFailed]


@dataclass(frozen=True)
class SetGreeting:
    """Persist a new greeting, then broadcast it to every stream."""

    value: str
    reply_to: ActorRef[Ack | OperationFailed]


@dataclass(frozen=True)
class SetName:
    """Persist a new name, then broadcast the composed greeting."""

    value: str
    reply_to: ActorRef[Ack | OperationFailed]


@dataclass(frozen=True)
class ComposeGreeting:
    """Build ``"<greeting>, <name>!"``.

    Parameters
    ----------
    name : str | None
        Name to greet. When empty or ``None`` the presence protocol uses
        the persisted name; the plain protocol rejects the request.
    reply_to : ActorRef[str | OperationFailed]
        Where to send the composed greeting.
    """

    name: str | None
    reply_to: ActorRef[str | OperationFailed]


@dataclass(frozen=True)
class GetConnectionCount:
    reply_to: ActorRef[int]


# --- stream lifecycle ---


@dataclass(frozen=True)
class AcceptConnection:
    """Register a freshly opened stream."""

    connection: Connection
    reply_to: ActorRef[Ack]


@dataclass(frozen=True)
class StreamMessage:
    connection: Connection
    payload: InboundPayload


@dataclass(frozen=True)
class StreamClosed:
    """The peer closed the stream, or the transport reported it gone.

    Parameters
    ----------
    connection : Connection
        The stream that closed.
    code : int | None
        Close code received from the peer, if any.
    reason : str
        Close reason received from the peer.
    was_clean : bool
        Whether the closing handshake completed.
    """

    connection: Connection
    code: int | None
    reason: str
    was_clean: bool


# --- broadcasts ---


@dataclass(frozen=True)
class BroadcastConnectionCount:
    """Send ``len(registry) + delta`` to every stream."""

    delta: int = 0


@dataclass(frozen=True)
class BroadcastGreeting:
    """Send the current greeting to every stream."""


type GreeterMsg = (
    GetGreeting
    | GetName
    | SetGreeting
    | SetName
    | ComposeGreeting
    | GetConnectionCount
    | AcceptConnection
    | StreamMessage
    | StreamClosed
    | BroadcastConnectionCount
    | BroadcastGreeting
)


def compose(greeting: str, name: str) -> str:
    """Format a greeting for a name.

    Examples
    --------
    >>> compose("Hi", "Sam")
    'Hi, Sam!'
    """
    return f"{greeting}, {name}!"


def greeter_actor(
    store: StateStore,
    *,
    variant: Variant = Variant.presence,
    recount_delay: float = 0.5,
    send_timeout: float = 2.0,
) -> Behavior[GreeterMsg]:
    """Create the greeter behavior.

    Parameters
    ----------
    store : StateStore
        Durable store holding ``name`` and ``greeting``. It outlives the
        actor; connections do not.
    variant : Variant
        Stream protocol spoken to connected clients.
    recount_delay : float
        Seconds to wait after a stream closes before the connection count
        is rebroadcast (presence protocol only).
    send_timeout : float
        Upper bound on a single send. A connection that fails or times out
        is evicted and closed.

    Returns
    -------
    Behavior[GreeterMsg]
        The greeter behavior ready to be spawned.

    Examples
    --------
    >>> ref = system.spawn(greeter_actor(InMemoryStore()), "foo")
    >>> await system.ask(ref, lambda r: SetGreeting("Hi", reply_to=r), timeout=5.0)
    Ack()
    """
    presence = variant is Variant.presence

    async def read(key: str, default: str) -> str:
        value = await store.get(key)
        return default if value is None else value

    async def composed(name: str | None = None) -> str:
        greeting = await read(GREETING_KEY, DEFAULT_GREETING)
        if not name:
            name = await read(NAME_KEY, DEFAULT_NAME)
        return compose(greeting, name)

    async def setup(ctx: ActorContext[GreeterMsg]) -> Behavior[GreeterMsg]:
        registry = ConnectionRegistry()
        timers = ctx.spawn(scheduler(), "timers")
        recounts = itertools.count(1)

        async def close_all() -> None:
            members = registry.snapshot()
            for conn in members:
                registry.discard(conn)
            if members:
                ctx.log.info(
                    "Closing streams",
                    extra={"fields": {"connections": len(members)}},
                )
            await asyncio.gather(
                *(close_quietly(conn, GOING_AWAY, "Going away") for conn in members)
            )

        ctx.on_stop(close_all)

        def schedule_recount() -> None:
            timers.tell(
                ScheduleOnce(
                    key=f"recount-{next(recounts)}",
                    target=ctx.self,
                    message=BroadcastConnectionCount(),
                    delay=recount_delay,
                )
            )

        async def close_quietly(conn: Connection, code: int | None, reason: str) -> None:
            try:
                await conn.close(code, reason)
            except (ConnectionError, RuntimeError) as exc:
                ctx.log.debug("Close of %s failed: %s", conn, exc)

        async def send(conn: Connection, payload: OutboundPayload) -> bool:
            try:
                await asyncio.wait_for(conn.send(payload), timeout=send_timeout)
            except (TimeoutError, ConnectionError, RuntimeError) as exc:
                ctx.log.warning(
                    "Send failed, evicting connection",
                    extra={
                        "fields": {
                            "connection": conn.id,
                            "payload": type(payload).__name__,
                            "error": repr(exc),
                        }
                    },
                )
                return False
            return True

        async def evict(conn: Connection) -> None:
            if not registry.discard(conn):
                return
            await close_quietly(conn, SEND_FAILED_CODE, "Send failed")
            if presence:
                schedule_recount()

        async def send_one(conn: Connection, payload: OutboundPayload) -> None:
            if not await send(conn, payload):
                await evict(conn)

        async def broadcast(payload: OutboundPayload) -> None:
            members = registry.snapshot()
            if not members:
                return
            delivered = await asyncio.gather(*(send(conn, payload) for conn in members))
            for conn, ok in zip(members, delivered):
                if not ok:
                    await evict(conn)

        async def broadcast_greeting(greeting: str | None = None) -> None:
            if presence:
                await broadcast(Hello(await composed()))
            else:
                if greeting is None:
                    greeting = await read(GREETING_KEY, DEFAULT_GREETING)
                await broadcast(GreetingChanged(greeting))

        async def write(
            key: str, value: str, reply_to: ActorRef[Ack | OperationFailed]
        ) -> None:
            try:
                await store.put(key, value)
            except GreeterError as exc:
                ctx.log.error(
                    "Write failed, nothing broadcast",
                    extra={"fields": {"key": key, "error": str(exc)}},
                )
                reply_to.tell(OperationFailed(exc))
                return
            ctx.log.info("State updated", extra={"fields": {"key": key}})
            # Ack once durable, before any stream can stall the broadcast.
            reply_to.tell(Ack())
            try:
                await broadcast_greeting(value if key == GREETING_KEY else None)
            except GreeterError as exc:
                ctx.log.warning("Broadcast after write skipped: %s", exc)

        async def receive(
            ctx: ActorContext[GreeterMsg], msg: GreeterMsg
        ) -> Behavior[GreeterMsg]:
            match msg:
                case GetGreeting(reply_to=reply_to):
                    try:
                        reply_to.tell(await read(GREETING_KEY, DEFAULT_GREETING))
                    except GreeterError as exc:
                        reply_to.tell(OperationFailed(exc))
                    return Behaviors.same()

                case GetName(reply_to=reply_to):
                    if not presence:
                        reply_to.tell(
                            OperationFailed(UnsupportedOperationError("Names are not stored"))
                        )
                        return Behaviors.same()
                    try:
                        reply_to.tell(await read(NAME_KEY, DEFAULT_NAME))
                    except GreeterError as exc:
                        reply_to.tell(OperationFailed(exc))
                    return Behaviors.same()

                case SetGreeting(value=value, reply_to=reply_to):
                    await write(GREETING_KEY, value, reply_to)
                    return Behaviors.same()

                case SetName(value=value, reply_to=reply_to):
                    if not presence:
                        reply_to.tell(
                            OperationFailed(UnsupportedOperationError("Names are not stored"))
                        )
                        return Behaviors.same()
                    await write(NAME_KEY, value, reply_to)
                    return Behaviors.same()

                case ComposeGreeting(name=name, reply_to=reply_to):
                    if not name and not presence:
                        reply_to.tell(
                            OperationFailed(UnsupportedOperationError("A name is required"))
                        )
                        return Behaviors.same()
                    try:
                        reply_to.tell(await composed(name))
                    except GreeterError as exc:
                        reply_to.tell(OperationFailed(exc))
                    return Behaviors.same()

                case GetConnectionCount(reply_to=reply_to):
                    reply_to.tell(len(registry))
                    return Behaviors.same()

                case AcceptConnection(connection=conn, reply_to=reply_to):
                    registry.add(conn)
                    ctx.log.info(
                        "Stream accepted",
                        extra={"fields": {"connection": conn.id, "connections": len(registry)}},
                    )
                    if presence:
                        await send_one(conn, Welcome())
                    reply_to.tell(Ack())
                    return Behaviors.same()

                case StreamMessage(connection=conn):
                    if conn not in registry:
                        ctx.log.debug("Message from unregistered %s ignored", conn)
                        return Behaviors.same()
                    if not presence:
                        await send_one(conn, Acknowledged())
                        return Behaviors.same()
                    await broadcast(UserCount(len(registry)))
                    if conn not in registry:
                        return Behaviors.same()
                    try:
                        hello = await composed()
                    except GreeterError as exc:
                        ctx.log.warning("Reply to %s skipped: %s", conn, exc)
                        return Behaviors.same()
                    await send_one(conn, Hello(hello))
                    return Behaviors.same()

                case StreamClosed(connection=conn, code=code, reason=reason, was_clean=was_clean):
                    if not registry.discard(conn):
                        return Behaviors.same()
                    ctx.log.info(
                        "Stream closed",
                        extra={
                            "fields": {
                                "connection": conn.id,
                                "code": code,
                                "reason": reason,
                                "clean": was_clean,
                            }
                        },
                    )
                    await close_quietly(conn, code, CLOSE_REASON)
                    if presence:
                        schedule_recount()
                    return Behaviors.same()

                case BroadcastConnectionCount(delta=delta):
                    await broadcast(UserCount(len(registry) + delta))
                    return Behaviors.same()

                case BroadcastGreeting():
                    try:
                        await broadcast_greeting()
                    except GreeterError as exc:
                        ctx.log.warning("Greeting broadcast skipped: %s", exc)
                    return Behaviors.same()

                case _:
                    return Behaviors.unhandled()

        return Behaviors.receive(receive)

    return Behaviors.setup(setup)


def reply_value[T](reply: T | OperationFailed) -> T:
    """Unwrap a reply, raising the carried error for ``OperationFailed``."""
    if isinstance(reply, OperationFailed):
        raise reply.error
    return reply
