"""Name-addressed access to greeter actors.

``GreeterDirectory`` constructs the actor registered under a logical name
on first use and resumes it after it stops, whether it was passivated or
failed. The store for a name is opened once and handed to every
incarnation, so persisted state survives while connections do not.
``Greeter`` is the typed client used by the HTTP gateway.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from greeter.config import ActorConfig
from greeter.core.mailbox import Mailbox, MailboxOverflowStrategy
from greeter.greeting import (
    Ack,
    AcceptConnection,
    ComposeGreeting,
    GetConnectionCount,
    GetGreeting,
    GetName,
    GreeterMsg,
    SetGreeting,
    SetName,
    StreamClosed,
    StreamMessage,
    greeter_actor,
    reply_value,
)

if TYPE_CHECKING:
    from greeter.connection import Connection
    from greeter.core.context import System
    from greeter.core.ref import ActorRef
    from greeter.payloads import InboundPayload
    from greeter.store import StateStore

log = logging.getLogger(__name__)


class Greeter:
    """Client for one greeter actor.

    Request methods wait for the actor's reply. A failure inside the actor
    is re-raised here as the ``GreeterError`` it carried; no reply within
    ``timeout`` raises ``TimeoutError``. Stream events are fire-and-forget.

    Examples
    --------
    >>> greeter = directory.get("foo")
    >>> await greeter.set_greeting("Hi")
    >>> await greeter.compose_greeting("Sam")
    'Hi, Sam!'
    """

    def __init__(
        self, system: System, ref: ActorRef[GreeterMsg], *, timeout: float = 5.0
    ) -> None:
        self._system = system
        self._ref = ref
        self._timeout = timeout

    @property
    def ref(self) -> ActorRef[GreeterMsg]:
        return self._ref

    async def get_greeting(self) -> str:
        reply = await self._system.ask(
            self._ref, lambda r: GetGreeting(reply_to=r), timeout=self._timeout
        )
        return reply_value(reply)

    async def get_name(self) -> str:
        reply = await self._system.ask(
            self._ref, lambda r: GetName(reply_to=r), timeout=self._timeout
        )
        return reply_value(reply)

    async def set_greeting(self, value: str) -> None:
        reply = await self._system.ask(
            self._ref, lambda r: SetGreeting(value, reply_to=r), timeout=self._timeout
        )
        reply_value(reply)

    async def set_name(self, value: str) -> None:
        reply = await self._system.ask(
            self._ref, lambda r: SetName(value, reply_to=r), timeout=self._timeout
        )
        reply_value(reply)

    async def compose_greeting(self, name: str | None = None) -> str:
        reply = await self._system.ask(
            self._ref, lambda r: ComposeGreeting(name, reply_to=r), timeout=self._timeout
        )
        return reply_value(reply)

    async def accept(self, connection: Connection) -> None:
        """Register ``connection``; returns once any welcome has been sent."""
        reply: Ack = await self._system.ask(
            self._ref,
            lambda r: AcceptConnection(connection, reply_to=r),
            timeout=self._timeout,
        )
        reply_value(reply)

    async def connection_count(self) -> int:
        return await self._system.ask(
            self._ref, lambda r: GetConnectionCount(reply_to=r), timeout=self._timeout
        )

    def stream_message(self, connection: Connection, payload: InboundPayload) -> None:
        self._ref.tell(StreamMessage(connection, payload))

    def stream_closed(
        self,
        connection: Connection,
        code: int | None,
        reason: str = "",
        was_clean: bool = True,
    ) -> None:
        self._ref.tell(StreamClosed(connection, code, reason, was_clean))


class GreeterDirectory:
    """Lazily constructs or resumes greeter actors by logical name.

    Parameters
    ----------
    system : System
        Actor system the greeters are spawned into as root actors.
    store_for : Callable[[str], StateStore]
        Opens the durable store for a name. Called once per name.
    settings : ActorConfig
        Protocol variant, timing and mailbox settings for every greeter.
    """

    def __init__(
        self,
        system: System,
        *,
        store_for: Callable[[str], StateStore],
        settings: ActorConfig | None = None,
    ) -> None:
        self._system = system
        self._store_for = store_for
        self._settings = settings or ActorConfig()
        self._stores: dict[str, StateStore] = {}

    @property
    def settings(self) -> ActorConfig:
        return self._settings

    def store(self, name: str) -> StateStore:
        """Return the store for ``name``, opening it on first use."""
        store = self._stores.get(name)
        if store is None:
            store = self._store_for(name)
            self._stores[name] = store
        return store

    def get(self, name: str) -> Greeter:
        """Return a client for the live actor under ``name``, spawning it if needed."""
        ref: ActorRef[GreeterMsg] | None = self._system.lookup(name)
        if ref is None:
            ref = self._spawn(name)
        return Greeter(self._system, ref, timeout=self._settings.ask_timeout)

    def _spawn(self, name: str) -> ActorRef[GreeterMsg]:
        settings = self._settings
        behavior = greeter_actor(
            self.store(name),
            variant=settings.variant,
            recount_delay=settings.recount_delay,
            send_timeout=settings.send_timeout,
        )
        mailbox: Mailbox[GreeterMsg] = Mailbox(
            capacity=settings.mailbox.capacity,
            overflow=MailboxOverflowStrategy[settings.mailbox.strategy],
        )
        log.info(
            "Starting greeter",
            extra={"fields": {"name": name, "variant": settings.variant.value}},
        )
        return self._system.spawn(behavior, name, mailbox=mailbox)

    async def passivate(self, name: str) -> bool:
        """Stop the in-memory instance under ``name``.

        Its connections are closed as going away. Persisted state is kept
        and the next ``get`` starts a fresh instance. Returns ``False`` when
        nothing was running.
        """
        stopped = await self._system.stop(name)
        if stopped:
            log.info("Greeter passivated", extra={"fields": {"name": name}})
        return stopped

    def close(self) -> None:
        """Close every store opened by this directory."""
        for store in self._stores.values():
            close = getattr(store, "close", None)
            if close is not None:
                close()
        self._stores.clear()
