"""Actor context protocol for the Behavior primitive.

Defines the capabilities available inside a behavior handler: own ref,
child spawning, logging and stop callbacks. Also defines ``System``, the
protocol for the actor system visible from behaviors.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from greeter.core.behavior import Behavior
    from greeter.core.mailbox import Mailbox
    from greeter.core.ref import ActorRef


class System(Protocol):
    """Protocol exposing the actor system's public API to behaviors."""

    @property
    def name(self) -> str: ...

    def spawn[M](
        self,
        behavior: Behavior[M],
        name: str,
        *,
        mailbox: Mailbox[M] | None = None,
    ) -> ActorRef[M]: ...

    async def ask[M, R](
        self,
        ref: ActorRef[M],
        msg_factory: Callable[[ActorRef[R]], M],
        *,
        timeout: float,
    ) -> R: ...

    def lookup(self, path: str) -> ActorRef[Any] | None: ...

    async def stop(self, name: str) -> bool: ...

    async def shutdown(self) -> None: ...


class ActorContext[M](Protocol):
    """Protocol for the context available to actor behavior handlers."""

    @property
    def self(self) -> ActorRef[M]: ...

    @property
    def system(self) -> System: ...

    @property
    def log(self) -> logging.Logger: ...

    def spawn[C](
        self,
        behavior: Behavior[C],
        name: str,
        *,
        mailbox: Mailbox[C] | None = None,
    ) -> ActorRef[C]: ...

    def stop(self, ref: ActorRef[Any]) -> None: ...

    def on_stop(self, callback: Callable[[], Awaitable[None]]) -> None: ...
