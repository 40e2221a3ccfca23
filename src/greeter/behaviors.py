"""High-level behavior factories built on the Behavior primitive.

Every factory here composes ``Behavior.receive``, ``Behavior.setup``,
and the signal behaviors. Nothing else.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TYPE_CHECKING

from greeter.core.behavior import Behavior

if TYPE_CHECKING:
    from greeter.core.context import ActorContext


class Behaviors:
    """Factory for composing behaviors from the Behavior primitive."""

    @staticmethod
    def receive[M](
        handler: Callable[[ActorContext[M], M], Awaitable[Behavior[M]]],
    ) -> Behavior[M]:
        return Behavior.receive(handler)

    @staticmethod
    def setup[M](
        factory: Callable[[ActorContext[M]], Awaitable[Behavior[M]]],
    ) -> Behavior[M]:
        return Behavior.setup(factory)

    @staticmethod
    def same() -> Behavior[Any]:
        return Behavior.same()

    @staticmethod
    def ignore[M]() -> Behavior[M]:
        async def receive(ctx: ActorContext[M], msg: M) -> Behavior[M]:
            return Behavior.same()

        return Behavior.receive(receive)

    @staticmethod
    def stopped() -> Behavior[Any]:
        return Behavior.stopped()

    @staticmethod
    def unhandled() -> Behavior[Any]:
        return Behavior.unhandled()
