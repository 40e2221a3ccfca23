"""Timer-queue actor for delayed one-shot messages.

Provides ``ScheduleOnce`` and ``CancelSchedule`` plus the ``scheduler()``
behavior factory. Pending timers are cancelled when the scheduler stops,
so an actor that owns a scheduler as a child never receives a timer
message after it has been torn down.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

from greeter.behaviors import Behaviors

if TYPE_CHECKING:
    from greeter.core.behavior import Behavior
    from greeter.core.context import ActorContext
    from greeter.core.ref import ActorRef


@dataclass(frozen=True)
class ScheduleOnce:
    """Schedule a message to be sent once after a delay.

    A new schedule under an existing key replaces the pending one.
    """

    key: str
    target: ActorRef[Any]
    message: Any
    delay: float


@dataclass(frozen=True)
class CancelSchedule:
    """Cancel a previously registered schedule by key."""

    key: str


type SchedulerMsg = ScheduleOnce | CancelSchedule


def scheduler() -> Behavior[SchedulerMsg]:
    """Create a scheduler actor behavior."""

    async def setup(ctx: ActorContext[SchedulerMsg]) -> Behavior[SchedulerMsg]:
        running: dict[str, asyncio.Task[None]] = {}

        async def cancel_all() -> None:
            tasks = list(running.values())
            running.clear()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        ctx.on_stop(cancel_all)

        async def receive(
            ctx: ActorContext[SchedulerMsg], msg: SchedulerMsg
        ) -> Behavior[SchedulerMsg]:
            match msg:
                case ScheduleOnce(key=key, target=target, message=message, delay=delay):
                    if key in running:
                        running[key].cancel()

                    async def once(
                        k: str = key, t: ActorRef[Any] = target, m: Any = message, d: float = delay
                    ) -> None:
                        try:
                            await asyncio.sleep(d)
                        except asyncio.CancelledError:
                            return
                        if running.get(k) is asyncio.current_task():
                            del running[k]
                        t.tell(m)

                    running[key] = asyncio.get_running_loop().create_task(once())
                    return Behaviors.same()

                case CancelSchedule(key=key):
                    task = running.pop(key, None)
                    if task is not None:
                        task.cancel()
                    return Behaviors.same()

            return Behaviors.unhandled()

        return Behaviors.receive(receive)

    return Behaviors.setup(setup)
