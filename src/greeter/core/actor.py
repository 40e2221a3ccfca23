"""ActorCell built on the Behavior primitive.

Owns the mailbox, runs the message loop, manages children. One message is
handled at a time and the handler's awaits complete before the next
message is taken, which is what keeps an actor's state free of locks.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, TYPE_CHECKING

from greeter.core.behavior import Behavior, Signal
from greeter.core.mailbox import Mailbox
from greeter.core.ref import ActorId, ActorRef, LocalActorRef

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from greeter.core.context import System


class CellContext[M]:
    """Concrete ActorContext implementation backed by an ActorCell."""

    def __init__(self, cell: ActorCell[M]) -> None:
        self._cell = cell

    @property
    def self(self) -> ActorRef[M]:
        return self._cell.ref

    @property
    def system(self) -> System:
        if self._cell.system is None:
            msg = "No system available in this context"
            raise RuntimeError(msg)
        return self._cell.system

    @property
    def log(self) -> logging.Logger:
        return self._cell.logger

    def spawn[C](
        self,
        behavior: Behavior[C],
        name: str,
        *,
        mailbox: Mailbox[C] | None = None,
    ) -> ActorRef[C]:
        child_id = f"{self._cell.id}/{name}"
        child: ActorCell[C] = ActorCell(
            behavior=behavior,
            id=child_id,
            parent=self._cell,
            system=self._cell.system,
        )
        if mailbox is not None:
            child.mailbox = mailbox
        self._cell.children[name] = child
        asyncio.get_running_loop().create_task(child.start())
        return child.ref

    def stop(self, ref: ActorRef[Any]) -> None:
        for child in self._cell.children.values():
            if child.ref.id == ref.id:
                asyncio.get_running_loop().create_task(child.stop())
                return

    def on_stop(self, callback: Callable[[], Awaitable[None]]) -> None:
        self._cell.add_stop_callback(callback)


class ActorCell[M]:
    """Runtime engine for one actor.

    Runs the message loop and tears the actor down on stop or failure.
    Stop callbacks run first, then children are stopped, then the
    ``on_terminated`` hook tells the owner the name is free again.
    """

    def __init__(
        self,
        behavior: Behavior[M],
        id: ActorId,
        parent: ActorCell[Any] | None = None,
        system: System | None = None,
        on_terminated: Callable[[ActorCell[Any]], None] | None = None,
    ) -> None:
        self._initial_behavior = behavior
        self._id = id
        self._parent = parent
        self._system = system
        self._on_terminated = on_terminated
        self._mailbox: Mailbox[Any] = Mailbox()
        self._logger = logging.getLogger(f"greeter.actor.{id}")

        self._stopped = False
        self._children: dict[str, ActorCell[Any]] = {}
        self._stop_callbacks: list[Callable[[], Awaitable[None]]] = []
        self._current_handler: Callable[..., Awaitable[Behavior[M]]] | None = None
        self._loop_task: asyncio.Task[None] | None = None

        self._ctx: CellContext[M] = CellContext(self)
        self._ref: ActorRef[M] = LocalActorRef(id=id, _deliver=self._deliver)

    @property
    def id(self) -> ActorId:
        return self._id

    @property
    def ref(self) -> ActorRef[M]:
        return self._ref

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @property
    def children(self) -> dict[str, ActorCell[Any]]:
        return self._children

    @property
    def parent(self) -> ActorCell[Any] | None:
        return self._parent

    @property
    def system(self) -> System | None:
        return self._system

    @property
    def mailbox(self) -> Mailbox[Any]:
        return self._mailbox

    @mailbox.setter
    def mailbox(self, value: Mailbox[Any]) -> None:
        self._mailbox = value

    def add_stop_callback(self, callback: Callable[[], Awaitable[None]]) -> None:
        self._stop_callbacks.append(callback)

    def _deliver(self, msg: M) -> None:
        if self._stopped:
            self._logger.debug(
                "Dead letter",
                extra={"fields": {"msg_type": type(msg).__name__}},
            )
            return
        try:
            dropped = self._mailbox.put(msg)
        except asyncio.QueueFull:
            self._logger.warning(
                "Mailbox full, message rejected",
                extra={"fields": {"msg_type": type(msg).__name__}},
            )
            return
        if dropped is not None:
            self._logger.warning(
                "Mailbox full, message dropped",
                extra={"fields": {"msg_type": type(dropped).__name__}},
            )

    async def start(self) -> None:
        try:
            await self._initialize(self._initial_behavior)
        except Exception:
            self._logger.exception("Actor %s failed during setup", self._id)
            await self._do_stop()
            return
        self._loop_task = asyncio.get_running_loop().create_task(self._run_loop())
        self._logger.debug("Started")

    async def _initialize(self, behavior: Behavior[M]) -> None:
        match (behavior.on_setup, behavior.on_receive, behavior.signal):
            case (factory, None, None) if factory is not None:
                result = await factory(self._ctx)
                await self._initialize(result)
            case (None, handler, None) if handler is not None:
                self._current_handler = handler
            case _:
                msg = f"Cannot initialize with behavior: {behavior}"
                raise TypeError(msg)

    async def _run_loop(self) -> None:
        while not self._stopped:
            try:
                msg = await self._mailbox.get()
                if self._stopped:
                    break

                if self._current_handler is None:
                    continue

                try:
                    next_behavior = await self._current_handler(self._ctx, msg)
                except Exception:
                    self._logger.exception("Actor %s failed", self._id)
                    await self._do_stop()
                    break

                await self._apply(next_behavior)

            except asyncio.CancelledError:
                break

    async def _apply(self, behavior: Behavior[M]) -> None:
        match behavior.signal:
            case Signal.same:
                pass
            case Signal.stopped:
                await self._do_stop()
            case Signal.unhandled:
                self._logger.debug("Unhandled message")
            case None:
                if behavior.on_receive is not None:
                    self._current_handler = behavior.on_receive
                elif behavior.on_setup is not None:
                    await self._initialize(behavior)

    async def _do_stop(self) -> None:
        if self._stopped:
            return

        self._stopped = True
        self._logger.debug("Stopping")

        for callback in reversed(self._stop_callbacks):
            try:
                await callback()
            except Exception:
                self._logger.exception("Error in stop callback")

        for child in list(self._children.values()):
            try:
                await child.stop()
            except Exception:
                self._logger.exception("Error stopping child %s", child.id)

        if self._on_terminated is not None:
            self._on_terminated(self)

    async def stop(self) -> None:
        if self._stopped:
            return

        await self._do_stop()

        if (
            self._loop_task is not None
            and not self._loop_task.done()
            and self._loop_task is not asyncio.current_task()
        ):
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
