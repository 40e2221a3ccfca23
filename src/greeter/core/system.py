"""Actor system entry point for spawning and managing top-level actors.

Provides ``ActorSystem``, the runtime container that owns root actors,
handles request-reply (``ask``), path-based lookup and graceful shutdown.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, cast, TYPE_CHECKING

from greeter.core.actor import ActorCell
from greeter.core.behavior import Behavior
from greeter.core.mailbox import Mailbox
from greeter.core.ref import ActorRef, LocalActorRef

if TYPE_CHECKING:
    from greeter.core.context import System


class ActorSystem:
    """Main entry point for creating and managing actors.

    Use as an async context manager for automatic shutdown. A root actor
    that stops, on request or after a failure, releases its name so the
    same name can be spawned again.
    """

    def __init__(self, name: str = "greeter-system") -> None:
        self._name = name
        self._root_cells: dict[str, ActorCell[Any]] = {}
        self._logger = logging.getLogger(f"greeter.system.{name}")

    @property
    def name(self) -> str:
        return self._name

    async def __aenter__(self) -> ActorSystem:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.shutdown()

    def spawn[M](
        self,
        behavior: Behavior[M],
        name: str,
        *,
        mailbox: Mailbox[M] | None = None,
    ) -> ActorRef[M]:
        """Spawn a root-level actor in this system.

        A root actor that is still running its stop callbacks no longer
        owns its name; spawning under that name replaces it.
        """
        existing = self._root_cells.get(name)
        if existing is not None and not existing.is_stopped:
            raise ValueError(f"Root actor '{name}' already exists")

        cell: ActorCell[M] = ActorCell(
            behavior=behavior,
            id=name,
            system=cast("System", self),
            on_terminated=self._release,
        )
        if mailbox is not None:
            cell.mailbox = mailbox
        self._root_cells[name] = cell
        asyncio.get_running_loop().create_task(cell.start())
        self._logger.info("Spawning root actor: %s", name)
        return cell.ref

    def _release(self, cell: ActorCell[Any]) -> None:
        if self._root_cells.get(cell.id) is cell:
            del self._root_cells[cell.id]
            self._logger.info("Root actor terminated: %s", cell.id)

    async def ask[M, R](
        self,
        ref: ActorRef[M],
        msg_factory: Callable[[ActorRef[R]], M],
        *,
        timeout: float,
    ) -> R:
        """Send a message and wait for a reply (request-reply pattern).

        Raises
        ------
        TimeoutError
            If no reply arrives within ``timeout`` seconds.
        """
        future: asyncio.Future[R] = asyncio.get_running_loop().create_future()

        def on_reply(msg: Any) -> None:
            if not future.done():
                future.set_result(msg)

        temp_ref: ActorRef[R] = LocalActorRef(id=f"_ask/{id(future)}", _deliver=on_reply)
        ref.tell(msg_factory(temp_ref))
        return await asyncio.wait_for(future, timeout=timeout)

    def lookup(self, path: str) -> ActorRef[Any] | None:
        """Look up a live actor by its path in the actor tree."""
        parts = path.strip("/").split("/")
        cell = self._root_cells.get(parts[0])
        if cell is None:
            return None

        for part in parts[1:]:
            child = cell.children.get(part)
            if child is None:
                return None
            cell = child

        if cell.is_stopped:
            return None
        return cell.ref

    async def stop(self, name: str) -> bool:
        """Stop the root actor registered under ``name``.

        Returns ``False`` when no such actor is running.
        """
        cell = self._root_cells.get(name)
        if cell is None:
            return False
        await cell.stop()
        return True

    async def shutdown(self) -> None:
        """Shut down the actor system, stopping all root actors."""
        self._logger.info("Shutting down (%d root actors)", len(self._root_cells))
        for cell in list(self._root_cells.values()):
            await cell.stop()
        self._root_cells.clear()
