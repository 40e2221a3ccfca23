"""Actor mailbox with configurable overflow strategies.

An unbounded queue by default. When a capacity is set, one of three
policies decides what happens to a message that arrives while the queue
is full: drop it, drop the oldest queued message, or refuse it.
"""

from __future__ import annotations

import asyncio
from enum import Enum, auto


class MailboxOverflowStrategy(Enum):
    """Policy applied when a bounded mailbox is full.

    Examples
    --------
    >>> MailboxOverflowStrategy["drop_oldest"]
    <MailboxOverflowStrategy.drop_oldest: 2>
    """

    drop_new = auto()
    drop_oldest = auto()
    backpressure = auto()


class Mailbox[M]:
    """Async message queue feeding one actor's message loop.

    Parameters
    ----------
    capacity : int | None
        Maximum number of queued messages. ``None`` for unbounded.
    overflow : MailboxOverflowStrategy
        Policy when the mailbox is full.

    Examples
    --------
    >>> mb = Mailbox[str](capacity=10, overflow=MailboxOverflowStrategy.drop_new)
    >>> mb.put("hi")
    >>> mb.size()
    1
    """

    def __init__(
        self,
        capacity: int | None = None,
        overflow: MailboxOverflowStrategy = MailboxOverflowStrategy.drop_new,
    ) -> None:
        self._overflow = overflow
        self._capacity = capacity
        if capacity is None:
            self._queue: asyncio.Queue[M] = asyncio.Queue()
        else:
            self._queue = asyncio.Queue(maxsize=capacity)

    @property
    def capacity(self) -> int | None:
        return self._capacity

    def put(self, msg: M) -> M | None:
        """Enqueue a message, applying the overflow strategy if full.

        Returns the message discarded to stay within capacity, if any:
        ``msg`` itself under ``drop_new``, the oldest queued message under
        ``drop_oldest``.

        Raises
        ------
        asyncio.QueueFull
            When the strategy is ``backpressure`` and the mailbox is at
            capacity.
        """
        if self._capacity is None:
            self._queue.put_nowait(msg)
            return None

        dropped: M | None = None
        match self._overflow:
            case MailboxOverflowStrategy.drop_new:
                if self._queue.full():
                    return msg
                self._queue.put_nowait(msg)
            case MailboxOverflowStrategy.drop_oldest:
                if self._queue.full():
                    try:
                        dropped = self._queue.get_nowait()
                    except asyncio.QueueEmpty:
                        pass
                self._queue.put_nowait(msg)
            case MailboxOverflowStrategy.backpressure:
                if self._queue.full():
                    raise asyncio.QueueFull()
                self._queue.put_nowait(msg)
        return dropped

    async def get(self) -> M:
        return await self._queue.get()

    def size(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()
