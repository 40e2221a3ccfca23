from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from greeter.behaviors import Behaviors
from greeter.core import ActorRef, ActorSystem, Behavior
from greeter.core.scheduler import (
    CancelSchedule,
    ScheduleOnce,
    SchedulerMsg,
    scheduler,
)


@dataclass(frozen=True)
class Ping:
    seq: int


def collector(results: list[Any]) -> Behavior[Any]:
    async def receive(ctx: Any, msg: Any) -> Any:
        results.append(msg)
        return Behaviors.same()

    return Behaviors.receive(receive)


async def test_once_delivers_after_delay() -> None:
    results: list[Any] = []
    async with ActorSystem() as system:
        target = system.spawn(collector(results), "target")
        sched = system.spawn(scheduler(), "scheduler")
        sched.tell(ScheduleOnce(key="ping", target=target, message=Ping(42), delay=0.1))
        await asyncio.sleep(0.05)
        assert len(results) == 0
        await asyncio.sleep(0.15)

    assert results == [Ping(42)]


async def test_cancel_stops_delivery() -> None:
    results: list[Any] = []
    async with ActorSystem() as system:
        target = system.spawn(collector(results), "target")
        sched = system.spawn(scheduler(), "scheduler")
        sched.tell(ScheduleOnce(key="ping", target=target, message=Ping(1), delay=0.1))
        sched.tell(CancelSchedule(key="ping"))
        await asyncio.sleep(0.2)

    assert results == []


async def test_same_key_replaces_schedule() -> None:
    results: list[Any] = []
    async with ActorSystem() as system:
        target = system.spawn(collector(results), "target")
        sched = system.spawn(scheduler(), "scheduler")
        sched.tell(ScheduleOnce(key="a", target=target, message=Ping(1), delay=0.1))
        sched.tell(ScheduleOnce(key="a", target=target, message=Ping(2), delay=0.1))
        await asyncio.sleep(0.25)

    assert results == [Ping(2)]


async def test_distinct_keys_all_fire() -> None:
    results: list[Any] = []
    async with ActorSystem() as system:
        target = system.spawn(collector(results), "target")
        sched = system.spawn(scheduler(), "scheduler")
        for seq in range(3):
            sched.tell(ScheduleOnce(key=f"k{seq}", target=target, message=Ping(seq), delay=0.05))
        await asyncio.sleep(0.2)

    assert sorted(r.seq for r in results) == [0, 1, 2]


async def test_stop_cancels_pending() -> None:
    results: list[Any] = []
    async with ActorSystem() as system:
        target = system.spawn(collector(results), "target")
        sched = system.spawn(scheduler(), "scheduler")
        sched.tell(ScheduleOnce(key="a", target=target, message=Ping(1), delay=0.1))
        sched.tell(ScheduleOnce(key="b", target=target, message=Ping(2), delay=0.1))
        await asyncio.sleep(0.02)
        await system.stop("scheduler")
        await asyncio.sleep(0.2)

    assert results == []


async def test_reschedule_pattern() -> None:
    attempts: list[int] = []

    def retry_actor(sched: ActorRef[SchedulerMsg]) -> Behavior[Any]:
        async def receive(ctx: Any, msg: Any) -> Any:
            match msg:
                case Ping(seq=seq):
                    attempts.append(seq)
                    if seq < 3:
                        sched.tell(
                            ScheduleOnce(
                                key="retry",
                                target=ctx.self,
                                message=Ping(seq + 1),
                                delay=0.05,
                            )
                        )
            return Behaviors.same()

        return Behaviors.receive(receive)

    async with ActorSystem() as system:
        sched = system.spawn(scheduler(), "scheduler")
        retrier = system.spawn(retry_actor(sched), "retrier")
        sched.tell(
            ScheduleOnce(key="retry", target=retrier, message=Ping(1), delay=0.05)
        )
        await asyncio.sleep(0.5)

    assert attempts == [1, 2, 3]
