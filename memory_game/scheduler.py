from __future__ import annotations

import asyncio
import heapq
import itertools
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Delayed-callback capability owned by the engine.

    `cancel()` on a returned handle must be synchronous: once it returns, the
    callback never runs.
    """

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Schedules on the running asyncio loop (the API server's loop)."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay_ms / 1000, callback)


@dataclass(slots=True)
class _ManualTimer:
    due_ms: int
    seq: int
    callback: Callable[[], None]
    cancelled: bool = field(default=False)

    def cancel(self) -> None:
        self.cancelled = True

    def __lt__(self, other: "_ManualTimer") -> bool:
        return (self.due_ms, self.seq) < (other.due_ms, other.seq)


class ManualScheduler:
    """Virtual clock for tests and deterministic replays.

    Nothing fires until `advance()` moves time forward. Callbacks scheduled while
    advancing run in the same call if they fall due before the target time.
    """

    def __init__(self) -> None:
        self.now_ms = 0
        self._queue: list[_ManualTimer] = []
        self._seq = itertools.count()

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(due_ms=self.now_ms + max(0, int(delay_ms)), seq=next(self._seq), callback=callback)
        heapq.heappush(self._queue, timer)
        return timer

    def pending(self) -> int:
        return sum(1 for t in self._queue if not t.cancelled)

    def advance(self, ms: int) -> None:
        target = self.now_ms + ms
        while self._queue and self._queue[0].due_ms <= target:
            timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self.now_ms = timer.due_ms
            timer.callback()
        self.now_ms = target
