from __future__ import annotations

import asyncio

from memory_game.scheduler import AsyncioScheduler, ManualScheduler


def test_manual_scheduler_fires_in_due_order() -> None:
    s = ManualScheduler()
    fired: list[str] = []

    s.call_later(900, lambda: fired.append("b"))
    s.call_later(100, lambda: fired.append("a"))
    s.call_later(1000, lambda: fired.append("c"))

    s.advance(899)
    assert fired == ["a"]
    s.advance(1)
    assert fired == ["a", "b"]
    s.advance(100)
    assert fired == ["a", "b", "c"]
    assert s.now_ms == 1000


def test_manual_scheduler_cancel_is_immediate() -> None:
    s = ManualScheduler()
    fired: list[int] = []

    handle = s.call_later(10, lambda: fired.append(1))
    handle.cancel()
    handle.cancel()
    s.advance(100)

    assert fired == []
    assert s.pending() == 0


def test_manual_scheduler_runs_callbacks_scheduled_during_advance() -> None:
    s = ManualScheduler()
    ticks: list[int] = []

    def _tick() -> None:
        ticks.append(s.now_ms)
        if len(ticks) < 3:
            s.call_later(1000, _tick)

    s.call_later(1000, _tick)
    s.advance(5000)

    assert ticks == [1000, 2000, 3000]


def test_asyncio_scheduler_uses_running_loop() -> None:
    async def _run() -> list[str]:
        fired: list[str] = []
        s = AsyncioScheduler()
        s.call_later(1, lambda: fired.append("done"))
        cancelled = s.call_later(1, lambda: fired.append("nope"))
        cancelled.cancel()
        await asyncio.sleep(0.05)
        return fired

    assert asyncio.run(_run()) == ["done"]
