from __future__ import annotations

import asyncio
import logging
import random
from collections import OrderedDict
from collections.abc import Callable

from memory_game.engine import GameEngine
from memory_game.events import EngineEvent
from memory_game.scheduler import AsyncioScheduler, Scheduler
from memory_game.store import DEFAULT_NAMESPACE, KeyValueStore, SessionStore
from memory_game.websocket_hub import hub


logger = logging.getLogger(__name__)

DEFAULT_MAX_ENGINES = 1024


class EngineRegistry:
    """In-process engines keyed by player_id.

    Each player gets its own engine and its own namespace in the shared key-value
    store, so best scores and saved sessions never leak between players.

    At most `max_engines` engines stay live. The least recently used one is closed
    to make room; its round is already in the store and comes back as a resumable
    session the next time that player shows up.
    """

    def __init__(
        self,
        *,
        kv: KeyValueStore,
        namespace: str = DEFAULT_NAMESPACE,
        scheduler_factory: Callable[[], Scheduler] = AsyncioScheduler,
        rng: random.Random | None = None,
        max_engines: int = DEFAULT_MAX_ENGINES,
    ) -> None:
        if max_engines < 1:
            raise ValueError("max_engines must be >= 1")
        self.kv = kv
        self.namespace = namespace
        self._scheduler_factory = scheduler_factory
        self._rng = rng
        self.max_engines = max_engines
        self._engines: OrderedDict[str, GameEngine] = OrderedDict()
        self._tasks: set[asyncio.Task[None]] = set()

    def store_for(self, player_id: str) -> SessionStore:
        return SessionStore(self.kv, namespace=f"{self.namespace}:{player_id}")

    def get(self, player_id: str) -> GameEngine:
        engine = self._engines.get(player_id)
        if engine is not None:
            self._engines.move_to_end(player_id)
            return engine

        while len(self._engines) >= self.max_engines:
            evicted_id, evicted = self._engines.popitem(last=False)
            evicted.close()
            logger.info("engine evicted player=%s", evicted_id)

        engine = GameEngine(self.store_for(player_id), self._scheduler_factory(), rng=self._rng)
        engine.subscribe(self._broadcaster(player_id))
        self._engines[player_id] = engine
        logger.info("engine created player=%s", player_id)
        return engine

    def __len__(self) -> int:
        return len(self._engines)

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._engines

    def drop(self, player_id: str) -> None:
        engine = self._engines.pop(player_id, None)
        if engine is not None:
            engine.close()

    def close(self) -> None:
        for player_id in list(self._engines):
            self.drop(player_id)

    def _broadcaster(self, player_id: str) -> Callable[[EngineEvent], None]:
        def _on_event(event: EngineEvent) -> None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                # Driven outside the server loop (scripts, sync tests): nobody to notify.
                return
            task = loop.create_task(
                hub.broadcast(player_id, {"type": "engine_updated", "player_id": player_id, "event": event.as_message()})
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        return _on_event


_REGISTRY: EngineRegistry | None = None


def init_registry(
    *, kv: KeyValueStore, namespace: str = DEFAULT_NAMESPACE, max_engines: int = DEFAULT_MAX_ENGINES
) -> EngineRegistry:
    """Create the process-wide registry once; later calls return the same instance."""

    global _REGISTRY
    if _REGISTRY is None:
        _REGISTRY = EngineRegistry(kv=kv, namespace=namespace, max_engines=max_engines)
    return _REGISTRY


def close_registry() -> None:
    """Close every engine and forget the registry (shutdown, tests)."""

    global _REGISTRY
    if _REGISTRY is not None:
        _REGISTRY.close()
    _REGISTRY = None


def get_registry_instance() -> EngineRegistry:
    if _REGISTRY is None:
        raise RuntimeError("Engine registry not initialized. Call init_registry() at startup.")
    return _REGISTRY
