from __future__ import annotations

import os
import random
from collections.abc import Generator
from pathlib import Path

import fakeredis
import pytest

from memory_game.engine import GameEngine
from memory_game.scheduler import ManualScheduler
from memory_game.store import RedisKeyValueStore, SessionStore


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs (PyCharm/CLI).

    In CI, we *don't* auto-load `.env` by default so a developer's REDIS_URL never
    leaks into the hermetic fakeredis-backed tests.
    """

    # Opt-in locally with: MEMORY_GAME_LOAD_DOTENV_FOR_TESTS=1
    if os.environ.get("CI") and os.environ.get("MEMORY_GAME_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


@pytest.fixture()
def redis_client() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def store(redis_client: fakeredis.FakeRedis) -> SessionStore:
    return SessionStore(RedisKeyValueStore(redis_client))


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def engine(store: SessionStore, scheduler: ManualScheduler) -> Generator[GameEngine, None, None]:
    e = GameEngine(store, scheduler, rng=random.Random(1234))
    yield e
    e.close()


@pytest.fixture()
def client_and_scheduler(redis_client: fakeredis.FakeRedis):
    """FastAPI TestClient wired to fakeredis and a manual clock.

    Yields (client, redis, scheduler) so tests can drive timers deterministically.
    """

    from fastapi.testclient import TestClient

    from memory_game.api.deps import get_registry
    from memory_game.main import app
    from memory_game.registry import EngineRegistry

    scheduler = ManualScheduler()
    registry = EngineRegistry(
        kv=RedisKeyValueStore(redis_client),
        scheduler_factory=lambda: scheduler,
        rng=random.Random(99),
    )

    app.dependency_overrides[get_registry] = lambda: registry
    with TestClient(app) as c:
        yield c, redis_client, scheduler
    app.dependency_overrides.clear()
    registry.close()
