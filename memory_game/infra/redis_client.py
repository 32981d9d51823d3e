from __future__ import annotations

import os

import redis


def get_redis_url() -> str:
    return os.environ.get("REDIS_URL", "redis://localhost:6379/0")


def get_storage_backend() -> str:
    # "redis" (default) or "memory" for offline/non-server contexts.
    return os.environ.get("MEMORY_GAME_STORAGE", "redis").strip().casefold() or "redis"


def get_namespace() -> str:
    return os.environ.get("MEMORY_GAME_NAMESPACE", "memory-card-game")


def get_max_engines() -> int:
    # Live engines kept per process; idle players beyond this are reloaded from storage.
    return int(os.environ.get("MEMORY_GAME_MAX_ENGINES", "1024"))


def create_redis() -> redis.Redis:
    # decode_responses=True => strings in/out instead of bytes
    return redis.Redis.from_url(get_redis_url(), decode_responses=True)
