from __future__ import annotations

import logging

from memory_game.infra.redis_client import create_redis, get_storage_backend
from memory_game.store import KeyValueStore, MemoryKeyValueStore, RedisKeyValueStore


logger = logging.getLogger(__name__)


def create_kv_store() -> KeyValueStore:
    backend = get_storage_backend()
    if backend == "memory":
        logger.info("Using in-memory storage; progress will not survive restarts")
        return MemoryKeyValueStore()
    if backend != "redis":
        logger.warning("Unknown MEMORY_GAME_STORAGE=%r, falling back to redis", backend)
    return RedisKeyValueStore(create_redis())
