from __future__ import annotations

from memory_game.registry import EngineRegistry, get_registry_instance


def get_registry() -> EngineRegistry:
    return get_registry_instance()
