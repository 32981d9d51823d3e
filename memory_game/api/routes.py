from __future__ import annotations

from collections.abc import Callable

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from memory_game.api.deps import get_registry
from memory_game.api.models import (
    CatalogResponse,
    DifficultyOption,
    DifficultyRequest,
    FlipRequest,
    ThemeOption,
    ThemeRequest,
)
from memory_game.catalog import DIFFICULTY_SETTINGS, THEME_SETTINGS
from memory_game.engine import GameEngine
from memory_game.models import EngineSnapshot, OnboardingState, SoundSettings
from memory_game.registry import EngineRegistry
from memory_game.websocket_hub import hub

router = APIRouter()


@router.websocket("/ws/players/{player_id}")
async def player_updates_ws(websocket: WebSocket, player_id: str) -> None:
    await hub.connect(player_id, websocket)

    try:
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(player_id, websocket)
    except Exception:
        await hub.disconnect(player_id, websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/catalog", response_model=CatalogResponse)
async def catalog_route() -> CatalogResponse:
    return CatalogResponse(
        difficulties=[
            DifficultyOption(
                id=d,
                total_pairs=cfg.total_pairs,
                time_limit_ms=cfg.time_limit_ms,
                hint_available=cfg.hint_available,
            )
            for d, cfg in DIFFICULTY_SETTINGS.items()
        ],
        themes=[
            ThemeOption(id=t, label=cfg.label, back=cfg.back, fallbacks=list(cfg.fallbacks))
            for t, cfg in THEME_SETTINGS.items()
        ],
    )


def _apply(registry: EngineRegistry, player_id: str, op: Callable[[GameEngine], None]) -> EngineSnapshot:
    # Engine no-ops are not errors: the client just gets the unchanged snapshot back.
    engine = registry.get(player_id)
    op(engine)
    return engine.snapshot()


@router.get("/players/{player_id}/engine", response_model=EngineSnapshot)
async def get_engine_route(player_id: str, registry: EngineRegistry = Depends(get_registry)) -> EngineSnapshot:
    return registry.get(player_id).snapshot()


@router.post("/players/{player_id}/engine/flip", response_model=EngineSnapshot)
async def flip_route(
    player_id: str,
    payload: FlipRequest,
    registry: EngineRegistry = Depends(get_registry),
) -> EngineSnapshot:
    return _apply(registry, player_id, lambda e: e.flip_card(payload.card_id))


@router.post("/players/{player_id}/engine/restart", response_model=EngineSnapshot)
async def restart_route(player_id: str, registry: EngineRegistry = Depends(get_registry)) -> EngineSnapshot:
    return _apply(registry, player_id, lambda e: e.restart())


@router.post("/players/{player_id}/engine/difficulty", response_model=EngineSnapshot)
async def change_difficulty_route(
    player_id: str,
    payload: DifficultyRequest,
    registry: EngineRegistry = Depends(get_registry),
) -> EngineSnapshot:
    return _apply(registry, player_id, lambda e: e.change_difficulty(payload.difficulty))


@router.post("/players/{player_id}/engine/theme", response_model=EngineSnapshot)
async def change_theme_route(
    player_id: str,
    payload: ThemeRequest,
    registry: EngineRegistry = Depends(get_registry),
) -> EngineSnapshot:
    return _apply(registry, player_id, lambda e: e.change_theme(payload.theme))


@router.post("/players/{player_id}/engine/hint", response_model=EngineSnapshot)
async def hint_route(player_id: str, registry: EngineRegistry = Depends(get_registry)) -> EngineSnapshot:
    return _apply(registry, player_id, lambda e: e.use_hint())


@router.post("/players/{player_id}/engine/resume", response_model=EngineSnapshot)
async def resume_route(player_id: str, registry: EngineRegistry = Depends(get_registry)) -> EngineSnapshot:
    return _apply(registry, player_id, lambda e: e.resume_session())


@router.post("/players/{player_id}/engine/discard", response_model=EngineSnapshot)
async def discard_route(player_id: str, registry: EngineRegistry = Depends(get_registry)) -> EngineSnapshot:
    return _apply(registry, player_id, lambda e: e.discard_session())


@router.post("/players/{player_id}/engine/reset-progress", response_model=EngineSnapshot)
async def reset_progress_route(player_id: str, registry: EngineRegistry = Depends(get_registry)) -> EngineSnapshot:
    return _apply(registry, player_id, lambda e: e.reset_progress())


@router.get("/players/{player_id}/preferences/sound", response_model=SoundSettings)
async def get_sound_route(player_id: str, registry: EngineRegistry = Depends(get_registry)) -> SoundSettings:
    return registry.store_for(player_id).load_sound_settings()


@router.put("/players/{player_id}/preferences/sound", response_model=SoundSettings)
async def put_sound_route(
    player_id: str,
    payload: SoundSettings,
    registry: EngineRegistry = Depends(get_registry),
) -> SoundSettings:
    registry.store_for(player_id).save_sound_settings(payload)
    return payload


@router.get("/players/{player_id}/onboarding", response_model=OnboardingState)
async def get_onboarding_route(player_id: str, registry: EngineRegistry = Depends(get_registry)) -> OnboardingState:
    return registry.store_for(player_id).load_onboarding()


@router.post("/players/{player_id}/onboarding/acknowledge", response_model=OnboardingState)
async def acknowledge_onboarding_route(
    player_id: str,
    registry: EngineRegistry = Depends(get_registry),
) -> OnboardingState:
    return registry.store_for(player_id).acknowledge_onboarding()


@router.post("/players/{player_id}/onboarding/reset", response_model=OnboardingState)
async def reset_onboarding_route(player_id: str, registry: EngineRegistry = Depends(get_registry)) -> OnboardingState:
    return registry.store_for(player_id).reset_onboarding()
