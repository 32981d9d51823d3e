from __future__ import annotations

from pydantic import BaseModel, Field

from memory_game.models import Artwork, Difficulty, Theme


class FlipRequest(BaseModel):
    card_id: str = Field(..., min_length=1, max_length=200)


class DifficultyRequest(BaseModel):
    difficulty: Difficulty


class ThemeRequest(BaseModel):
    theme: Theme


class DifficultyOption(BaseModel):
    id: Difficulty
    total_pairs: int
    time_limit_ms: int | None
    hint_available: bool


class ThemeOption(BaseModel):
    id: Theme
    label: str
    back: Artwork
    fallbacks: list[Theme] = Field(default_factory=list)


class CatalogResponse(BaseModel):
    difficulties: list[DifficultyOption]
    themes: list[ThemeOption]
