from __future__ import annotations

from collections import Counter
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field, model_validator


class Difficulty(StrEnum):
    easy = "easy"
    normal = "normal"
    hard = "hard"


class Theme(StrEnum):
    emoji = "emoji"
    storybook = "storybook"


class CardStatus(StrEnum):
    hidden = "hidden"
    flipped = "flipped"
    matched = "matched"


class GameStatus(StrEnum):
    ready = "ready"
    running = "running"
    finished = "finished"


class EmojiArtwork(BaseModel):
    kind: Literal["emoji"] = "emoji"
    symbol: str
    label: str


class ImageArtwork(BaseModel):
    kind: Literal["image"] = "image"
    src: str
    alt: str
    label: str


# Opaque to game logic; only the presentation layer looks inside.
Artwork = Annotated[EmojiArtwork | ImageArtwork, Field(discriminator="kind")]


class Card(BaseModel):
    id: str
    pair_id: str
    front: Artwork
    back: Artwork
    theme: Theme
    status: CardStatus = CardStatus.hidden


class PersistedSession(BaseModel):
    """Serialized capture of an in-progress round.

    Validation on load doubles as the corruption check: unknown difficulty/theme
    values or a malformed card list make the whole record invalid.
    """

    difficulty: Difficulty
    theme: Theme = Theme.emoji
    cards: list[Card]
    flipped_ids: list[str] = Field(default_factory=list, max_length=2)
    matched_pairs: int = Field(0, ge=0)
    score: int = Field(0, ge=0)
    remaining_time_ms: int | None = None
    hint_used: bool = False
    status: GameStatus = GameStatus.ready

    # Epoch milliseconds.
    saved_at: int

    @model_validator(mode="after")
    def _check_board(self) -> "PersistedSession":
        # Deferred: catalog builds its tables from these models.
        from memory_game.catalog import get_difficulty_config

        counts = Counter(c.pair_id for c in self.cards)
        if any(n != 2 for n in counts.values()):
            raise ValueError("every pair_id must appear exactly twice")
        total_pairs = get_difficulty_config(self.difficulty).total_pairs
        if len(self.cards) != 2 * total_pairs:
            raise ValueError(f"{self.difficulty.value} boards hold {total_pairs} pairs")
        ids = {c.id for c in self.cards}
        if len(ids) != len(self.cards):
            raise ValueError("card ids must be unique")
        if any(cid not in ids for cid in self.flipped_ids):
            raise ValueError("flipped_ids must reference cards on the board")
        if len(set(self.flipped_ids)) != len(self.flipped_ids):
            raise ValueError("flipped_ids must be unique")
        face_up = {c.id for c in self.cards if c.status is CardStatus.flipped}
        if face_up != set(self.flipped_ids):
            raise ValueError("flipped_ids must be exactly the face-up cards")

        matched = Counter(c.pair_id for c in self.cards if c.status is CardStatus.matched)
        if any(n != 2 for n in matched.values()):
            raise ValueError("matched cards must come in whole pairs")
        if len(matched) != self.matched_pairs:
            raise ValueError("matched_pairs disagrees with the board")
        return self


class BestScores(BaseModel):
    easy: int = 0
    normal: int = 0
    hard: int = 0

    def for_difficulty(self, difficulty: Difficulty) -> int:
        return int(getattr(self, difficulty.value))

    def with_score(self, difficulty: Difficulty, score: int) -> "BestScores":
        return self.model_copy(update={difficulty.value: score})


class OnboardingState(BaseModel):
    has_seen_tutorial: bool = False


class SoundSettings(BaseModel):
    sfx: bool = True
    bgm: bool = False


class PendingSessionSummary(BaseModel):
    difficulty: Difficulty
    theme: Theme
    saved_at: int
    score: int
    matched_pairs: int
    total_pairs: int
    remaining_time_ms: int | None = None


class EngineSnapshot(BaseModel):
    """Read-only view of the engine for the presentation layer."""

    cards: list[Card]
    score: int
    best_score: int
    best_scores: BestScores
    matched_pairs: int
    total_pairs: int
    status: GameStatus
    is_resolving: bool
    remaining_time_ms: int | None
    difficulty: Difficulty
    theme: Theme
    hint_available: bool
    hint_used: bool
    is_hint_previewing: bool
    resume_available: bool
    has_new_best: bool
    pending_session: PendingSessionSummary | None = None
