from __future__ import annotations

from dataclasses import dataclass, field

from memory_game.models import Artwork, Difficulty, EmojiArtwork, ImageArtwork, Theme


MATCH_REWARD = 30
MISMATCH_PENALTY = 5
MISMATCH_HIDE_MS = 900
HINT_REVEAL_MS = 1000
TICK_MS = 1000


class CatalogError(RuntimeError):
    """Raised when the static catalogs cannot back every difficulty."""


@dataclass(frozen=True, slots=True)
class DifficultyConfig:
    total_pairs: int
    # None => no countdown.
    time_limit_ms: int | None
    hint_available: bool


@dataclass(frozen=True, slots=True)
class CardBlueprint:
    """Candidate card front, not yet bound to a card.

    `key` is shared across themes when two blueprints depict the same thing, so a
    fallback draw never produces two visually equivalent pairs.
    """

    key: str
    front: Artwork


@dataclass(frozen=True, slots=True)
class ThemeConfig:
    label: str
    back: Artwork
    blueprints: tuple[CardBlueprint, ...]
    fallbacks: tuple[Theme, ...] = field(default_factory=tuple)


DIFFICULTY_SETTINGS: dict[Difficulty, DifficultyConfig] = {
    Difficulty.easy: DifficultyConfig(total_pairs=5, time_limit_ms=None, hint_available=True),
    Difficulty.normal: DifficultyConfig(total_pairs=6, time_limit_ms=90_000, hint_available=False),
    Difficulty.hard: DifficultyConfig(total_pairs=7, time_limit_ms=60_000, hint_available=False),
}


def _emoji(key: str, symbol: str, label: str) -> CardBlueprint:
    return CardBlueprint(key=key, front=EmojiArtwork(symbol=symbol, label=label))


def _image(key: str, label: str) -> CardBlueprint:
    return CardBlueprint(
        key=key,
        front=ImageArtwork(src=f"/assets/sample-card-{key}.svg", alt=f"{label} card", label=label),
    )


THEME_SETTINGS: dict[Theme, ThemeConfig] = {
    Theme.emoji: ThemeConfig(
        label="Emoji",
        back=EmojiArtwork(symbol="🎴", label="Card back"),
        blueprints=(
            _emoji("dog", "🐶", "Dog"),
            _emoji("cat", "🐱", "Cat"),
            _emoji("fox", "🦊", "Fox"),
            _emoji("panda", "🐼", "Panda"),
            _emoji("rabbit", "🐰", "Rabbit"),
            _emoji("frog", "🐸", "Frog"),
            _emoji("lion", "🦁", "Lion"),
            _emoji("monkey", "🐵", "Monkey"),
            _emoji("tiger", "🐯", "Tiger"),
            _emoji("unicorn", "🦄", "Unicorn"),
            _emoji("octopus", "🐙", "Octopus"),
            _emoji("zebra", "🦓", "Zebra"),
            _emoji("turtle", "🐢", "Turtle"),
        ),
    ),
    Theme.storybook: ThemeConfig(
        label="Storybook",
        back=ImageArtwork(src="/assets/sample-card-back.svg", alt="Storybook card back", label="Card back"),
        blueprints=(
            _image("fox", "Fox"),
            _image("penguin", "Penguin"),
            _image("strawberry", "Strawberry"),
            _image("star", "Star"),
        ),
        fallbacks=(Theme.emoji,),
    ),
}


def get_difficulty_config(difficulty: Difficulty | str) -> DifficultyConfig:
    return DIFFICULTY_SETTINGS[Difficulty(difficulty)]


def get_theme_config(theme: Theme | str) -> ThemeConfig:
    return THEME_SETTINGS[Theme(theme)]


def available_keys(theme: Theme) -> set[str]:
    """Distinct blueprint keys reachable from `theme`, fallbacks included."""

    cfg = THEME_SETTINGS[theme]
    keys = {bp.key for bp in cfg.blueprints}
    for fb in cfg.fallbacks:
        keys.update(bp.key for bp in THEME_SETTINGS[fb].blueprints)
    return keys


def validate_catalog() -> None:
    required = max(cfg.total_pairs for cfg in DIFFICULTY_SETTINGS.values())
    for theme in THEME_SETTINGS:
        have = len(available_keys(theme))
        if have < required:
            raise CatalogError(f"Theme '{theme.value}' offers {have} distinct fronts, needs {required}")
