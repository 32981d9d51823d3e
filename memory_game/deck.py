from __future__ import annotations

import random

from memory_game.catalog import CardBlueprint, get_theme_config
from memory_game.models import Card, CardStatus, Theme
from memory_game.shuffle import shuffle


class DeckBuildError(RuntimeError):
    """The theme (plus its fallbacks) cannot supply enough distinct fronts."""


def select_blueprints(total_pairs: int, theme: Theme, *, rng: random.Random | None = None) -> list[CardBlueprint]:
    """Pick `total_pairs` blueprints with unique keys.

    The theme's own pool is drawn first; fallback themes top it up in order. Key
    uniqueness is enforced across the whole selection.
    """

    cfg = get_theme_config(theme)
    selected: list[CardBlueprint] = []
    used: set[str] = set()

    def draw_from(pool: tuple[CardBlueprint, ...]) -> None:
        for bp in shuffle(pool, rng=rng):
            if len(selected) >= total_pairs:
                return
            if bp.key in used:
                continue
            used.add(bp.key)
            selected.append(bp)

    draw_from(cfg.blueprints)
    for fallback in cfg.fallbacks:
        if len(selected) >= total_pairs:
            break
        draw_from(get_theme_config(fallback).blueprints)

    if len(selected) < total_pairs:
        raise DeckBuildError(
            f"Theme '{Theme(theme).value}' produced {len(selected)} distinct fronts, {total_pairs} required"
        )
    return selected


def build_deck(total_pairs: int, theme: Theme | str, *, rng: random.Random | None = None) -> list[Card]:
    """Build a shuffled deck of `2 * total_pairs` hidden cards."""

    if total_pairs < 1:
        raise ValueError("total_pairs must be at least 1")

    theme = Theme(theme)
    back = get_theme_config(theme).back

    cards: list[Card] = []
    for index, bp in enumerate(select_blueprints(total_pairs, theme, rng=rng)):
        pair_id = f"pair-{index}-{bp.key}"
        for suffix in ("a", "b"):
            # Each card owns its artwork; nothing is shared between cards.
            cards.append(
                Card(
                    id=f"{pair_id}-{suffix}",
                    pair_id=pair_id,
                    front=bp.front.model_copy(deep=True),
                    back=back.model_copy(deep=True),
                    theme=theme,
                    status=CardStatus.hidden,
                )
            )

    return shuffle(cards, rng=rng)
