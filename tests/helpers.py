from __future__ import annotations

from memory_game.models import Card


def find_pair(cards: list[Card] | list[dict]) -> tuple[str, str]:
    by_pair: dict[str, list[str]] = {}
    for card in cards:
        pair_id = card["pair_id"] if isinstance(card, dict) else card.pair_id
        card_id = card["id"] if isinstance(card, dict) else card.id
        by_pair.setdefault(pair_id, []).append(card_id)
    for ids in by_pair.values():
        if len(ids) == 2:
            return ids[0], ids[1]
    raise AssertionError("pair not found")


def find_mismatch(cards: list[Card]) -> tuple[str, str]:
    first = cards[0]
    other = next(c for c in cards if c.pair_id != first.pair_id)
    return first.id, other.id


def pairs_in_order(cards: list[Card]) -> list[tuple[str, str]]:
    by_pair: dict[str, list[str]] = {}
    for card in cards:
        by_pair.setdefault(card.pair_id, []).append(card.id)
    return [(ids[0], ids[1]) for ids in by_pair.values()]
