from __future__ import annotations

import random
from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")

_SYSTEM_RNG = random.SystemRandom()


def shuffle(items: Sequence[T], *, rng: random.Random | None = None) -> list[T]:
    """Return a shuffled copy of `items`. The input is left untouched."""

    out = list(items)
    (rng or _SYSTEM_RNG).shuffle(out)
    return out
