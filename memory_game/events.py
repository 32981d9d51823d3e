from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

EventType = Literal[
    "ROUND_STARTED",
    "CARD_FLIPPED",
    "PAIR_MATCHED",
    "PAIR_MISMATCHED",
    "HINT_USED",
    "HINT_ENDED",
    "ROUND_WON",
    "ROUND_TIMED_OUT",
    "ROUND_RESET",
    "SESSION_RESUMED",
    "STATE_CHANGED",
]


@dataclass(frozen=True, slots=True)
class EngineEvent:
    """Something the presentation layer may react to (redraw, play a cue).

    STATE_CHANGED covers changes without a dedicated type, such as a clock tick.
    """

    type: EventType
    payload: dict[str, Any]
    ts: datetime

    @staticmethod
    def now(*, type: EventType, payload: dict[str, Any] | None = None) -> "EngineEvent":
        return EngineEvent(type=type, payload=payload or {}, ts=datetime.now(timezone.utc))

    def as_message(self) -> dict[str, object]:
        return {"type": self.type, "payload": self.payload, "ts": self.ts.isoformat()}


EngineListener = Callable[[EngineEvent], None]
