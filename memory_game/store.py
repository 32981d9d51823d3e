from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Protocol, TypeVar

import redis
from pydantic import BaseModel, ValidationError

from memory_game.models import (
    BestScores,
    Difficulty,
    OnboardingState,
    PersistedSession,
    SoundSettings,
    Theme,
)


logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "memory-card-game"

LAST_DIFFICULTY_KEY = "last-difficulty"
LAST_THEME_KEY = "last-theme"
HIGH_SCORE_KEY = "high-scores"
SESSION_KEY = "session"
ONBOARDING_KEY = "onboarding"
SOUND_SETTINGS_KEY = "sound-settings"

M = TypeVar("M", bound=BaseModel)
E = TypeVar("E", bound=StrEnum)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Dict-backed store. Nothing survives the process."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def items(self) -> list[tuple[str, str]]:
        return list(self._data.items())

    def __len__(self) -> int:
        return len(self._data)


class RedisKeyValueStore:
    """redis-py backed store.

    A Redis error switches the store to an in-memory copy so an unreachable
    server degrades to "no history" instead of failing the game. While degraded,
    the next operation after `retry_after_s` pings Redis again; on success the
    writes and deletes made in memory are replayed into Redis and the store goes
    back to it. Records that were only in Redis are unreadable until then.
    """

    def __init__(
        self,
        r: redis.Redis,
        *,
        retry_after_s: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._r = r
        self._retry_after_s = retry_after_s
        self._clock = clock
        self._fallback: MemoryKeyValueStore | None = None
        self._deleted: set[str] = set()
        self._degraded_at = 0.0

    @property
    def degraded(self) -> bool:
        return self._fallback is not None

    def _degrade(self, exc: Exception) -> MemoryKeyValueStore:
        self._degraded_at = self._clock()
        if self._fallback is None:
            logger.warning("Redis unavailable, continuing in-memory: %s", exc)
            self._fallback = MemoryKeyValueStore()
        return self._fallback

    def _active_fallback(self) -> MemoryKeyValueStore | None:
        """The in-memory store while degraded, or None once Redis is back."""

        fallback = self._fallback
        if fallback is None or self._clock() - self._degraded_at < self._retry_after_s:
            return fallback
        try:
            self._r.ping()
            pipe = self._r.pipeline()
            for key in self._deleted:
                pipe.delete(key)
            for key, value in fallback.items():
                pipe.set(key, value)
            pipe.execute()
        except redis.RedisError as e:
            logger.debug("Redis still unavailable: %s", e)
            self._degraded_at = self._clock()
            return fallback
        logger.warning("Redis reachable again, restored %d in-memory records", len(fallback))
        self._fallback = None
        self._deleted.clear()
        return None

    def get(self, key: str) -> str | None:
        fallback = self._active_fallback()
        if fallback is not None:
            return fallback.get(key)
        try:
            raw = self._r.get(key)
        except redis.RedisError as e:
            return self._degrade(e).get(key)
        if raw is None:
            return None
        return raw.decode() if isinstance(raw, bytes) else str(raw)

    def set(self, key: str, value: str) -> None:
        fallback = self._active_fallback()
        if fallback is None:
            try:
                self._r.set(key, value)
                return
            except redis.RedisError as e:
                fallback = self._degrade(e)
        fallback.set(key, value)
        self._deleted.discard(key)

    def delete(self, key: str) -> None:
        fallback = self._active_fallback()
        if fallback is None:
            try:
                self._r.delete(key)
                return
            except redis.RedisError as e:
                fallback = self._degrade(e)
        fallback.delete(key)
        self._deleted.add(key)


class SessionStore:
    """Typed access to the handful of persisted records.

    Only schema validation happens here; the engine owns every interpretation.
    """

    def __init__(self, kv: KeyValueStore, *, namespace: str = DEFAULT_NAMESPACE) -> None:
        self.kv = kv
        self.namespace = namespace

    def _key(self, name: str) -> str:
        return f"{self.namespace}:{name}"

    def _load_model(self, name: str, model: type[M]) -> M | None:
        raw = self.kv.get(self._key(name))
        if not raw:
            return None
        try:
            return model.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Discarding unreadable %s record: %s", name, e.errors()[:1])
            return None

    def _save_model(self, name: str, value: BaseModel) -> None:
        self.kv.set(self._key(name), value.model_dump_json())

    def _load_enum(self, name: str, enum_cls: type[E], default: E) -> E:
        raw = self.kv.get(self._key(name))
        if not raw:
            return default
        try:
            return enum_cls(json.loads(raw))
        except (ValueError, TypeError):
            logger.warning("Ignoring unknown %s value: %r", name, raw)
            return default

    # -- preferences --------------------------------------------------------

    def load_last_difficulty(self) -> Difficulty:
        return self._load_enum(LAST_DIFFICULTY_KEY, Difficulty, Difficulty.easy)

    def save_last_difficulty(self, difficulty: Difficulty) -> None:
        self.kv.set(self._key(LAST_DIFFICULTY_KEY), json.dumps(Difficulty(difficulty).value))

    def load_last_theme(self) -> Theme:
        return self._load_enum(LAST_THEME_KEY, Theme, Theme.emoji)

    def save_last_theme(self, theme: Theme) -> None:
        self.kv.set(self._key(LAST_THEME_KEY), json.dumps(Theme(theme).value))

    def load_best_scores(self) -> BestScores:
        return self._load_model(HIGH_SCORE_KEY, BestScores) or BestScores()

    def save_best_scores(self, scores: BestScores) -> None:
        self._save_model(HIGH_SCORE_KEY, scores)

    def load_onboarding(self) -> OnboardingState:
        return self._load_model(ONBOARDING_KEY, OnboardingState) or OnboardingState()

    def save_onboarding(self, state: OnboardingState) -> None:
        self._save_model(ONBOARDING_KEY, state)

    def acknowledge_onboarding(self) -> OnboardingState:
        state = OnboardingState(has_seen_tutorial=True)
        self.save_onboarding(state)
        return state

    def reset_onboarding(self) -> OnboardingState:
        state = OnboardingState()
        self.save_onboarding(state)
        return state

    def load_sound_settings(self) -> SoundSettings:
        return self._load_model(SOUND_SETTINGS_KEY, SoundSettings) or SoundSettings()

    def save_sound_settings(self, settings: SoundSettings) -> None:
        self._save_model(SOUND_SETTINGS_KEY, settings)

    # -- session snapshot ---------------------------------------------------

    def load_session(self) -> PersistedSession | None:
        session = self._load_model(SESSION_KEY, PersistedSession)
        if session is None and self.kv.get(self._key(SESSION_KEY)):
            # Corrupt record: drop it so it is not offered again.
            self.clear_session()
        return session

    def save_session(self, session: PersistedSession) -> None:
        self._save_model(SESSION_KEY, session)

    def clear_session(self) -> None:
        self.kv.delete(self._key(SESSION_KEY))
