from __future__ import annotations

import logging
import random
from collections.abc import Callable
from datetime import UTC, datetime

from memory_game.catalog import (
    HINT_REVEAL_MS,
    MATCH_REWARD,
    MISMATCH_HIDE_MS,
    MISMATCH_PENALTY,
    TICK_MS,
    DifficultyConfig,
    get_difficulty_config,
    validate_catalog,
)
from memory_game.deck import build_deck
from memory_game.events import EngineEvent, EngineListener, EventType
from memory_game.fsm import RoundStatusMachine
from memory_game.models import (
    BestScores,
    Card,
    CardStatus,
    Difficulty,
    EngineSnapshot,
    GameStatus,
    PendingSessionSummary,
    PersistedSession,
    Theme,
)
from memory_game.scheduler import Scheduler, TimerHandle
from memory_game.store import SessionStore


logger = logging.getLogger(__name__)

# Pool sizes are static; a short pool is an authoring bug, so fail at import.
validate_catalog()


def _now_ms() -> int:
    return int(datetime.now(tz=UTC).timestamp() * 1000)


class GameEngine:
    """Single-player memory round: deck, flips, score, clock, hint, persistence.

    All timers go through the injected scheduler and are cancelled synchronously
    on every lifecycle transition (new round, resume, finalize), so no delayed
    effect from an earlier round can land on the current one.

    Invalid requests (flip while resolving, hint when unavailable, resume with
    nothing saved) are ignored; they are UI races, not errors.
    """

    def __init__(self, store: SessionStore, scheduler: Scheduler, *, rng: random.Random | None = None) -> None:
        self.store = store
        self.scheduler = scheduler
        self._rng = rng
        self._listeners: list[EngineListener] = []

        self._difficulty = store.load_last_difficulty()
        self._theme = store.load_last_theme()
        self._best_scores = store.load_best_scores()

        cfg = self.config
        self._cards: list[Card] = build_deck(cfg.total_pairs, self._theme, rng=self._rng)
        self._flipped_ids: list[str] = []
        self._matched_pairs = 0
        self._score = 0
        self._fsm = RoundStatusMachine()
        self._is_resolving = False
        self._hint_used = False
        self._is_hint_previewing = False
        self._remaining_time_ms: int | None = cfg.time_limit_ms
        self._has_new_best = False

        # Offered for resumption, never applied automatically.
        self._pending_session: PersistedSession | None = store.load_session()

        self._tick_handle: TimerHandle | None = None
        self._mismatch_handle: TimerHandle | None = None
        self._hint_handle: TimerHandle | None = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def config(self) -> DifficultyConfig:
        return get_difficulty_config(self._difficulty)

    @property
    def difficulty(self) -> Difficulty:
        return self._difficulty

    @property
    def theme(self) -> Theme:
        return self._theme

    @property
    def status(self) -> GameStatus:
        return self._fsm.status

    @property
    def cards(self) -> list[Card]:
        return [c.model_copy(deep=True) for c in self._cards]

    @property
    def flipped_ids(self) -> list[str]:
        return list(self._flipped_ids)

    @property
    def score(self) -> int:
        return self._score

    @property
    def matched_pairs(self) -> int:
        return self._matched_pairs

    @property
    def total_pairs(self) -> int:
        return self.config.total_pairs

    @property
    def remaining_time_ms(self) -> int | None:
        return self._remaining_time_ms

    @property
    def is_resolving(self) -> bool:
        return self._is_resolving

    @property
    def hint_used(self) -> bool:
        return self._hint_used

    @property
    def is_hint_previewing(self) -> bool:
        return self._is_hint_previewing

    @property
    def has_new_best(self) -> bool:
        return self._has_new_best

    @property
    def best_scores(self) -> BestScores:
        return self._best_scores.model_copy()

    @property
    def best_score(self) -> int:
        return self._best_scores.for_difficulty(self._difficulty)

    @property
    def resume_available(self) -> bool:
        return self._pending_session is not None

    @property
    def pending_session(self) -> PendingSessionSummary | None:
        session = self._pending_session
        if session is None:
            return None
        return PendingSessionSummary(
            difficulty=session.difficulty,
            theme=session.theme,
            saved_at=session.saved_at,
            score=session.score,
            matched_pairs=session.matched_pairs,
            total_pairs=get_difficulty_config(session.difficulty).total_pairs,
            remaining_time_ms=session.remaining_time_ms,
        )

    def snapshot(self) -> EngineSnapshot:
        cfg = self.config
        return EngineSnapshot(
            cards=self.cards,
            score=self._score,
            best_score=self.best_score,
            best_scores=self.best_scores,
            matched_pairs=self._matched_pairs,
            total_pairs=cfg.total_pairs,
            status=self.status,
            is_resolving=self._is_resolving,
            remaining_time_ms=self._remaining_time_ms,
            difficulty=self._difficulty,
            theme=self._theme,
            hint_available=cfg.hint_available,
            hint_used=self._hint_used,
            is_hint_previewing=self._is_hint_previewing,
            resume_available=self.resume_available,
            has_new_best=self._has_new_best,
            pending_session=self.pending_session,
        )

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: EngineListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, type: EventType, **payload: object) -> None:
        event = EngineEvent.now(type=type, payload=dict(payload))
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Engine listener failed on %s", type)

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _cancel_clock(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None

    def _cancel_mismatch(self) -> None:
        if self._mismatch_handle is not None:
            self._mismatch_handle.cancel()
            self._mismatch_handle = None

    def _cancel_hint(self) -> None:
        if self._hint_handle is not None:
            self._hint_handle.cancel()
            self._hint_handle = None

    def _cancel_timers(self) -> None:
        self._cancel_clock()
        self._cancel_mismatch()
        self._cancel_hint()

    def _start_clock(self) -> None:
        if self._tick_handle is not None:
            return
        if self.config.time_limit_ms is None or self.status is not GameStatus.running:
            return
        self._tick_handle = self.scheduler.call_later(TICK_MS, self._on_tick)

    def _on_tick(self) -> None:
        self._tick_handle = None
        remaining = max(0, (self._remaining_time_ms or 0) - TICK_MS)
        self._remaining_time_ms = remaining
        if remaining == 0:
            self.finalize(False, self._score)
            return
        self._tick_handle = self.scheduler.call_later(TICK_MS, self._on_tick)
        self._emit("STATE_CHANGED", reason="tick", remaining_time_ms=remaining)
        self._persist()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _find(self, card_id: str) -> Card | None:
        return next((c for c in self._cards if c.id == card_id), None)

    def flip_card(self, card_id: str) -> None:
        if self.status is GameStatus.finished or self._is_resolving or self._is_hint_previewing:
            logger.debug("flip ignored: status=%s resolving=%s", self.status.value, self._is_resolving)
            return
        if len(self._flipped_ids) >= 2:
            return

        card = self._find(card_id)
        if card is None or card.status is not CardStatus.hidden:
            return

        card.status = CardStatus.flipped
        if card_id not in self._flipped_ids:
            self._flipped_ids.append(card_id)
        self._emit("CARD_FLIPPED", card_id=card_id)

        if self.status is GameStatus.ready:
            self._fsm.start_round()
            logger.debug("round started difficulty=%s theme=%s", self._difficulty.value, self._theme.value)
            self._emit("ROUND_STARTED", difficulty=self._difficulty.value)
            self._start_clock()

        if len(self._flipped_ids) == 2:
            self._resolve_flipped()

        self._persist()

    def _resolve_flipped(self) -> None:
        first_id, second_id = self._flipped_ids
        first, second = self._find(first_id), self._find(second_id)
        if first is None or second is None:
            self._flipped_ids = []
            return

        if first.pair_id == second.pair_id:
            first.status = CardStatus.matched
            second.status = CardStatus.matched
            self._score += MATCH_REWARD
            self._matched_pairs += 1
            self._flipped_ids = []
            self._emit("PAIR_MATCHED", pair_id=first.pair_id, score=self._score)
            if self._matched_pairs >= self.total_pairs:
                self.finalize(True, self._score)
            return

        self._is_resolving = True
        self._emit("PAIR_MISMATCHED", card_ids=[first_id, second_id])

        def _hide() -> None:
            self._mismatch_handle = None
            for cid in (first_id, second_id):
                card = self._find(cid)
                if card is not None and card.status is CardStatus.flipped:
                    card.status = CardStatus.hidden
            self._score = max(0, self._score - MISMATCH_PENALTY)
            self._flipped_ids = []
            self._is_resolving = False
            self._emit("STATE_CHANGED", reason="mismatch_hidden", score=self._score)
            self._persist()

        self._cancel_mismatch()
        self._mismatch_handle = self.scheduler.call_later(MISMATCH_HIDE_MS, _hide)

    def use_hint(self) -> None:
        if not self.config.hint_available or self._hint_used or self.status is not GameStatus.running:
            return

        self._hint_used = True
        self._is_hint_previewing = True

        def _close_preview() -> None:
            self._hint_handle = None
            self._is_hint_previewing = False
            self._emit("HINT_ENDED")

        self._cancel_hint()
        self._hint_handle = self.scheduler.call_later(HINT_REVEAL_MS, _close_preview)
        self._emit("HINT_USED")
        self._persist()

    def finalize(self, completed: bool, final_score: int) -> None:
        """End the round. Only completed rounds can set a best score."""

        self._cancel_timers()
        self._is_resolving = False
        self._is_hint_previewing = False
        if self.status is not GameStatus.finished:
            self._fsm.finish_round()
        self._flipped_ids = []
        self._clear_persisted()

        if not completed:
            self._has_new_best = False
            logger.debug("round timed out score=%s", final_score)
            self._emit("ROUND_TIMED_OUT", score=final_score)
            return

        if final_score > self._best_scores.for_difficulty(self._difficulty):
            self._best_scores = self._best_scores.with_score(self._difficulty, final_score)
            self.store.save_best_scores(self._best_scores)
            self._has_new_best = True
        else:
            self._has_new_best = False

        logger.debug("round won score=%s new_best=%s", final_score, self._has_new_best)
        self._emit("ROUND_WON", score=final_score, new_best=self._has_new_best)

    def start_new_round(self, difficulty: Difficulty | str | None = None, theme: Theme | str | None = None) -> None:
        self._cancel_timers()

        self._difficulty = Difficulty(difficulty) if difficulty is not None else self._difficulty
        self._theme = Theme(theme) if theme is not None else self._theme
        self.store.save_last_difficulty(self._difficulty)
        self.store.save_last_theme(self._theme)

        cfg = self.config
        self._cards = build_deck(cfg.total_pairs, self._theme, rng=self._rng)
        self._flipped_ids = []
        self._matched_pairs = 0
        self._score = 0
        self._fsm.reset_round()
        self._is_resolving = False
        self._hint_used = False
        self._is_hint_previewing = False
        self._remaining_time_ms = cfg.time_limit_ms
        self._has_new_best = False
        self._clear_persisted()

        logger.debug("new round difficulty=%s theme=%s", self._difficulty.value, self._theme.value)
        self._emit("ROUND_RESET", difficulty=self._difficulty.value, theme=self._theme.value)

    def restart(self) -> None:
        self.start_new_round()

    def change_difficulty(self, difficulty: Difficulty | str) -> None:
        difficulty = Difficulty(difficulty)
        if difficulty == self._difficulty:
            self.restart()
            return
        self.start_new_round(difficulty=difficulty)

    def change_theme(self, theme: Theme | str) -> None:
        theme = Theme(theme)
        if theme == self._theme:
            self.restart()
            return
        self.start_new_round(theme=theme)

    def resume_session(self) -> None:
        session = self._pending_session
        if session is None:
            return

        self._cancel_timers()

        self._difficulty = session.difficulty
        self._theme = session.theme
        self.store.save_last_difficulty(self._difficulty)
        self.store.save_last_theme(self._theme)

        cfg = self.config
        self._cards = [c.model_copy(deep=True) for c in session.cards]
        self._flipped_ids = list(session.flipped_ids)
        self._matched_pairs = session.matched_pairs
        self._score = session.score
        self._hint_used = session.hint_used
        status = GameStatus.ready if session.status is GameStatus.finished else session.status
        self._fsm = RoundStatusMachine(status)
        self._is_resolving = False
        self._is_hint_previewing = False
        self._remaining_time_ms = (
            session.remaining_time_ms if session.remaining_time_ms is not None else cfg.time_limit_ms
        )
        self._has_new_best = False
        self._clear_persisted()

        logger.debug("session resumed saved_at=%s status=%s", session.saved_at, status.value)
        self._emit("SESSION_RESUMED", saved_at=session.saved_at)

        # Saved mid-mismatch: replay the resolution so the board does not stall.
        if len(self._flipped_ids) == 2:
            self._resolve_flipped()
        if self.status is GameStatus.running:
            self._start_clock()

    def discard_session(self) -> None:
        self._clear_persisted()
        self._emit("STATE_CHANGED", reason="session_discarded")

    def reset_progress(self) -> None:
        self._best_scores = BestScores()
        self.store.save_best_scores(self._best_scores)
        self._clear_persisted()
        self._has_new_best = False
        self._emit("STATE_CHANGED", reason="progress_reset")

    def close(self) -> None:
        self._cancel_timers()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _has_progress(self) -> bool:
        limit = self.config.time_limit_ms
        return (
            self.status is GameStatus.running
            or self._matched_pairs > 0
            or len(self._flipped_ids) > 0
            or (self._remaining_time_ms is not None and self._remaining_time_ms != limit)
        )

    def _persist(self) -> None:
        if self.status is GameStatus.finished or not self._has_progress():
            return

        session = PersistedSession(
            difficulty=self._difficulty,
            theme=self._theme,
            cards=self.cards,
            flipped_ids=list(self._flipped_ids),
            matched_pairs=self._matched_pairs,
            score=self._score,
            remaining_time_ms=self._remaining_time_ms,
            hint_used=self._hint_used,
            status=self.status,
            saved_at=_now_ms(),
        )
        self.store.save_session(session)
        self._pending_session = session

    def _clear_persisted(self) -> None:
        self.store.clear_session()
        self._pending_session = None
