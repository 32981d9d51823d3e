from __future__ import annotations

from statemachine import State, StateMachine

from memory_game.models import GameStatus


class RoundStatusMachine(StateMachine):
    """Guards round status transitions.

    ready -> running -> finished, and back to ready on a new round or a resume.
    The engine applies all other state; this machine only owns `status`.
    """

    ready = State(GameStatus.ready.value, value=GameStatus.ready.value, initial=True)
    running = State(GameStatus.running.value, value=GameStatus.running.value)
    finished = State(GameStatus.finished.value, value=GameStatus.finished.value)

    start_round = ready.to(running)
    finish_round = running.to(finished) | ready.to(finished)
    reset_round = ready.to(ready) | running.to(ready) | finished.to(ready)

    def __init__(self, status: GameStatus = GameStatus.ready):
        super().__init__(start_value=GameStatus(status).value)

    @property
    def status(self) -> GameStatus:
        return GameStatus(str(self.current_state.value))
