from __future__ import annotations

from statemachine import State, StateMachine

from keepsake.api.models import MatchGameState, MatchPhase, QuizPhase, QuizState


class MatchGameFSM(StateMachine):
    """FSM wrapper around MatchGameState.

    Only guards the global phase; per-card flags are mutated by the engine in
    `keepsake.games.matching`. Reset builds a new state rather than leaving
    `complete`, so `complete` is final.
    """

    idle = State(MatchPhase.idle.value, value=MatchPhase.idle.value, initial=True)
    one_revealed = State(MatchPhase.one_revealed.value, value=MatchPhase.one_revealed.value)
    evaluating = State(MatchPhase.evaluating.value, value=MatchPhase.evaluating.value)
    complete = State(MatchPhase.complete.value, value=MatchPhase.complete.value, final=True)

    reveal_first = idle.to(one_revealed)
    reveal_second = one_revealed.to(evaluating)
    settle = evaluating.to(idle)
    finish = evaluating.to(complete)

    def __init__(self, game: MatchGameState):
        self.game = game
        super().__init__(start_value=game.phase.value)

    def sync_phase_to_model(self) -> None:
        self.game.phase = MatchPhase(str(self.current_state.value))


class QuizFSM(StateMachine):
    in_progress = State(QuizPhase.in_progress.value, value=QuizPhase.in_progress.value, initial=True)
    complete = State(QuizPhase.complete.value, value=QuizPhase.complete.value, final=True)

    advance = in_progress.to.itself()
    finish = in_progress.to(complete)

    def __init__(self, quiz: QuizState):
        self.quiz = quiz
        super().__init__(start_value=quiz.phase.value)

    def sync_phase_to_model(self) -> None:
        self.quiz.phase = QuizPhase(str(self.current_state.value))
