from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from keepsake.api.models import QuizPhase, QuizQuestion, QuizState, QuizView
from keepsake.core.events import SessionEvent
from keepsake.fsm import QuizFSM


QUESTIONS: tuple[QuizQuestion, ...] = (
    QuizQuestion(
        prompt="What color is the sky on a clear day?",
        options=("Blue", "Green", "Red", "Yellow"),
        answer="Blue",
    ),
    QuizQuestion(
        prompt="How many legs does a cat have?",
        options=("Two", "Four", "Six", "Eight"),
        answer="Four",
    ),
    QuizQuestion(
        prompt="What do we use to see?",
        options=("Ears", "Eyes", "Nose", "Mouth"),
        answer="Eyes",
    ),
    QuizQuestion(
        prompt="What falls from the sky when it rains?",
        options=("Snow", "Leaves", "Raindrops", "Stones"),
        answer="Raindrops",
    ),
)


class ScoreTier(StrEnum):
    perfect = "A"
    good = "B"
    keep_going = "C"


TIER_MESSAGES: dict[ScoreTier, str] = {
    ScoreTier.perfect: "Perfect! Excellent memory!",
    ScoreTier.good: "Good job! Keep practicing!",
    ScoreTier.keep_going: "Keep playing to improve!",
}


@dataclass(frozen=True, slots=True)
class QuizTransition:
    state: QuizState
    correct: bool
    events: list[SessionEvent] = field(default_factory=list)


def _now() -> datetime:
    return datetime.now(tz=UTC)


def new_quiz(session_id: str, *, questions: Sequence[QuizQuestion] = QUESTIONS) -> QuizState:
    if not questions:
        raise ValueError("A quiz needs at least one question")
    now = _now()
    return QuizState(
        session_id=session_id,
        questions=[q.model_copy() for q in questions],
        created_at=now,
        last_updated_at=now,
    )


def score_tier(score: int, total: int) -> ScoreTier:
    if score == total:
        return ScoreTier.perfect
    if score >= total / 2:
        return ScoreTier.good
    return ScoreTier.keep_going


def tier_message(tier: ScoreTier) -> str:
    return TIER_MESSAGES[tier]


def answer(state: QuizState, selected: str) -> QuizTransition:
    """Score one answer and move to the next question (or finish)."""

    if state.phase == QuizPhase.complete:
        raise ValueError("Quiz is completed")

    question = state.questions[state.current]
    if selected not in question.options:
        raise ValueError("Answer must be one of the question's options")

    quiz = state.model_copy(deep=True)
    fsm = QuizFSM(quiz)

    correct = selected == question.answer
    if correct:
        quiz.score += 1

    events = [
        SessionEvent.now(
            type="ANSWER_SELECTED",
            session_id=quiz.session_id,
            payload={"question": state.current, "answer": selected, "correct": correct},
        )
    ]

    if quiz.current < len(quiz.questions) - 1:
        fsm.advance()
        quiz.current += 1
    else:
        fsm.finish()
        tier = score_tier(quiz.score, len(quiz.questions))
        events.append(
            SessionEvent.now(
                type="QUIZ_COMPLETED",
                session_id=quiz.session_id,
                payload={"score": quiz.score, "tier": tier.value},
            )
        )

    fsm.sync_phase_to_model()
    quiz.last_updated_at = _now()
    return QuizTransition(state=quiz, correct=correct, events=events)


def reset(state: QuizState) -> QuizTransition:
    quiz = state.model_copy(deep=True)
    quiz.current = 0
    quiz.score = 0
    quiz.phase = QuizPhase.in_progress
    quiz.last_updated_at = _now()
    return QuizTransition(
        state=quiz,
        correct=False,
        events=[SessionEvent.now(type="QUIZ_RESET", session_id=quiz.session_id)],
    )


def to_view(state: QuizState) -> QuizView:
    total = len(state.questions)
    if state.phase == QuizPhase.complete:
        tier = score_tier(state.score, total)
        return QuizView(
            session_id=state.session_id,
            phase=state.phase,
            score=state.score,
            total=total,
            tier=tier.value,
            message=tier_message(tier),
        )

    question = state.questions[state.current]
    return QuizView(
        session_id=state.session_id,
        phase=state.phase,
        score=state.score,
        total=total,
        question_number=state.current + 1,
        prompt=question.prompt,
        options=list(question.options),
    )
