from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from uuid import uuid4

import redis

from keepsake.api.models import MatchCard, MatchGameState, MatchPhase, PendingResolution, QuizPhase, QuizState
from keepsake.core.clock import Clock
from keepsake.games import matching, quiz

logger = logging.getLogger(__name__)


MATCH_KEY_PREFIX = "keepsake:matching:"  # + {session_id}
QUIZ_KEY_PREFIX = "keepsake:quiz:"  # + {session_id}

DEFAULT_TTL_SECONDS = 3600


class SessionNotFound(LookupError):
    pass


def _match_key(session_id: str) -> str:
    return f"{MATCH_KEY_PREFIX}{session_id}"


def _quiz_key(session_id: str) -> str:
    return f"{QUIZ_KEY_PREFIX}{session_id}"


# --- matching game ---


def save_match(*, r: redis.Redis, state: MatchGameState, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
    matching.check_invariants(state)
    r.set(_match_key(state.session_id), state.model_dump_json(), ex=ttl_seconds)


def _load_match(*, r: redis.Redis, session_id: str) -> MatchGameState | None:
    raw = r.get(_match_key(session_id))
    if not raw:
        return None
    return MatchGameState.model_validate_json(raw)


def get_match(
    *,
    r: redis.Redis,
    session_id: str,
    clock: Clock,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
) -> matching.MatchTransition | None:
    """Load a session, first applying a pair resolution that has come due.

    The returned transition is `accepted` only when this read settled a pair;
    its events then still have to be published, since the timer that was
    scheduled for that pair will find nothing left to do.
    """

    state = _load_match(r=r, session_id=session_id)
    if state is None:
        return None
    settled = matching.resolve_pending(state, now_ms=clock.now_ms())
    if settled.accepted:
        save_match(r=r, state=settled.state, ttl_seconds=ttl_seconds)
        if settled.state.phase == MatchPhase.complete:
            logger.info("Matching session %s completed in %d moves", session_id, settled.state.moves)
    return settled


def require_match(
    *,
    r: redis.Redis,
    session_id: str,
    clock: Clock,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
) -> matching.MatchTransition:
    settled = get_match(r=r, session_id=session_id, clock=clock, ttl_seconds=ttl_seconds)
    if settled is None:
        raise SessionNotFound("Game not found")
    return settled


def create_match(
    *,
    r: redis.Redis,
    rng: random.Random | None = None,
    deck: Sequence[MatchCard] | None = None,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
) -> MatchGameState:
    state = matching.new_game(str(uuid4()), deck=deck, rng=rng)
    save_match(r=r, state=state, ttl_seconds=ttl_seconds)
    logger.debug("Created matching session %s", state.session_id)
    return state


def click_card(
    *,
    r: redis.Redis,
    session_id: str,
    index: int,
    clock: Clock,
    delays: matching.Delays,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
) -> matching.MatchTransition:
    """Apply one card click. The returned events include a pair this call settled first."""

    settled = require_match(r=r, session_id=session_id, clock=clock, ttl_seconds=ttl_seconds)
    result = matching.click_card(settled.state, index, now_ms=clock.now_ms(), delays=delays)
    if not result.accepted:
        logger.debug("Ignored click on card %s in session %s (phase=%s)", index, session_id, settled.state.phase.value)
    else:
        save_match(r=r, state=result.state, ttl_seconds=ttl_seconds)
    return matching.MatchTransition(
        state=result.state,
        accepted=result.accepted,
        events=[*settled.events, *result.events],
        deferred_ms=result.deferred_ms,
    )


def resolve_scheduled(
    *,
    r: redis.Redis,
    session_id: str,
    expected: PendingResolution,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
) -> matching.MatchTransition | None:
    """Timer path: apply exactly the resolution that was scheduled, if still pending."""

    state = _load_match(r=r, session_id=session_id)
    if state is None:
        return None
    result = matching.resolve_pending(state, expected=expected)
    if not result.accepted:
        return None
    save_match(r=r, state=result.state, ttl_seconds=ttl_seconds)
    if result.state.phase == MatchPhase.complete:
        logger.info("Matching session %s completed in %d moves", session_id, result.state.moves)
    return result


def reset_match(
    *,
    r: redis.Redis,
    session_id: str,
    rng: random.Random | None = None,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
) -> matching.MatchTransition:
    state = _load_match(r=r, session_id=session_id)
    if state is None:
        raise SessionNotFound("Game not found")
    result = matching.reset(state, rng=rng)
    save_match(r=r, state=result.state, ttl_seconds=ttl_seconds)
    return result


# --- quiz ---


def save_quiz(*, r: redis.Redis, state: QuizState, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
    r.set(_quiz_key(state.session_id), state.model_dump_json(), ex=ttl_seconds)


def get_quiz(*, r: redis.Redis, session_id: str) -> QuizState | None:
    raw = r.get(_quiz_key(session_id))
    if not raw:
        return None
    return QuizState.model_validate_json(raw)


def require_quiz(*, r: redis.Redis, session_id: str) -> QuizState:
    state = get_quiz(r=r, session_id=session_id)
    if state is None:
        raise SessionNotFound("Quiz not found")
    return state


def create_quiz(*, r: redis.Redis, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> QuizState:
    state = quiz.new_quiz(str(uuid4()))
    save_quiz(r=r, state=state, ttl_seconds=ttl_seconds)
    return state


def answer_quiz(
    *,
    r: redis.Redis,
    session_id: str,
    selected: str,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
) -> quiz.QuizTransition:
    state = require_quiz(r=r, session_id=session_id)
    result = quiz.answer(state, selected)
    save_quiz(r=r, state=result.state, ttl_seconds=ttl_seconds)
    if result.state.phase == QuizPhase.complete:
        logger.info("Quiz %s completed with score %d/%d", session_id, result.state.score, len(result.state.questions))
    return result


def reset_quiz(*, r: redis.Redis, session_id: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> quiz.QuizTransition:
    state = require_quiz(r=r, session_id=session_id)
    result = quiz.reset(state)
    save_quiz(r=r, state=result.state, ttl_seconds=ttl_seconds)
    return result
