"""Matching-pairs game engine.

Every operation is a pure transition: it takes a `MatchGameState` and returns a
`MatchTransition` holding a new state, never mutating its input. Resolution of a
revealed pair is deferred: the second click records a `PendingResolution` due at
a point in time, and the host applies `resolve_pending` once that time arrives.
"""

from __future__ import annotations

import random
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from keepsake.api.models import (
    MatchCard,
    MatchCardView,
    MatchGameState,
    MatchGameView,
    MatchPhase,
    PendingResolution,
)
from keepsake.core.events import SessionEvent
from keepsake.fsm import MatchGameFSM

# Simple, high-contrast icons.
CARD_VALUES: tuple[str, ...] = ("🐶", "🐱", "🐰", "🐦", "🌸", "🌞", "🍎", "🍪")

HIDDEN_FACE = "?"


@dataclass(frozen=True, slots=True)
class Delays:
    match_ms: int = 500
    mismatch_ms: int = 1000


@dataclass(frozen=True, slots=True)
class MatchTransition:
    """Result of applying one input or timer event.

    - `accepted`: False when the event was ignored and `state` is the input state.
    - `deferred_ms`: set when a pair resolution was scheduled by this event.
    """

    state: MatchGameState
    accepted: bool
    events: list[SessionEvent] = field(default_factory=list)
    deferred_ms: int | None = None


def _now() -> datetime:
    return datetime.now(tz=UTC)


def build_deck(values: Sequence[str] = CARD_VALUES, *, rng: random.Random | None = None) -> list[MatchCard]:
    """Two cards per value, in a uniformly random order."""

    cards = [MatchCard(id=i, value=v) for i, v in enumerate([*values, *values])]
    (rng or random.SystemRandom()).shuffle(cards)
    return cards


def new_game(
    session_id: str,
    *,
    deck: Sequence[MatchCard] | None = None,
    rng: random.Random | None = None,
) -> MatchGameState:
    cards = [c.model_copy() for c in deck] if deck is not None else build_deck(rng=rng)
    now = _now()
    return MatchGameState(session_id=session_id, cards=cards, created_at=now, last_updated_at=now)


def check_invariants(state: MatchGameState, *, require_pairs: bool = True) -> None:
    open_cards = [i for i, c in enumerate(state.cards) if c.revealed and not c.matched]
    if len(open_cards) > 2:
        raise ValueError(f"More than two unresolved cards revealed: {open_cards}")
    if any(c.matched and not c.revealed for c in state.cards):
        raise ValueError("Matched card is not revealed")
    if len(state.awaiting) > 2:
        raise ValueError("At most two cards may await evaluation")
    if not require_pairs:
        return
    counts = Counter(c.value for c in state.cards)
    bad = sorted(v for v, n in counts.items() if n != 2)
    if bad:
        raise ValueError(f"Every value must appear exactly twice (offending: {bad})")


def click_card(state: MatchGameState, index: int, *, now_ms: int, delays: Delays = Delays()) -> MatchTransition:
    if index < 0 or index >= len(state.cards):
        raise ValueError(f"Card index out of range: {index}")

    target = state.cards[index]
    # Two unresolved cards block every click until the pending resolution runs.
    if len(state.awaiting) == 2 or target.revealed or target.matched:
        return MatchTransition(state=state, accepted=False)

    game = state.model_copy(deep=True)
    fsm = MatchGameFSM(game)

    game.cards[index].revealed = True
    game.awaiting.append(index)
    events = [
        SessionEvent.now(
            type="CARD_REVEALED",
            session_id=game.session_id,
            payload={"index": index, "value": game.cards[index].value},
        )
    ]

    deferred_ms: int | None = None
    if len(game.awaiting) == 1:
        fsm.reveal_first()
    else:
        fsm.reveal_second()
        game.moves += 1
        first, second = game.awaiting
        same = game.cards[first].value == game.cards[second].value
        deferred_ms = delays.match_ms if same else delays.mismatch_ms
        game.pending = PendingResolution(
            kind="match" if same else "mismatch",
            indices=(first, second),
            due_at_ms=now_ms + deferred_ms,
        )

    fsm.sync_phase_to_model()
    game.last_updated_at = _now()
    return MatchTransition(state=game, accepted=True, events=events, deferred_ms=deferred_ms)


def resolve_pending(
    state: MatchGameState,
    *,
    now_ms: int | None = None,
    expected: PendingResolution | None = None,
) -> MatchTransition:
    """Apply the pending pair resolution.

    With `now_ms`, only a resolution that is already due is applied. With
    `expected`, only that exact resolution is applied (a timer firing for a pair
    that was already settled is a no-op).
    """

    pending = state.pending
    if pending is None:
        return MatchTransition(state=state, accepted=False)
    if expected is not None and pending != expected:
        return MatchTransition(state=state, accepted=False)
    if now_ms is not None and now_ms < pending.due_at_ms:
        return MatchTransition(state=state, accepted=False)

    game = state.model_copy(deep=True)
    fsm = MatchGameFSM(game)
    first, second = pending.indices
    payload = {"indices": [first, second], "moves": game.moves}
    events: list[SessionEvent] = []

    if pending.kind == "match":
        game.cards[first].matched = True
        game.cards[second].matched = True
        events.append(SessionEvent.now(type="PAIR_MATCHED", session_id=game.session_id, payload=payload))
    else:
        game.cards[first].revealed = False
        game.cards[second].revealed = False
        events.append(SessionEvent.now(type="PAIR_MISMATCHED", session_id=game.session_id, payload=payload))

    game.awaiting = []
    game.pending = None

    if all(c.matched for c in game.cards):
        fsm.finish()
        events.append(
            SessionEvent.now(type="GAME_COMPLETED", session_id=game.session_id, payload={"moves": game.moves})
        )
    else:
        fsm.settle()

    fsm.sync_phase_to_model()
    game.last_updated_at = _now()
    return MatchTransition(state=game, accepted=True, events=events)


def reset(
    state: MatchGameState,
    *,
    deck: Sequence[MatchCard] | None = None,
    rng: random.Random | None = None,
) -> MatchTransition:
    game = new_game(state.session_id, deck=deck, rng=rng)
    return MatchTransition(
        state=game,
        accepted=True,
        events=[SessionEvent.now(type="GAME_RESET", session_id=game.session_id)],
    )


def completion_message(state: MatchGameState) -> str | None:
    if state.phase != MatchPhase.complete:
        return None
    return f"You completed the game in {state.moves} moves!"


def to_view(state: MatchGameState, *, accepted: bool = True) -> MatchGameView:
    cards = [
        MatchCardView(
            id=c.id,
            face=c.value if (c.revealed or c.matched) else HIDDEN_FACE,
            revealed=c.revealed,
            matched=c.matched,
        )
        for c in state.cards
    ]
    return MatchGameView(
        session_id=state.session_id,
        cards=cards,
        moves=state.moves,
        phase=state.phase,
        completed=state.phase == MatchPhase.complete,
        message=completion_message(state),
        accepted=accepted,
    )
