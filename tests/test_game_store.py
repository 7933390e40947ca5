from __future__ import annotations

import fakeredis

from keepsake import game_store
from keepsake.api.models import MatchCard, MatchPhase
from keepsake.core.clock import FakeClock
from keepsake.games.matching import Delays

DELAYS = Delays(match_ms=500, mismatch_ms=1000)


def _deck(*values: str) -> list[MatchCard]:
    return [MatchCard(id=i, value=v) for i, v in enumerate(values)]


def test_get_match_reports_the_pair_it_settled() -> None:
    r = fakeredis.FakeRedis(decode_responses=True)
    clock = FakeClock(ms=1_000)
    state = game_store.create_match(r=r, deck=_deck("A", "B", "A", "B"))
    sid = state.session_id

    game_store.click_card(r=r, session_id=sid, index=0, clock=clock, delays=DELAYS)
    clicked = game_store.click_card(r=r, session_id=sid, index=2, clock=clock, delays=DELAYS)
    pending = clicked.state.pending
    assert pending is not None

    early = game_store.get_match(r=r, session_id=sid, clock=clock)
    assert early is not None
    assert not early.accepted
    assert early.events == []

    clock.advance(500)
    settled = game_store.get_match(r=r, session_id=sid, clock=clock)
    assert settled is not None
    assert settled.accepted
    assert [e.type for e in settled.events] == ["PAIR_MATCHED"]
    assert settled.state.phase == MatchPhase.idle

    # The timer arriving afterwards has nothing left to apply.
    assert game_store.resolve_scheduled(r=r, session_id=sid, expected=pending) is None


def test_ignored_click_still_carries_the_settled_pair() -> None:
    r = fakeredis.FakeRedis(decode_responses=True)
    clock = FakeClock(ms=0)
    sid = game_store.create_match(r=r, deck=_deck("A", "A")).session_id

    game_store.click_card(r=r, session_id=sid, index=0, clock=clock, delays=DELAYS)
    game_store.click_card(r=r, session_id=sid, index=1, clock=clock, delays=DELAYS)
    clock.advance(500)

    result = game_store.click_card(r=r, session_id=sid, index=0, clock=clock, delays=DELAYS)
    assert not result.accepted
    assert [e.type for e in result.events] == ["PAIR_MATCHED", "GAME_COMPLETED"]
    assert result.state.phase == MatchPhase.complete
    assert game_store.get_match(r=r, session_id="missing", clock=clock) is None
