from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

EventType = Literal[
    "CARD_REVEALED",
    "PAIR_MATCHED",
    "PAIR_MISMATCHED",
    "GAME_COMPLETED",
    "GAME_RESET",
    "ANSWER_SELECTED",
    "QUIZ_COMPLETED",
    "QUIZ_RESET",
]


@dataclass(frozen=True, slots=True)
class SessionEvent:
    type: EventType
    session_id: str
    payload: dict[str, Any]
    ts: datetime

    @staticmethod
    def now(*, type: EventType, session_id: str, payload: dict[str, Any] | None = None) -> "SessionEvent":
        return SessionEvent(type=type, session_id=session_id, payload=payload or {}, ts=datetime.now(timezone.utc))

    def as_dict(self) -> dict[str, object]:
        return {
            "type": self.type,
            "payload": self.payload,
            "ts": self.ts.isoformat(),
        }
