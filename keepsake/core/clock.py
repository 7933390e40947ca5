from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol


class Clock(Protocol):
    def now_ms(self) -> int:  # pragma: no cover
        ...


class SystemClock:
    def now_ms(self) -> int:
        return int(time.time() * 1000)


@dataclass(slots=True)
class FakeClock:
    """Manually advanced clock for tests."""

    ms: int = 0

    def now_ms(self) -> int:
        return self.ms

    def advance(self, ms: int) -> None:
        self.ms += ms
