from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class OneShotScheduler:
    """One-shot deferred callbacks on the running event loop.

    Callbacks run as tasks on the same loop that serves requests, so they never
    interleave with a request handler mid-way. One handle is kept per key;
    scheduling a key again replaces the earlier timer.
    """

    def __init__(self) -> None:
        self._handles: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    def schedule(self, *, key: str, delay_ms: int, callback: Callable[[], Awaitable[None]]) -> None:
        loop = asyncio.get_running_loop()

        def _fire() -> None:
            self._handles.pop(key, None)
            task = loop.create_task(callback())
            self._tasks.add(task)
            task.add_done_callback(self._on_done)

        previous = self._handles.pop(key, None)
        if previous is not None:
            previous.cancel()
        self._handles[key] = loop.call_later(max(delay_ms, 0) / 1000, _fire)

    def _on_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Deferred callback failed", exc_info=task.exception())

    def pending(self) -> int:
        return len(self._handles)

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()


scheduler = OneShotScheduler()
