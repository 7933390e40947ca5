from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Sequence

from fastapi import WebSocket
from pydantic import BaseModel

from keepsake.core.events import SessionEvent

logger = logging.getLogger(__name__)

SESSION_UPDATED = "session_updated"


def session_message(session_id: str, events: Sequence[SessionEvent], view: BaseModel) -> dict[str, object]:
    """The one message shape pages receive: what happened, then the view to render."""

    return {
        "type": SESSION_UPDATED,
        "session_id": session_id,
        "events": [e.as_dict() for e in events],
        "view": view.model_dump(mode="json"),
    }


class SessionWebSocketHub:
    """In-process fan-out of game session updates to open pages.

    Every accepted input and every settled pair is published here, whether it
    came from a request or from a deferred timer, so a page watching a session
    never has to poll to see its cards flip back.
    """

    def __init__(self) -> None:
        self._by_session: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, session_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._by_session[session_id].add(websocket)
        logger.debug("Page subscribed to session %s", session_id)

    async def disconnect(self, session_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            self._drop(session_id, [websocket])

    def subscriber_count(self, session_id: str) -> int:
        return len(self._by_session.get(session_id, ()))

    async def publish(self, session_id: str, events: Sequence[SessionEvent], view: BaseModel) -> int:
        """Send one update to every page on the session; returns how many received it."""

        if not events:
            return 0
        async with self._lock:
            conns = list(self._by_session.get(session_id, ()))
        if not conns:
            return 0

        message = session_message(session_id, events, view)
        dead: list[WebSocket] = []
        for ws in conns:
            try:
                await ws.send_json(message)
            except Exception:
                logger.debug("Dropping closed page on session %s", session_id, exc_info=True)
                dead.append(ws)

        if dead:
            async with self._lock:
                self._drop(session_id, dead)
        return len(conns) - len(dead)

    def _drop(self, session_id: str, websockets: Sequence[WebSocket]) -> None:
        conns = self._by_session.get(session_id)
        if not conns:
            return
        conns.difference_update(websockets)
        if not conns:
            self._by_session.pop(session_id, None)


hub = SessionWebSocketHub()
