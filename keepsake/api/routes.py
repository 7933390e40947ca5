from __future__ import annotations

import logging
import random
from typing import Any

import redis
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, WebSocket, WebSocketDisconnect, status

from keepsake import game_store
from keepsake.api.deps import get_access_token, get_backend, get_client_id, get_clock, get_redis, get_rng, get_settings
from keepsake.api.models import (
    CONTENT_TYPE_LABELS,
    AssetCategory,
    CategoryInfo,
    ContentTypeOption,
    MatchGameView,
    Notice,
    PendingResolution,
    QuizAnswerRequest,
    QuizView,
    SubmittingStatus,
    UploadingStatus,
    UploadResult,
)
from keepsake.config import Settings
from keepsake.content_editor import ContentValidationError, SubmissionFailed, submit_content
from keepsake.core.clock import Clock
from keepsake.games import matching, quiz
from keepsake.infra.backend import HostedBackend
from keepsake.lock import InFlightError, inflight_guard, is_inflight
from keepsake.scheduler import scheduler
from keepsake.uploader import LocalFile, NoFileSelected, UploadFailed, category_catalog, upload_asset
from keepsake.websocket_hub import hub

logger = logging.getLogger(__name__)

router = APIRouter()

SUBMISSION = "submission"
UPLOAD = "upload"


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


# --- content editor ---


@router.get("/content/types", response_model=list[ContentTypeOption])
async def content_types_route() -> list[ContentTypeOption]:
    return [ContentTypeOption(value=t, label=label) for t, label in CONTENT_TYPE_LABELS.items()]


@router.get("/content/status", response_model=SubmittingStatus)
async def content_status_route(
    client_id: str = Depends(get_client_id),
    r: redis.Redis = Depends(get_redis),
) -> SubmittingStatus:
    return SubmittingStatus(submitting=is_inflight(r=r, operation=SUBMISSION, client_id=client_id))


@router.post("/content", response_model=Notice, status_code=status.HTTP_201_CREATED)
async def submit_content_route(
    body: dict[str, Any],
    access_token: str | None = Depends(get_access_token),
    client_id: str = Depends(get_client_id),
    backend: HostedBackend = Depends(get_backend),
    settings: Settings = Depends(get_settings),
    r: redis.Redis = Depends(get_redis),
) -> Notice:
    try:
        with inflight_guard(r=r, operation=SUBMISSION, client_id=client_id, ttl_ms=settings.inflight_ttl_ms):
            return await submit_content(backend=backend, form=body, access_token=access_token)
    except InFlightError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except ContentValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail={"errors": e.errors}) from e
    except SubmissionFailed as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e


# --- uploader ---


@router.get("/uploads/categories", response_model=dict[AssetCategory, CategoryInfo])
async def upload_categories_route(settings: Settings = Depends(get_settings)) -> dict[AssetCategory, CategoryInfo]:
    return category_catalog(settings.buckets)


@router.get("/uploads/status", response_model=UploadingStatus)
async def upload_status_route(
    client_id: str = Depends(get_client_id),
    r: redis.Redis = Depends(get_redis),
) -> UploadingStatus:
    return UploadingStatus(uploading=is_inflight(r=r, operation=UPLOAD, client_id=client_id))


@router.post("/uploads", response_model=UploadResult, status_code=status.HTTP_201_CREATED)
async def upload_route(
    category: AssetCategory = Form(...),
    file: list[UploadFile] | None = File(default=None),
    access_token: str | None = Depends(get_access_token),
    client_id: str = Depends(get_client_id),
    backend: HostedBackend = Depends(get_backend),
    settings: Settings = Depends(get_settings),
    r: redis.Redis = Depends(get_redis),
) -> UploadResult:
    try:
        with inflight_guard(r=r, operation=UPLOAD, client_id=client_id, ttl_ms=settings.inflight_ttl_ms):
            # An empty file input still posts one part with no filename.
            selected = [
                LocalFile(filename=f.filename, data=await f.read(), content_type=f.content_type)
                for f in (file or [])
                if f.filename
            ]
            return await upload_asset(
                backend=backend,
                category=category,
                files=selected,
                access_token=access_token,
                buckets=settings.buckets,
            )
    except InFlightError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except NoFileSelected as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    except UploadFailed as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Error uploading file: {e}") from e


# --- matching game ---


async def _resolve_and_publish(
    *,
    r: redis.Redis,
    session_id: str,
    expected: PendingResolution,
    ttl_seconds: int,
) -> None:
    result = game_store.resolve_scheduled(r=r, session_id=session_id, expected=expected, ttl_seconds=ttl_seconds)
    if result is None:
        return
    await hub.publish(session_id, result.events, matching.to_view(result.state))


def _schedule_resolution(*, r: redis.Redis, result: matching.MatchTransition, ttl_seconds: int) -> None:
    pending = result.state.pending
    if pending is None or result.deferred_ms is None:
        return
    session_id = result.state.session_id

    async def _callback() -> None:
        await _resolve_and_publish(r=r, session_id=session_id, expected=pending, ttl_seconds=ttl_seconds)

    scheduler.schedule(key=f"matching:{session_id}", delay_ms=result.deferred_ms, callback=_callback)


@router.websocket("/ws/games/{session_id}")
async def session_updates_ws(websocket: WebSocket, session_id: str) -> None:
    await hub.connect(session_id, websocket)

    try:
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(session_id, websocket)
    except Exception:
        await hub.disconnect(session_id, websocket)
        raise


@router.post("/games/matching", response_model=MatchGameView, status_code=status.HTTP_201_CREATED)
async def create_matching_route(
    rng: random.Random | None = Depends(get_rng),
    settings: Settings = Depends(get_settings),
    r: redis.Redis = Depends(get_redis),
) -> MatchGameView:
    state = game_store.create_match(r=r, rng=rng, ttl_seconds=settings.session_ttl_seconds)
    return matching.to_view(state)


@router.get("/games/matching/{session_id}", response_model=MatchGameView)
async def get_matching_route(
    session_id: str,
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
    r: redis.Redis = Depends(get_redis),
) -> MatchGameView:
    settled = game_store.get_match(r=r, session_id=session_id, clock=clock, ttl_seconds=settings.session_ttl_seconds)
    if settled is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Game not found")
    view = matching.to_view(settled.state)
    # This read may have settled a pair ahead of its timer.
    await hub.publish(session_id, settled.events, view)
    return view


@router.post("/games/matching/{session_id}/cards/{index}", response_model=MatchGameView)
async def click_card_route(
    session_id: str,
    index: int,
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
    r: redis.Redis = Depends(get_redis),
) -> MatchGameView:
    delays = matching.Delays(match_ms=settings.match_delay_ms, mismatch_ms=settings.mismatch_delay_ms)
    try:
        result = game_store.click_card(
            r=r,
            session_id=session_id,
            index=index,
            clock=clock,
            delays=delays,
            ttl_seconds=settings.session_ttl_seconds,
        )
    except game_store.SessionNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    view = matching.to_view(result.state, accepted=result.accepted)
    if result.accepted:
        _schedule_resolution(r=r, result=result, ttl_seconds=settings.session_ttl_seconds)
    await hub.publish(session_id, result.events, view)
    return view


@router.post("/games/matching/{session_id}/reset", response_model=MatchGameView)
async def reset_matching_route(
    session_id: str,
    rng: random.Random | None = Depends(get_rng),
    settings: Settings = Depends(get_settings),
    r: redis.Redis = Depends(get_redis),
) -> MatchGameView:
    try:
        result = game_store.reset_match(r=r, session_id=session_id, rng=rng, ttl_seconds=settings.session_ttl_seconds)
    except game_store.SessionNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    view = matching.to_view(result.state)
    await hub.publish(session_id, result.events, view)
    return view


# --- quiz ---


@router.post("/games/quiz", response_model=QuizView, status_code=status.HTTP_201_CREATED)
async def create_quiz_route(
    settings: Settings = Depends(get_settings),
    r: redis.Redis = Depends(get_redis),
) -> QuizView:
    return quiz.to_view(game_store.create_quiz(r=r, ttl_seconds=settings.session_ttl_seconds))


@router.get("/games/quiz/{session_id}", response_model=QuizView)
async def get_quiz_route(session_id: str, r: redis.Redis = Depends(get_redis)) -> QuizView:
    state = game_store.get_quiz(r=r, session_id=session_id)
    if state is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")
    return quiz.to_view(state)


@router.post("/games/quiz/{session_id}/answer", response_model=QuizView)
async def answer_quiz_route(
    session_id: str,
    payload: QuizAnswerRequest,
    settings: Settings = Depends(get_settings),
    r: redis.Redis = Depends(get_redis),
) -> QuizView:
    try:
        result = game_store.answer_quiz(
            r=r,
            session_id=session_id,
            selected=payload.answer,
            ttl_seconds=settings.session_ttl_seconds,
        )
    except game_store.SessionNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    view = quiz.to_view(result.state)
    await hub.publish(session_id, result.events, view)
    return view


@router.post("/games/quiz/{session_id}/reset", response_model=QuizView)
async def reset_quiz_route(
    session_id: str,
    settings: Settings = Depends(get_settings),
    r: redis.Redis = Depends(get_redis),
) -> QuizView:
    try:
        result = game_store.reset_quiz(r=r, session_id=session_id, ttl_seconds=settings.session_ttl_seconds)
    except game_store.SessionNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    view = quiz.to_view(result.state)
    await hub.publish(session_id, result.events, view)
    return view
