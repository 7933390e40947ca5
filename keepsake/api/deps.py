from __future__ import annotations

import hashlib
import random
from collections.abc import AsyncGenerator, Generator

import redis
from fastapi import Depends, Header

from keepsake.config import Settings, settings_from_env
from keepsake.core.clock import Clock, SystemClock
from keepsake.infra.backend import HostedBackend, InMemoryBackend, SupabaseBackend
from keepsake.infra.redis_client import create_redis

ANONYMOUS_CLIENT = "anonymous"

_in_memory_backend: InMemoryBackend | None = None
_clock = SystemClock()


def get_settings() -> Settings:
    return settings_from_env()


def get_redis(settings: Settings = Depends(get_settings)) -> Generator[redis.Redis, None, None]:
    client = create_redis(settings.redis_url)
    try:
        yield client
    finally:
        try:
            client.close()
        except Exception:
            # Some redis client versions don't require explicit close.
            pass


def _shared_in_memory_backend() -> InMemoryBackend:
    # One instance so rows/blobs survive across requests in local dev.
    global _in_memory_backend
    if _in_memory_backend is None:
        _in_memory_backend = InMemoryBackend()
    return _in_memory_backend


async def get_backend(settings: Settings = Depends(get_settings)) -> AsyncGenerator[HostedBackend, None]:
    if settings.use_in_memory_backend:
        yield _shared_in_memory_backend()
        return

    backend = SupabaseBackend(url=settings.supabase_url or "", anon_key=settings.supabase_anon_key or "")
    try:
        yield backend
    finally:
        await backend.aclose()


def get_clock() -> Clock:
    return _clock


def get_rng() -> random.Random | None:
    # None => a fresh unseeded shuffle per deck.
    return None


def get_access_token(authorization: str | None = Header(default=None)) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_client_id(
    x_client_id: str | None = Header(default=None),
    access_token: str | None = Depends(get_access_token),
) -> str:
    """Identity for the in-flight guard: explicit client id, else the token, else anonymous."""

    if x_client_id and x_client_id.strip():
        return x_client_id.strip()
    if access_token:
        return "token-" + hashlib.sha256(access_token.encode("utf-8")).hexdigest()[:16]
    return ANONYMOUS_CLIENT
