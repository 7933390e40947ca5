from __future__ import annotations

import os
from dataclasses import dataclass, field

from keepsake.api.models import AssetCategory


DEFAULT_BUCKETS: dict[AssetCategory, str] = {
    AssetCategory.image: "memory-photos",
    AssetCategory.audio: "music-files",
    AssetCategory.document: "user-documents",
}


@dataclass(frozen=True, slots=True)
class Settings:
    supabase_url: str | None
    supabase_anon_key: str | None
    redis_url: str
    buckets: dict[AssetCategory, str] = field(default_factory=lambda: dict(DEFAULT_BUCKETS))
    match_delay_ms: int = 500
    mismatch_delay_ms: int = 1000
    session_ttl_seconds: int = 3600
    inflight_ttl_ms: int = 30_000
    log_level: str = "INFO"

    @property
    def use_in_memory_backend(self) -> bool:
        return not self.supabase_url


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from e


def settings_from_env() -> Settings:
    buckets = {
        AssetCategory.image: os.environ.get("KEEPSAKE_BUCKET_IMAGE", DEFAULT_BUCKETS[AssetCategory.image]),
        AssetCategory.audio: os.environ.get("KEEPSAKE_BUCKET_AUDIO", DEFAULT_BUCKETS[AssetCategory.audio]),
        AssetCategory.document: os.environ.get("KEEPSAKE_BUCKET_DOCUMENT", DEFAULT_BUCKETS[AssetCategory.document]),
    }
    return Settings(
        supabase_url=os.environ.get("SUPABASE_URL") or None,
        supabase_anon_key=os.environ.get("SUPABASE_ANON_KEY") or None,
        redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
        buckets=buckets,
        match_delay_ms=_int_from_env("KEEPSAKE_MATCH_DELAY_MS", 500),
        mismatch_delay_ms=_int_from_env("KEEPSAKE_MISMATCH_DELAY_MS", 1000),
        session_ttl_seconds=_int_from_env("KEEPSAKE_SESSION_TTL_SECONDS", 3600),
        inflight_ttl_ms=_int_from_env("KEEPSAKE_INFLIGHT_TTL_MS", 30_000),
        log_level=os.environ.get("KEEPSAKE_LOG_LEVEL", "INFO").upper(),
    )
