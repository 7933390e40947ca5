from __future__ import annotations

import os
import random
from collections.abc import Generator
from dataclasses import dataclass
from pathlib import Path

import fakeredis
import pytest
from fastapi.testclient import TestClient

from keepsake.api.deps import get_backend, get_clock, get_redis, get_rng, get_settings
from keepsake.config import DEFAULT_BUCKETS, Settings
from keepsake.core.clock import FakeClock
from keepsake.infra.backend import BackendUser, InMemoryBackend
from keepsake.main import app

ALICE_TOKEN = "token-alice"
ALICE_ID = "9f1c2d7e-alice"


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs.

    In CI, we *don't* auto-load `.env` so a developer's SUPABASE_URL never leaks
    into the hermetic tests. Opt in with KEEPSAKE_LOAD_DOTENV_FOR_TESTS=1.
    """

    if os.environ.get("CI") and os.environ.get("KEEPSAKE_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


def make_settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "supabase_url": None,
        "supabase_anon_key": None,
        "redis_url": "redis://localhost:6379/15",
        "buckets": dict(DEFAULT_BUCKETS),
        # Long enough that timers never fire mid-test; tests advance the fake clock.
        "match_delay_ms": 60_000,
        "mismatch_delay_ms": 120_000,
    }
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


@dataclass
class AppHarness:
    client: TestClient
    r: fakeredis.FakeRedis
    backend: InMemoryBackend
    clock: FakeClock
    settings: Settings


@pytest.fixture()
def backend() -> InMemoryBackend:
    return InMemoryBackend(users_by_token={ALICE_TOKEN: BackendUser(id=ALICE_ID, email="alice@example.test")})


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


@pytest.fixture()
def harness(backend: InMemoryBackend, settings: Settings) -> Generator[AppHarness, None, None]:
    """FastAPI TestClient wired to fakeredis, the in-memory backend and a fake clock."""

    r = fakeredis.FakeRedis(decode_responses=True)
    clock = FakeClock(ms=1_700_000_000_000)

    def _redis() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    app.dependency_overrides[get_redis] = _redis
    app.dependency_overrides[get_backend] = lambda: backend
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_rng] = lambda: random.Random(1234)
    with TestClient(app) as c:
        yield AppHarness(client=c, r=r, backend=backend, clock=clock, settings=settings)
    app.dependency_overrides.clear()
