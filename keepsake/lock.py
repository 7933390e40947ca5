from __future__ import annotations

from contextlib import contextmanager

import redis


class InFlightError(ValueError):
    """The same client already has this operation outstanding."""


def _inflight_key(operation: str, client_id: str) -> str:
    return f"keepsake:inflight:{operation}:{client_id}"


@contextmanager
def inflight_guard(*, r: redis.Redis, operation: str, client_id: str, ttl_ms: int = 30_000):
    """Hold a per-client "in flight" flag for the duration of one remote call.

    This plays the part of a disabled submit button: a second submit from the
    same client while the first is outstanding is rejected, nothing more. The
    TTL only bounds a flag left behind by a crashed worker.
    """

    key = _inflight_key(operation, client_id)
    acquired = r.set(key, "1", nx=True, px=ttl_ms)
    if not acquired:
        raise InFlightError(f"{operation.capitalize()} already in progress")
    try:
        yield
    finally:
        r.delete(key)


def is_inflight(*, r: redis.Redis, operation: str, client_id: str) -> bool:
    return bool(r.exists(_inflight_key(operation, client_id)))
