"""Hosted backend access (auth session, table rows, blob storage).

Two implementations share the `HostedBackend` protocol:
- `SupabaseBackend` talks to a Supabase project over its REST APIs.
- `InMemoryBackend` is a test double that records calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)


class BackendError(RuntimeError):
    """A remote operation was rejected or could not be completed."""


@dataclass(frozen=True, slots=True)
class BackendUser:
    id: str
    email: str | None = None


class HostedBackend(Protocol):
    async def get_current_user(self, access_token: str | None) -> BackendUser | None:  # pragma: no cover
        ...

    async def insert_record(self, table: str, record: dict[str, Any]) -> None:  # pragma: no cover
        ...

    async def upload_blob(self, bucket: str, key: str, data: bytes, content_type: str | None = None) -> None:  # pragma: no cover
        ...

    def get_public_url(self, bucket: str, key: str) -> str:  # pragma: no cover
        ...


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        for k in ("message", "error_description", "error", "msg"):
            v = body.get(k)
            if isinstance(v, str) and v:
                return v
    return f"HTTP {resp.status_code}"


class SupabaseBackend:
    """Supabase REST client.

    The user's access token (if any) is forwarded so row-level security applies;
    otherwise requests go out with the anon key.
    """

    def __init__(self, *, url: str, anon_key: str, client: httpx.AsyncClient | None = None) -> None:
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self._client = client or httpx.AsyncClient()
        self._access_token: str | None = None

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        token = access_token or self._access_token or self.anon_key
        return {"apikey": self.anon_key, "Authorization": f"Bearer {token}"}

    async def get_current_user(self, access_token: str | None) -> BackendUser | None:
        if not access_token:
            return None
        try:
            resp = await self._client.get(f"{self.url}/auth/v1/user", headers=self._headers(access_token))
        except httpx.HTTPError as e:
            logger.warning("Session lookup failed: %s", e)
            return None
        if resp.status_code != 200:
            logger.debug("No session for token (HTTP %s)", resp.status_code)
            return None
        try:
            body = resp.json()
        except ValueError:
            logger.debug("Session lookup returned a non-JSON body")
            return None
        user_id = body.get("id") if isinstance(body, dict) else None
        if not user_id:
            return None
        # Subsequent calls in this request act as the signed-in user.
        self._access_token = access_token
        return BackendUser(id=str(user_id), email=body.get("email"))

    async def insert_record(self, table: str, record: dict[str, Any]) -> None:
        headers = self._headers() | {"Prefer": "return=minimal"}
        try:
            resp = await self._client.post(f"{self.url}/rest/v1/{table}", json=record, headers=headers)
        except httpx.HTTPError as e:
            raise BackendError(str(e)) from e
        if resp.status_code >= 400:
            raise BackendError(_error_message(resp))

    async def upload_blob(self, bucket: str, key: str, data: bytes, content_type: str | None = None) -> None:
        headers = self._headers() | {"Content-Type": content_type or "application/octet-stream", "x-upsert": "false"}
        try:
            resp = await self._client.post(
                f"{self.url}/storage/v1/object/{bucket}/{quote(key)}",
                content=data,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise BackendError(str(e)) from e
        if resp.status_code >= 400:
            raise BackendError(_error_message(resp))

    def get_public_url(self, bucket: str, key: str) -> str:
        return f"{self.url}/storage/v1/object/public/{bucket}/{quote(key)}"


@dataclass
class InMemoryBackend:
    """Test double for the hosted backend."""

    base_url: str = "https://example.test"
    users_by_token: dict[str, BackendUser] = field(default_factory=dict)
    rows: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    blobs: dict[tuple[str, str], bytes] = field(default_factory=dict)
    insert_error: str | None = None
    upload_error: str | None = None
    insert_calls: int = 0
    upload_calls: int = 0

    def reset(self) -> None:
        self.rows.clear()
        self.blobs.clear()
        self.insert_error = None
        self.upload_error = None
        self.insert_calls = 0
        self.upload_calls = 0

    async def get_current_user(self, access_token: str | None) -> BackendUser | None:
        if not access_token:
            return None
        return self.users_by_token.get(access_token)

    async def insert_record(self, table: str, record: dict[str, Any]) -> None:
        self.insert_calls += 1
        if self.insert_error:
            raise BackendError(self.insert_error)
        self.rows.setdefault(table, []).append(dict(record))

    async def upload_blob(self, bucket: str, key: str, data: bytes, content_type: str | None = None) -> None:
        self.upload_calls += 1
        if self.upload_error:
            raise BackendError(self.upload_error)
        self.blobs[(bucket, key)] = data

    def get_public_url(self, bucket: str, key: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{key}"
