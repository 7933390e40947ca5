from __future__ import annotations

import json

import httpx
import pytest

from keepsake.content_editor import submit_content
from keepsake.infra.backend import BackendError, SupabaseBackend

URL = "https://proj.supabase.test"
ANON = "anon-key"


def _backend(handler) -> SupabaseBackend:  # type: ignore[no-untyped-def]
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SupabaseBackend(url=URL + "/", anon_key=ANON, client=client)


@pytest.mark.asyncio
async def test_get_current_user_resolves_id_and_forwards_token_to_later_calls() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/auth/v1/user":
            return httpx.Response(200, json={"id": "u-42", "email": "a@b.test"})
        return httpx.Response(201)

    backend = _backend(handler)
    user = await backend.get_current_user("user-jwt")
    assert user is not None
    assert user.id == "u-42"

    await backend.insert_record("user_content", {"title": "t"})
    await backend.aclose()

    auth_req, insert_req = seen
    assert auth_req.headers["apikey"] == ANON
    assert auth_req.headers["authorization"] == "Bearer user-jwt"
    assert insert_req.url.path == "/rest/v1/user_content"
    assert insert_req.headers["authorization"] == "Bearer user-jwt"
    assert insert_req.headers["prefer"] == "return=minimal"
    assert json.loads(insert_req.content) == {"title": "t"}


@pytest.mark.asyncio
async def test_get_current_user_failure_is_no_user() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "invalid JWT"})

    backend = _backend(handler)
    assert await backend.get_current_user("expired") is None
    assert await backend.get_current_user(None) is None


@pytest.mark.asyncio
async def test_get_current_user_non_json_body_is_no_user() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/auth/v1/user":
            return httpx.Response(200, text="<html>gateway</html>")
        return httpx.Response(201)

    backend = _backend(handler)
    assert await backend.get_current_user("tok") is None

    # The submission still goes through, without an owner and under the anon key.
    notice = await submit_content(backend=backend, form={"title": "t", "content": "c"}, access_token="tok")
    assert notice.ok
    insert_req = seen[-1]
    assert insert_req.url.path == "/rest/v1/user_content"
    assert insert_req.headers["authorization"] == f"Bearer {ANON}"
    assert json.loads(insert_req.content).get("user_id") is None


@pytest.mark.asyncio
async def test_get_current_user_network_error_is_no_user() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    backend = _backend(handler)
    assert await backend.get_current_user("tok") is None


@pytest.mark.asyncio
async def test_insert_error_raises_backend_error_with_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"code": "42501", "message": "permission denied for table user_content"})

    backend = _backend(handler)
    with pytest.raises(BackendError, match="permission denied"):
        await backend.insert_record("user_content", {"title": "t"})


@pytest.mark.asyncio
async def test_upload_blob_posts_bytes_with_anon_key_when_signed_out() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"Key": "memory-photos/anonymous/x.jpg"})

    backend = _backend(handler)
    await backend.upload_blob("memory-photos", "anonymous/x.jpg", b"\xff\xd8", "image/jpeg")

    (req,) = seen
    assert req.method == "POST"
    assert req.url.path == "/storage/v1/object/memory-photos/anonymous/x.jpg"
    assert req.headers["authorization"] == f"Bearer {ANON}"
    assert req.headers["content-type"] == "image/jpeg"
    assert req.content == b"\xff\xd8"


@pytest.mark.asyncio
async def test_upload_error_message_is_raw() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"statusCode": "404", "error": "Bucket not found", "message": "Bucket not found"})

    backend = _backend(handler)
    with pytest.raises(BackendError, match="Bucket not found"):
        await backend.upload_blob("nope", "k.png", b"")


def test_public_url() -> None:
    backend = SupabaseBackend(url=URL, anon_key=ANON, client=httpx.AsyncClient())
    assert backend.get_public_url("music-files", "u1/a.mp3") == f"{URL}/storage/v1/object/public/music-files/u1/a.mp3"
