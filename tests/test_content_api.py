from __future__ import annotations

from conftest import ALICE_ID, ALICE_TOKEN, AppHarness


def test_submit_content_for_signed_in_user(harness: AppHarness) -> None:
    resp = harness.client.post(
        "/content",
        json={"title": "Grandpa's boat", "content_type": "story", "content": "Summer 1971...", "tags": "boat, summer"},
        headers={"Authorization": f"Bearer {ALICE_TOKEN}"},
    )
    assert resp.status_code == 201
    assert resp.json() == {"ok": True, "message": "Content saved successfully!"}

    (row,) = harness.backend.rows["user_content"]
    assert row["user_id"] == ALICE_ID
    assert row["tags"] == ["boat", "summer"]
    assert row["is_private"] is True


def test_submit_content_without_session_still_inserts(harness: AppHarness) -> None:
    resp = harness.client.post("/content", json={"title": "t", "content": "c", "is_private": False})
    assert resp.status_code == 201
    (row,) = harness.backend.rows["user_content"]
    assert row["user_id"] is None
    assert row["is_private"] is False


def test_submit_content_validation_errors(harness: AppHarness) -> None:
    resp = harness.client.post("/content", json={"title": "", "content": ""})
    assert resp.status_code == 422
    assert resp.json()["detail"]["errors"] == {"title": "Title is required", "content": "Content is required"}
    assert harness.backend.insert_calls == 0


def test_submit_content_backend_failure_is_generic(harness: AppHarness) -> None:
    harness.backend.insert_error = "duplicate key value violates unique constraint"
    resp = harness.client.post("/content", json={"title": "t", "content": "c"})
    assert resp.status_code == 502
    assert resp.json()["detail"] == "Failed to save content"


def test_submit_is_rejected_while_one_is_in_flight(harness: AppHarness) -> None:
    harness.r.set("keepsake:inflight:submission:tab-1", "1")

    status_resp = harness.client.get("/content/status", headers={"X-Client-Id": "tab-1"})
    assert status_resp.json() == {"submitting": True}

    resp = harness.client.post("/content", json={"title": "t", "content": "c"}, headers={"X-Client-Id": "tab-1"})
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Submission already in progress"
    assert harness.backend.insert_calls == 0

    # Another client is unaffected.
    other = harness.client.post("/content", json={"title": "t", "content": "c"}, headers={"X-Client-Id": "tab-2"})
    assert other.status_code == 201


def test_in_flight_flag_is_released_after_submit(harness: AppHarness) -> None:
    harness.backend.insert_error = "boom"
    harness.client.post("/content", json={"title": "t", "content": "c"}, headers={"X-Client-Id": "tab-1"})
    assert harness.client.get("/content/status", headers={"X-Client-Id": "tab-1"}).json() == {"submitting": False}


def test_content_types(harness: AppHarness) -> None:
    resp = harness.client.get("/content/types")
    assert resp.status_code == 200
    assert [t["value"] for t in resp.json()] == ["note", "journal", "story", "memory", "other"]
    assert resp.json()[1]["label"] == "Journal Entry"
