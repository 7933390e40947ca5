from __future__ import annotations

from conftest import ALICE_ID, ALICE_TOKEN, AppHarness


def test_upload_image(harness: AppHarness) -> None:
    resp = harness.client.post(
        "/uploads",
        data={"category": "image"},
        files=[("file", ("beach.jpeg", b"\xff\xd8\xff", "image/jpeg"))],
        headers={"Authorization": f"Bearer {ALICE_TOKEN}"},
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["bucket"] == "memory-photos"
    assert body["key"].startswith(f"{ALICE_ID}/")
    assert body["key"].endswith(".jpeg")
    assert body["preview"] == "image"
    assert body["public_url"].endswith(body["key"])
    assert harness.backend.blobs[("memory-photos", body["key"])] == b"\xff\xd8\xff"


def test_upload_without_file_is_input_error(harness: AppHarness) -> None:
    resp = harness.client.post("/uploads", data={"category": "audio"})
    assert resp.status_code == 422
    assert resp.json()["detail"] == "Please select a file to upload."
    assert harness.backend.upload_calls == 0


def test_upload_failure_surfaces_raw_message(harness: AppHarness) -> None:
    harness.backend.upload_error = "Payload too large"
    resp = harness.client.post(
        "/uploads",
        data={"category": "document"},
        files=[("file", ("notes.pdf", b"%PDF-1.4", "application/pdf"))],
    )
    assert resp.status_code == 502
    assert resp.json()["detail"] == "Error uploading file: Payload too large"
    assert harness.client.get("/uploads/status").json() == {"uploading": False}


def test_anonymous_upload_goes_to_anonymous_folder(harness: AppHarness) -> None:
    resp = harness.client.post(
        "/uploads",
        data={"category": "audio"},
        files=[("file", ("song.mp3", b"ID3", "audio/mpeg"))],
    )
    assert resp.status_code == 201
    assert resp.json()["key"].startswith("anonymous/")
    assert resp.json()["bucket"] == "music-files"


def test_upload_rejected_while_in_flight(harness: AppHarness) -> None:
    harness.r.set("keepsake:inflight:upload:anonymous", "1")
    assert harness.client.get("/uploads/status").json() == {"uploading": True}
    resp = harness.client.post(
        "/uploads",
        data={"category": "image"},
        files=[("file", ("a.png", b"x", "image/png"))],
    )
    assert resp.status_code == 409
    assert harness.backend.upload_calls == 0


def test_upload_categories(harness: AppHarness) -> None:
    body = harness.client.get("/uploads/categories").json()
    assert body["image"] == {"label": "Photo/Image", "bucket": "memory-photos", "accept": "image/*"}
    assert body["document"]["bucket"] == "user-documents"
