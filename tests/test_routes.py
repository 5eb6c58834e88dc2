import base64
import io
import os
import time

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from PIL import Image

from adstudio.pipeline import routes
from adstudio.pipeline.job_store import InMemoryJobStore
from adstudio.pipeline.orchestrator import GenerationService
from stubs import StubProvider, StubVision, success


def _png_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), (10, 200, 10)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def service(storage):
    service = GenerationService(
        InMemoryJobStore(),
        StubProvider(submit_result=success()),
        vision=StubVision(error=RuntimeError("model offline")),
        storage=storage,
        poll_interval=0,
        max_poll_attempts=3,
    )
    routes.set_service(service)
    yield service
    routes.set_service(None)


@pytest.fixture
def client(service):
    app = FastAPI()
    app.include_router(routes.api_router)
    with TestClient(app) as client:
        yield client


def _upload(client) -> str:
    resp = client.post("/api/upload", files={"image": ("shoe.png", _png_bytes(), "image/png")})
    assert resp.status_code == 200
    return resp.json()["filename"]


def _wait_for(client, job_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/api/status/{job_id}").json()
        if body["status"] != "processing":
            return body
        time.sleep(0.02)
    raise AssertionError(f"job {job_id} still processing")


def test_upload(client, storage):
    resp = client.post("/api/upload", files={"image": ("shoe.png", _png_bytes(), "image/png")})
    body = resp.json()
    assert resp.status_code == 200
    assert body["filename"].endswith(".png")
    assert body["image_url"] == f"http://testserver/uploads/{body['filename']}"
    assert os.path.isfile(storage.upload_path(body["filename"]))


def test_upload_rejects_other_types(client):
    resp = client.post("/api/upload", files={"image": ("notes.txt", b"hello", "text/plain")})
    assert resp.status_code == 400


def test_upload_frame(client, storage):
    data_url = "data:image/png;base64," + base64.b64encode(_png_bytes()).decode()
    resp = client.post("/api/upload-frame", json={"image_data": data_url})
    assert resp.status_code == 200
    assert os.path.isfile(storage.upload_path(resp.json()["filename"]))


def test_upload_frame_rejects_garbage(client):
    resp = client.post("/api/upload-frame", json={"image_data": "not a data url"})
    assert resp.status_code == 400


def test_generate_then_poll(client, storage):
    filename = _upload(client)
    resp = client.post("/api/generate", json={"filenames": [filename], "style": "rotating", "count": 2})
    body = resp.json()

    assert resp.status_code == 200
    assert body["status"] == "processing"
    assert body["message"] == "Video generation started"
    assert body["estimated_cost"] == 0.26
    assert len(body["job_ids"]) == 2

    status = _wait_for(client, body["job_ids"][0])
    assert status["status"] == "completed"
    assert status["video_url"].startswith("http://testserver/videos/")
    assert status["error"] == ""


def test_generate_missing_image(client, service):
    resp = client.post("/api/generate", json={"filenames": ["ghost.png"], "style": "rotating"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Image not found: ghost.png"
    assert client.get("/api/jobs").json() == []


def test_generate_unknown_model(client):
    filename = _upload(client)
    resp = client.post("/api/generate", json={"filenames": [filename], "model": "sora:9@9"})
    assert resp.status_code == 400


def test_status_unknown_job(client):
    resp = client.get("/api/status/missing")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Job not found"


def test_cancel_unknown_job(client):
    assert client.post("/api/jobs/missing/cancel").status_code == 404


def test_auto_prompt_failure_is_502(client):
    filename = _upload(client)
    resp = client.post("/api/auto-prompt", json={"filenames": [filename], "style": "cinematic"})
    assert resp.status_code == 502


def test_auto_prompt_without_images_is_400(client):
    resp = client.post("/api/auto-prompt", json={"filenames": []})
    assert resp.status_code == 400


def test_chain(client):
    filename = _upload(client)
    first = client.post("/api/generate", json={"filenames": [filename], "style": "rotating", "duration": 5}).json()
    second = client.post("/api/generate", json={"filenames": [filename], "style": "rotating", "duration": 8}).json()
    ids = [first["job_ids"][0], second["job_ids"][0]]
    for job_id in ids:
        _wait_for(client, job_id)

    resp = client.post("/api/chain", json={"job_ids": ids})
    body = resp.json()
    assert resp.status_code == 200
    assert [s["job_id"] for s in body["segments"]] == ids
    assert body["total_duration"] == 13


def test_jobs_listing(client):
    filename = _upload(client)
    client.post("/api/generate", json={"filenames": [filename]})
    jobs = client.get("/api/jobs").json()
    assert len(jobs) == 1
    assert jobs[0]["style"] == "tiktok"
    assert "image_paths" not in jobs[0]


def test_styles(client):
    styles = client.get("/api/styles").json()
    assert {s["value"] for s in styles} == {"cinematic", "rotating", "lifestyle", "tiktok", "unboxing", "minimal"}
    assert [s["value"] for s in styles if s["default"]] == ["tiktok"]


def test_models(client):
    models = client.get("/api/models").json()
    assert {m["id"] for m in models} == {"google:3@3", "pixverse:1@7", "vidu:4@2", "vidu:4@1"}


def test_service_not_initialized():
    app = FastAPI()
    app.include_router(routes.api_router)
    routes.set_service(None)
    with TestClient(app) as client:
        assert client.get("/api/jobs").status_code == 503
