from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from pdf_service import webapi
from pdf_service.webapi import create_app

HTML = b"<html><body><p>Hello</p></body></html>"


@pytest.fixture
def client(make_service):
    service = make_service()
    with TestClient(create_app(service)) as c:
        yield c


def _poll_until_terminal(client: TestClient, job_id: str, timeout: float = 5.0) -> list[dict]:
    seen = []
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/progress/{job_id}").json()
        seen.append(body)
        if body["status"] in {"completed", "error"}:
            return seen
        time.sleep(0.01)
    raise AssertionError(f"job {job_id} still running: {seen[-1]}")


def test_health(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_convert_poll_download(client: TestClient, renderer):
    response = client.post(
        "/convert",
        files={"htmlFile": ("invoice.html", HTML, "text/html")},
        data={"pageSize": "Letter", "orientation": "landscape", "margin": "narrow", "scale": "0.9"},
    )
    assert response.status_code == 200
    job_id = response.json()["jobId"]
    assert response.json()["message"] == "Conversion started"

    seen = _poll_until_terminal(client, job_id)
    progress = [s["progress"] for s in seen]
    assert progress == sorted(progress)
    final = seen[-1]
    assert final["status"] == "completed"
    assert final["progress"] == 100
    assert final["fileName"] == f"invoice-{job_id[:8]}.pdf"
    assert final["downloadUrl"] == f"/download/{final['fileName']}"

    settings = renderer.sessions[0].settings
    assert settings.page_size == "Letter"
    assert settings.landscape is True
    assert settings.scale == 0.9
    assert settings.margins.top == "10mm"

    download = client.get(final["downloadUrl"])
    assert download.status_code == 200
    assert download.headers["content-type"] == "application/pdf"
    assert download.content.startswith(b"%PDF")


def test_renderer_failure_is_reported_through_progress(client: TestClient, renderer):
    renderer.fail_at = "load"
    job_id = client.post("/convert", files={"htmlFile": ("bad.html", HTML, "text/html")}).json()["jobId"]
    final = _poll_until_terminal(client, job_id)[-1]
    assert final == {"status": "error", "progress": 0, "message": "Conversion failed: could not load content: boom"}


def test_missing_file_is_rejected(client: TestClient):
    response = client.post("/convert", data={"pageSize": "A4"})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "invalid_upload"


def test_wrong_extension_is_rejected(client: TestClient, storage):
    response = client.post("/convert", files={"htmlFile": ("notes.txt", b"hi", "text/plain")})
    assert response.status_code == 400
    assert response.json()["detail"]["message"] == "Only HTML files are allowed"
    assert list(storage.uploads_dir.iterdir()) == []


def test_oversized_file_is_rejected(client: TestClient, monkeypatch, storage):
    monkeypatch.setattr(webapi, "MAX_UPLOAD_MB", 1)
    big = b"<p>" + b"x" * (1024 * 1024) + b"</p>"
    response = client.post("/convert", files={"htmlFile": ("big.html", big, "text/html")})
    assert response.status_code == 400
    assert "1 MB limit" in response.json()["detail"]["message"]
    assert list(storage.uploads_dir.iterdir()) == []


def test_unknown_job_progress(client: TestClient):
    response = client.get("/progress/does-not-exist")
    assert response.status_code == 200
    assert response.json() == {"status": "unknown", "progress": 0}


def test_download_missing_file(client: TestClient):
    response = client.get("/download/nothing-here.pdf")
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "not_found"
