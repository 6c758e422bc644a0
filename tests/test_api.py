"""Tests for RIPAUDIT API: health, info, audit jobs and reports."""

from __future__ import annotations

import time
from pathlib import Path

import numpy as np
import pytest
from fastapi.testclient import TestClient

from conftest import sine, write_wav
from ripaudit.api.routes.quality import get_catalog_factory
from ripaudit.api.server import app
from ripaudit.catalog import DirectoryCatalog

client = TestClient(app)


# ── Helpers ──────────────────────────────────────────────


def _library(root: Path) -> Path:
    """Two small stereo tracks and one mono track."""
    for name, freq in (("Band - One", 440), ("Band - Two", 550)):
        write_wav(
            root / f"{name}.wav",
            np.column_stack([sine(freq, 1.0, 0.4), sine(freq * 1.5, 1.0, 0.3)]),
        )
    write_wav(root / "Solo - Mono.wav", sine(330, 1.0, 0.4))
    return root


def _wait(c: TestClient, job_id: str, timeout_s: float = 30.0) -> dict:
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        data = c.get(f"/api/quality/status/{job_id}").json()
        if data["status"] not in ("pending", "running"):
            return data
        time.sleep(0.05)
    raise AssertionError(f"job {job_id} did not finish")


@pytest.fixture
def audit_client(tmp_path):
    library = _library(tmp_path)
    app.dependency_overrides[get_catalog_factory] = lambda: (lambda _dir: DirectoryCatalog(library))
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ── Health & Version ─────────────────────────────────────


def test_health_check() -> None:
    """Health endpoint returns OK."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "ripaudit"


def test_version() -> None:
    """Package has correct version."""
    from ripaudit import __version__

    assert __version__ == "0.1.0"


def test_settings_defaults() -> None:
    """Settings load with correct defaults."""
    from ripaudit.config import Settings

    s = Settings()
    assert s.port == 8000
    assert s.env == "development"
    assert ".flac" in s.audio_extensions


def test_main_serves_with_configured_host_and_port(monkeypatch) -> None:
    """`python -m ripaudit` hands the configured address to uvicorn."""
    import uvicorn

    from ripaudit import __main__ as entry
    from ripaudit.config import settings

    calls: list[tuple[str, dict]] = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kw: calls.append((app, kw)))
    monkeypatch.setattr(settings, "port", 9123)
    monkeypatch.setattr(settings, "env", "production")

    entry.main()

    app_path, kwargs = calls[0]
    assert app_path == "ripaudit.api.server:app"
    assert kwargs["host"] == settings.host
    assert kwargs["port"] == 9123
    assert kwargs["reload"] is False


def test_api_info() -> None:
    """Info endpoint lists analyzers and endpoints."""
    response = client.get("/api/info")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "RIPAUDIT"
    assert "quality_analyze" in data["endpoints"]
    assert set(data["analyzers"]) == {"spectral", "dynamics", "clipping", "noise", "channels"}


# ── Audit jobs ───────────────────────────────────────────


def test_unknown_job_404() -> None:
    assert client.get("/api/quality/status/nope").status_code == 404
    assert client.get("/api/quality/report/nope").status_code == 404
    assert client.post("/api/quality/cancel/nope").status_code == 404


def test_invalid_weights_rejected() -> None:
    response = client.post(
        "/api/quality/analyze", json={"settings": {"spectral_weight": 90}}
    )
    assert response.status_code == 422


def test_analysis_job_end_to_end(audit_client) -> None:
    response = audit_client.post(
        "/api/quality/analyze",
        json={"settings": {"catalog_request_delay_s": 0, "max_concurrent_analyses": 2}},
    )
    assert response.status_code == 200
    job_id = response.json()["job_id"]

    status = _wait(audit_client, job_id)
    assert status["status"] == "completed"
    assert status["progress"]["processed"] == 3
    assert status["summary"]["total_tracks_analyzed"] == 3

    report = audit_client.get(f"/api/quality/report/{job_id}").json()
    assert report["successful_analyses"] == 3
    titles = {r["title"]: r for r in report["results"]}
    assert titles["Mono"]["channels"]["is_mono"] is True

    csv_response = audit_client.get(f"/api/quality/report/{job_id}/csv")
    assert csv_response.status_code == 200
    assert csv_response.headers["content-type"].startswith("text/csv")
    assert csv_response.text.splitlines()[0].startswith("Media ID,Title,Artist")
    assert len(csv_response.text.strip().splitlines()) == 4

    rerip = audit_client.get(f"/api/quality/rerip/{job_id}")
    assert rerip.status_code == 200
    assert isinstance(rerip.json(), list)

    jobs = audit_client.get("/api/quality/jobs").json()
    assert any(j["job_id"] == job_id for j in jobs)


def test_cancel_finished_job_is_noop(audit_client) -> None:
    job_id = audit_client.post(
        "/api/quality/analyze", json={"settings": {"catalog_request_delay_s": 0}}
    ).json()["job_id"]
    _wait(audit_client, job_id)

    data = audit_client.post(f"/api/quality/cancel/{job_id}").json()
    assert data["status"] == "completed"
    assert data["cancel_requested"] is False


def test_websocket_ping() -> None:
    with client.websocket_connect("/ws/some-job") as ws:
        ws.send_text('{"action": "ping"}')
        assert ws.receive_json() == {"type": "pong"}
