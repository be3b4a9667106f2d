"""
Shared pytest fixtures for all test modules.

IMPORTANT: environment variables must be set before the app is imported so
the module-level `settings` picks them up.
"""

import io
import os

os.environ["TESTING"] = "true"
# Real upstream calls never happen in tests; every client method is mocked.
os.environ.setdefault("RD_API_KEY", "test-rd-key")

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from tests.mocks.redis_mock import MockRedis

# App import happens AFTER the environment is prepared above.
from app.main import app  # noqa: E402
from app.analysis.normalizer import normalize  # noqa: E402
from app.analysis.parser import parse_raw_result  # noqa: E402
from app.schemas.analysis import FileMeta  # noqa: E402
from app.services.state_store import JsonFileStore  # noqa: E402


# ---------------------------------------------------------------------------
# Core infrastructure fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_redis(monkeypatch):
    """Replace redis_client.client with an in-memory MockRedis."""
    from app.integrations import redis_client as rc

    mock_rc = MockRedis()
    monkeypatch.setattr(rc, "client", mock_rc)
    return mock_rc


@pytest.fixture
def file_store(tmp_path):
    return JsonFileStore(str(tmp_path))


@pytest.fixture
def client(mock_redis):
    """
    FastAPI TestClient backed by MockRedis.

    initialize() calls are patched to no-ops so they can't overwrite our mocks
    or open real network sessions during the lifespan startup.
    """
    with (
        patch("app.integrations.redis_client.initialize"),
        patch("app.integrations.http_client.initialize", new=AsyncMock()),
    ):
        with TestClient(app, raise_server_exceptions=False) as c:
            yield c


@pytest.fixture
def rd_client(client):
    """The RealityDefenderClient the running app (and its pipeline) uses."""
    return client.app.state.rd_client


# ---------------------------------------------------------------------------
# Shared test-data helpers
# ---------------------------------------------------------------------------


def make_tiny_jpeg() -> bytes:
    """Create a minimal 10×10 JPEG in memory - fast and valid."""
    buf = io.BytesIO()
    Image.new("RGB", (10, 10), color=(128, 128, 128)).save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def tiny_jpg(tmp_path) -> str:
    """Write a tiny JPEG to a temp file and return the path."""
    p = tmp_path / "test.jpg"
    p.write_bytes(make_tiny_jpeg())
    return str(p)


def model(name: str, status: str, score=None) -> dict:
    entry = {"name": name, "status": status}
    if score is not None:
        entry["normalizedPredictionNumber"] = score
    return entry


def rd_payload(status="COMPLETE", models=None, **extra) -> dict:
    """Upstream result document in the shape the service returns."""
    payload = {"requestId": "req-123", "overallStatus": status, "models": models or []}
    payload.update(extra)
    return payload


PRESIGN_RESPONSE = {
    "requestId": "req-123",
    "response": {"signedUrl": "https://uploads.example.com/req-123?sig=abc"},
}

COMPLETE_MANIPULATED = rd_payload(
    "COMPLETE",
    [
        model("rd-ensemble", "FAKE", 0.92),
        model("rd-face-swap", "FAKE", 0.88),
        model("rd-audio-clone", "NOT_APPLICABLE"),
    ],
    processingTime=8400,
    timestamp="2026-03-01T12:00:00Z",
    metadata={"duration": 12.5, "resolution": "1920x1080", "codec": "h264", "bitrate": 4500},
    frameAnalysis=[
        {"frame": 1, "timestamp": 0.0, "confidence": 0.4, "anomalies": []},
        {"frame": 2, "timestamp": 0.5, "confidence": 0.95, "anomalies": ["face_warp", "blending"]},
    ],
)


def make_analysis(payload=None, filename="clip.mp4", file_type="video/mp4", file_size=2048):
    raw = parse_raw_result(payload if payload is not None else COMPLETE_MANIPULATED)
    return normalize(raw, FileMeta(filename=filename, file_type=file_type, file_size=file_size))
