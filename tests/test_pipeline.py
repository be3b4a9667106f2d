"""
Unit tests for app/analysis/pipeline.py - submit -> poll -> normalize -> explain -> track.

The upstream client is a MagicMock; the poller runs for real with sleep and
clock injected, and usage/history use a JsonFileStore under tmp_path.
"""

import asyncio
import itertools
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.analysis.pipeline import AnalysisPipeline
from app.analysis.poller import ResultPoller
from app.core.errors import AnalysisCancelledError, AnalysisTimeoutError, SubmissionError
from app.schemas.analysis import FileMeta
from app.services.history_service import HistoryService
from app.services.usage_service import UsageService
from tests.conftest import COMPLETE_MANIPULATED, PRESIGN_RESPONSE, make_tiny_jpeg, model, rd_payload

META = FileMeta(filename="clip.mp4", file_type="video/mp4", file_size=2048)


def _pipeline(results, file_store, max_attempts=5, presign=PRESIGN_RESPONSE):
    client = MagicMock()
    client.request_upload_target = AsyncMock(return_value=presign)
    client.upload = AsyncMock()
    client.fetch_result = AsyncMock(side_effect=results)
    poller = ResultPoller(
        client,
        max_attempts=max_attempts,
        interval=0,
        clock=itertools.count().__next__,
        sleep=AsyncMock(),
    )
    usage = UsageService(file_store)
    history = HistoryService(file_store)
    return AnalysisPipeline(client, usage=usage, history=history, poller=poller), client


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


async def test_full_analysis_returns_explained_result(file_store):
    pipeline, client = _pipeline([
        rd_payload("ANALYZING", [model("rd-ensemble", "ANALYZING"), model("rd-face-swap", "COMPLETE", 0.88)]),
        COMPLETE_MANIPULATED,
    ], file_store)
    events = []

    result = await pipeline.analyze(b"video-bytes", META, on_progress=events.append, thumbnail="data:x")

    assert result.prediction == "manipulated"
    assert result.confidence == pytest.approx(0.92)
    assert result.explanation is not None
    assert result.explanation.reasons[0].id == "frame_anomalies"

    percentages = [e.percentage for e in events]
    assert percentages[:3] == [5, 15, 25]
    assert percentages[-1] == 100
    assert percentages.count(100) == 1
    assert percentages == sorted(percentages)
    assert events[2].message == "Upload complete! Processing media..."
    client.upload.assert_awaited_once_with("https://uploads.example.com/req-123?sig=abc", b"video-bytes", "video/mp4")


async def test_successful_analysis_is_tracked(file_store):
    pipeline, _ = _pipeline([COMPLETE_MANIPULATED], file_store)

    result = await pipeline.analyze(b"video-bytes", META, thumbnail="data:image/jpeg;base64,AAAA")

    stats = pipeline.usage.get_stats()
    assert stats.total_scans == 1
    assert stats.scan_history[0].prediction == "manipulated"
    stored = pipeline.history.get(result.id)
    assert stored is not None
    assert stored.thumbnail_blob == "data:image/jpeg;base64,AAAA"


async def test_thumbnail_generated_from_content_when_absent(file_store):
    pipeline, _ = _pipeline([rd_payload("COMPLETE", [model("rd-ensemble", "AUTHENTIC", 0.1)])], file_store)
    meta = FileMeta(filename="photo.jpg", file_type="image/jpeg", file_size=500)

    result = await pipeline.analyze(make_tiny_jpeg(), meta)

    assert pipeline.history.get(result.id).thumbnail_blob.startswith("data:image/jpeg;base64,")


async def test_storage_failure_does_not_lose_result(file_store):
    pipeline, _ = _pipeline([COMPLETE_MANIPULATED], file_store)

    with patch.object(pipeline.history, "add", side_effect=OSError("disk full")):
        result = await pipeline.analyze(b"video-bytes", META, thumbnail="data:x")

    assert result.prediction == "manipulated"
    assert pipeline.usage.get_stats().total_scans == 1


async def test_async_progress_callback_is_awaited(file_store):
    pipeline, _ = _pipeline([COMPLETE_MANIPULATED], file_store)
    received = []

    async def on_progress(progress):
        received.append(progress.percentage)

    await pipeline.analyze(b"video-bytes", META, on_progress=on_progress, thumbnail="data:x")
    assert received == [5, 15, 25, 100]


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


async def test_failed_analysis_records_nothing(file_store):
    pending = rd_payload("PROCESSING", [model("rd-ensemble", "PROCESSING")])
    pipeline, _ = _pipeline([pending] * 3, file_store, max_attempts=3)

    with pytest.raises(AnalysisTimeoutError):
        await pipeline.analyze(b"video-bytes", META)

    assert pipeline.usage.get_stats().total_scans == 0
    assert pipeline.history.get_all() == []


async def test_submission_failure_stops_before_polling(file_store):
    pipeline, client = _pipeline([], file_store, presign={"error": "nope"})

    with pytest.raises(SubmissionError):
        await pipeline.analyze(b"video-bytes", META)

    client.fetch_result.assert_not_awaited()


async def test_cancel_before_upload(file_store):
    pipeline, client = _pipeline([], file_store)
    cancel = asyncio.Event()
    cancel.set()
    events = []

    with pytest.raises(AnalysisCancelledError):
        await pipeline.analyze(b"video-bytes", META, on_progress=events.append, cancel_event=cancel)

    assert [e.percentage for e in events] == [5]
    client.request_upload_target.assert_not_awaited()
