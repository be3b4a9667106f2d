"""Unit tests for app/analysis/parser.py - field probing and model tallies."""

import pytest

from app.analysis.parser import (
    PARSER_VERSION,
    is_completed,
    parse_overall_status,
    parse_raw_result,
    parse_summary_score,
    tally_models,
    to_number,
)
from app.schemas.analysis import ModelStatus
from tests.conftest import model, rd_payload


# ---------------------------------------------------------------------------
# Overall status
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("payload, expected", [
    ({"overallStatus": "ANALYZING", "status": "COMPLETE"}, "ANALYZING"),
    ({"status": "processing"}, "PROCESSING"),
    ({"resultsSummary": {"status": "fake"}}, "FAKE"),
    ({"state": "queued"}, "QUEUED"),
    ({"overallStatus": "", "state": "COMPLETE"}, "COMPLETE"),
    ({}, None),
])
def test_overall_status_fallback_order(payload, expected):
    assert parse_overall_status(payload) == expected


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


def test_models_name_and_score_fallbacks():
    raw = parse_raw_result({"models": [
        {"modelName": "rd-face", "status": "complete", "normalized_prediction_number": 0.4},
        {"name": "rd-voice", "status": "AUTHENTIC", "score": "0.15"},
        "not-a-model",
        {"name": "rd-pending"},
    ]})

    assert [m.name for m in raw.models] == ["rd-face", "rd-voice", "rd-pending"]
    assert raw.models[0].status == "COMPLETE"
    assert raw.models[0].score == pytest.approx(0.4)
    assert raw.models[1].score == pytest.approx(0.15)
    # no status reported: still pending
    assert raw.models[2].status == "QUEUED"
    assert raw.models[2].score is None


def test_to_number_rejects_booleans_and_garbage():
    assert to_number(True) is None
    assert to_number("n/a") is None
    assert to_number(None) is None
    assert to_number(" 42 ") == 42.0
    assert to_number(3) == 3.0


def test_tally_counts_only_applicable_models():
    models = [
        ModelStatus(name="a", status="COMPLETE", score=0.1),
        ModelStatus(name="b", status="FAKE", score=0.9),
        ModelStatus(name="c", status="ANALYZING"),
        ModelStatus(name="d", status="NOT_APPLICABLE"),
    ]
    tally = tally_models(models)

    assert tally.completed == 2
    assert tally.total == 3
    assert tally.analyzing is True
    assert tally.active_names == ["c"]


def test_unknown_verdicts_are_terminal():
    assert is_completed(ModelStatus(name="x", status="MANIPULATED"))
    assert not is_completed(ModelStatus(name="x", status="QUEUED"))
    assert not is_completed(ModelStatus(name="x", status="NOT_APPLICABLE"))


# ---------------------------------------------------------------------------
# Summary score and optional sections
# ---------------------------------------------------------------------------


def test_summary_score_probes_containers_in_order():
    assert parse_summary_score({"resultsSummary": {"overallScore": 0.3}, "score": 0.9}) == pytest.approx(0.3)
    assert parse_summary_score({"results": {"confidence": 77}}) == pytest.approx(77)
    assert parse_summary_score({"overall_score": "0.61"}) == pytest.approx(0.61)
    assert parse_summary_score({"resultsSummary": {"metadata": {}}}) is None


def test_malformed_frame_analysis_is_dropped():
    raw = parse_raw_result(rd_payload(frameAnalysis=[{"timestamp": "soon"}]))
    assert raw.frame_analysis is None


def test_audio_analysis_is_parsed():
    raw = parse_raw_result(rd_payload(audioAnalysis={
        "segments": [{"start": 0, "end": 1.5, "confidence": 0.8, "anomalies": ["pitch_jump"]}],
        "waveformData": [0.1, 0.2],
    }))
    assert raw.audio_analysis.segments[0].anomalies == ["pitch_jump"]
    assert raw.audio_analysis.waveform_data == [0.1, 0.2]


def test_non_object_payload_yields_empty_result():
    raw = parse_raw_result(["unexpected"])
    assert raw.parser_version == PARSER_VERSION
    assert raw.models == []
    assert raw.overall_status is None
    assert raw.request_id is None


def test_request_id_and_passthrough_fields():
    raw = parse_raw_result(rd_payload(
        "COMPLETE",
        [model("rd-ensemble", "FAKE", 0.8)],
        processingTime=1200,
        thumbnailUrl="https://cdn.example.com/t.jpg",
    ))
    assert raw.request_id == "req-123"
    assert raw.processing_time == 1200
    assert raw.thumbnail_url == "https://cdn.example.com/t.jpg"
    assert raw.payload["overallStatus"] == "COMPLETE"
