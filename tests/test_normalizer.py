"""Unit tests for app/analysis/normalizer.py - score selection, scaling and classification."""

import logging
from datetime import datetime, timezone

import pytest

from app.analysis.normalizer import category_breakdown, classify, normalize, rescale
from app.analysis.parser import parse_raw_result
from app.core.errors import ScoreUnavailableError
from app.schemas.analysis import FileMeta
from tests.conftest import COMPLETE_MANIPULATED, make_analysis, model, rd_payload

META = FileMeta(filename="photo.jpg", file_type="image/jpeg", file_size=1024)


def _normalize(payload, **kwargs):
    return normalize(parse_raw_result(payload), META, **kwargs)


# ---------------------------------------------------------------------------
# Aggregate selection
# ---------------------------------------------------------------------------


def test_complete_ensemble_result_end_to_end():
    result = make_analysis()

    assert result.confidence == pytest.approx(0.92)
    assert result.prediction == "manipulated"
    assert result.category_breakdown.model_dump() == {"authentic": 8, "manipulated": 92, "inconclusive": 17}
    assert result.details.score_source == "ensemble"
    assert result.details.metadata.models_analyzed == 3
    assert result.details.metadata.completed_models == 2
    assert result.id == "req-123"
    assert result.timestamp == "2026-03-01T12:00:00Z"


def test_ensemble_preferred_over_mean():
    result = _normalize(rd_payload(models=[
        model("rd-Ensemble-v2", "COMPLETE", 0.1),
        model("rd-face", "COMPLETE", 0.9),
    ]))
    assert result.confidence == pytest.approx(0.1)
    assert result.details.score_source == "ensemble"


def test_mean_of_completed_models_without_ensemble():
    result = _normalize(rd_payload(models=[
        model("rd-face", "COMPLETE", 0.1),
        model("rd-voice", "AUTHENTIC", 0.3),
    ]))
    assert result.confidence == pytest.approx(0.2)
    assert result.prediction == "authentic"
    assert result.details.score_source == "model_average"


def test_active_and_not_applicable_models_do_not_contribute():
    result = _normalize(rd_payload(models=[
        model("rd-ensemble", "ANALYZING", 0.95),
        model("rd-voice", "NOT_APPLICABLE", 0.99),
        model("rd-face", "COMPLETE", 0.2),
    ]))
    assert result.confidence == pytest.approx(0.2)
    assert result.details.score_source == "model_average"


def test_summary_score_used_when_no_model_scored():
    result = _normalize({"requestId": "r1", "status": "COMPLETE", "resultsSummary": {"score": 0.55}})
    assert result.confidence == pytest.approx(0.55)
    assert result.prediction == "inconclusive"
    assert result.details.score_source == "summary"


# ---------------------------------------------------------------------------
# Scaling
# ---------------------------------------------------------------------------


def test_percent_scale_is_divided_by_100():
    result = _normalize(rd_payload(models=[model("rd-ensemble", "FAKE", 85)]))
    assert result.confidence == pytest.approx(0.85)


@pytest.mark.parametrize("score, expected", [(150, 1.0), (-5, 0.0), (1, 1.0), (0.5, 0.5)])
def test_rescale_clamps(score, expected):
    assert rescale(score) == pytest.approx(expected)


# ---------------------------------------------------------------------------
# Classification & breakdown
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("confidence, expected", [
    (0.0, "authentic"),
    (0.2999, "authentic"),
    (0.3, "inconclusive"),
    (0.6999, "inconclusive"),
    (0.7, "manipulated"),
    (1.0, "manipulated"),
])
def test_classification_thresholds(confidence, expected):
    assert classify(confidence) == expected


def test_breakdown_rounds_half_up():
    breakdown = category_breakdown(0.125)
    assert breakdown.manipulated == 13
    assert breakdown.authentic == 88
    assert breakdown.inconclusive == 15


def test_breakdown_is_not_a_partition():
    breakdown = category_breakdown(0.5)
    assert breakdown.inconclusive == 0
    assert breakdown.authentic + breakdown.manipulated + breakdown.inconclusive == 100
    breakdown = category_breakdown(1.0)
    assert (breakdown.authentic, breakdown.manipulated, breakdown.inconclusive) == (0, 100, 20)


# ---------------------------------------------------------------------------
# Missing score
# ---------------------------------------------------------------------------


def test_missing_score_defaults_to_zero_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="app.analysis.normalizer"):
        result = _normalize(rd_payload(models=[model("rd-face", "COMPLETE")]))

    assert result.confidence == 0.0
    assert result.prediction == "authentic"
    assert result.details.score_source == "none"
    assert "No usable score" in caplog.text


def test_missing_score_raises_in_strict_mode():
    with pytest.raises(ScoreUnavailableError):
        _normalize(rd_payload(models=[]), strict=True)


def test_generated_id_and_timestamp_when_upstream_omits_them():
    received = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    payload = {"status": "COMPLETE", "models": [model("rd-ensemble", "COMPLETE", 0.4)]}

    result = _normalize(payload, received_at=received)

    assert result.id == f"rd_{int(received.timestamp() * 1000)}"
    assert result.timestamp == received.isoformat()


def test_result_is_immutable():
    result = make_analysis(COMPLETE_MANIPULATED)
    with pytest.raises(Exception):
        result.confidence = 0.1
