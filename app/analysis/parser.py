"""
Versioned parser for upstream status/result documents.

The detection service is inconsistent about where it puts the overall status
and the aggregate score, and about casing. All field probing happens here, in
one documented fallback order per value, so schema drift is a local change:

  request id      requestId -> request_id -> id
  overall status  overallStatus -> status -> resultsSummary.status -> state
  model list      models[] (entries that are not objects are skipped)
  model name      name -> modelName
  model score     normalizedPredictionNumber -> normalized_prediction_number -> score
  summary score   containers resultsSummary -> results -> <root>,
                  each probed for overallScore -> overall_score -> confidence -> score

The first present, non-empty value wins. Status strings are upper-cased.
"""

import logging
from typing import Any, NamedTuple, Optional

from pydantic import ValidationError

from app.schemas.analysis import AudioAnalysis, FrameAnalysis, ModelStatus, RawResult

logger = logging.getLogger(__name__)

PARSER_VERSION = "1"

# Statuses meaning "still working". Anything else on a model is a verdict.
ACTIVE_STATES = frozenset({"ANALYZING", "PROCESSING", "QUEUED"})
NOT_APPLICABLE = "NOT_APPLICABLE"

_STATUS_PATHS = (("overallStatus",), ("status",), ("resultsSummary", "status"), ("state",))
_REQUEST_ID_KEYS = ("requestId", "request_id", "id")
_MODEL_NAME_KEYS = ("name", "modelName")
_MODEL_SCORE_KEYS = ("normalizedPredictionNumber", "normalized_prediction_number", "score")
_SUMMARY_CONTAINERS = ("resultsSummary", "results", None)
_SUMMARY_SCORE_KEYS = ("overallScore", "overall_score", "confidence", "score")


class ModelTally(NamedTuple):
    completed: int          # terminal and applicable
    total: int              # applicable
    analyzing: bool         # any model still queued/processing/analyzing
    active_names: list


def to_number(value: Any) -> Optional[float]:
    """Numeric coercion that refuses booleans and unparseable strings."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _dig(payload: dict, path: tuple) -> Any:
    node: Any = payload
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _first(payload: dict, keys) -> Any:
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return None


def _normalize_status(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value).strip().upper()


def is_completed(model: ModelStatus) -> bool:
    return model.status not in ACTIVE_STATES and model.status != NOT_APPLICABLE


def is_applicable(model: ModelStatus) -> bool:
    return model.status != NOT_APPLICABLE


def tally_models(models: list) -> ModelTally:
    completed = sum(1 for m in models if is_completed(m))
    total = sum(1 for m in models if is_applicable(m))
    active = [m for m in models if m.status in ACTIVE_STATES]
    return ModelTally(
        completed=completed,
        total=total,
        analyzing=bool(active),
        active_names=[m.name for m in active],
    )


def parse_models(payload: dict) -> list:
    raw_models = payload.get("models")
    if not isinstance(raw_models, list):
        return []

    models = []
    for entry in raw_models:
        if not isinstance(entry, dict):
            continue
        name = _first(entry, _MODEL_NAME_KEYS)
        models.append(ModelStatus(
            name=str(name) if name is not None else "unknown",
            status=_normalize_status(entry.get("status")) or "QUEUED",
            score=to_number(_first(entry, _MODEL_SCORE_KEYS)),
        ))
    return models


def parse_overall_status(payload: dict) -> Optional[str]:
    for path in _STATUS_PATHS:
        status = _normalize_status(_dig(payload, path))
        if status:
            return status
    return None


def parse_summary_score(payload: dict) -> Optional[float]:
    for container_key in _SUMMARY_CONTAINERS:
        container = payload if container_key is None else payload.get(container_key)
        if not isinstance(container, dict):
            continue
        for key in _SUMMARY_SCORE_KEYS:
            score = to_number(container.get(key))
            if score is not None:
                return score
    return None


def _parse_frames(payload: dict) -> Optional[list]:
    frames = payload.get("frameAnalysis")
    if not isinstance(frames, list):
        return None
    try:
        return [FrameAnalysis.model_validate(f) for f in frames]
    except ValidationError as e:
        logger.warning(f"[PARSER] Dropping malformed frameAnalysis: {e.error_count()} errors")
        return None


def _parse_audio(payload: dict) -> Optional[AudioAnalysis]:
    audio = payload.get("audioAnalysis")
    if not isinstance(audio, dict):
        return None
    try:
        return AudioAnalysis(
            segments=audio.get("segments") or [],
            waveform_data=audio.get("waveformData"),
        )
    except ValidationError as e:
        logger.warning(f"[PARSER] Dropping malformed audioAnalysis: {e.error_count()} errors")
        return None


def parse_raw_result(payload: dict) -> RawResult:
    """Build a RawResult from an upstream document. Never raises on odd shapes."""
    if not isinstance(payload, dict):
        payload = {}

    request_id = _first(payload, _REQUEST_ID_KEYS)
    timestamp = payload.get("timestamp")
    metadata = payload.get("metadata")
    thumbnail = payload.get("thumbnailUrl")

    return RawResult(
        parser_version=PARSER_VERSION,
        request_id=str(request_id) if request_id is not None else None,
        overall_status=parse_overall_status(payload),
        models=parse_models(payload),
        summary_score=parse_summary_score(payload),
        frame_analysis=_parse_frames(payload),
        audio_analysis=_parse_audio(payload),
        metadata=metadata if isinstance(metadata, dict) else {},
        processing_time=to_number(payload.get("processingTime")) or 0.0,
        timestamp=str(timestamp) if timestamp else None,
        thumbnail_url=thumbnail if isinstance(thumbnail, str) else None,
        payload=payload,
    )
