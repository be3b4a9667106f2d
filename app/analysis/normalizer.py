"""
Score normalization: multi-model upstream response -> AnalysisResult.

Pure transform, no I/O. Aggregate score selection order:
  1. the completed "ensemble" model's score, when it has one
  2. unweighted mean of all completed models' scores
  3. the top-level summary score found by the parser
  4. 0 (logged; raises ScoreUnavailableError in strict mode)

Values above 1 are read as a 0-100 scale and divided by 100, because the
service mixes both scales across response variants.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Optional

from app.analysis.parser import is_completed, to_number
from app.config import settings
from app.core.errors import ScoreUnavailableError
from app.schemas.analysis import (
    AnalysisDetails,
    AnalysisResult,
    CategoryBreakdown,
    FileMeta,
    MediaMetadata,
    RawResult,
)

logger = logging.getLogger(__name__)

MANIPULATED_THRESHOLD = 0.7
INCONCLUSIVE_THRESHOLD = 0.3


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def rescale(score: float) -> float:
    """0-100 -> 0-1 when needed, then clamp to [0, 1]."""
    if score > 1:
        score = score / 100
    return min(1.0, max(0.0, score))


def classify(confidence: float) -> str:
    if confidence >= MANIPULATED_THRESHOLD:
        return "manipulated"
    if confidence >= INCONCLUSIVE_THRESHOLD:
        return "inconclusive"
    return "authentic"


def category_breakdown(confidence: float) -> CategoryBreakdown:
    # inconclusive is an ambiguity proxy, not a probability
    return CategoryBreakdown(
        authentic=round_half_up(max(0.0, 1 - confidence) * 100),
        manipulated=round_half_up(confidence * 100),
        inconclusive=round_half_up(abs(0.5 - confidence) * 40),
    )


def aggregate_score(raw: RawResult, ensemble_marker: Optional[str] = None) -> tuple[Optional[float], str]:
    """Return (raw aggregate, source). The aggregate is not yet rescaled."""
    marker = (ensemble_marker or settings.ensemble_model_marker).lower()
    completed = [m for m in raw.models if is_completed(m)]

    ensemble = next((m for m in completed if marker in m.name.lower()), None)
    if ensemble is not None and ensemble.score is not None:
        return ensemble.score, "ensemble"

    scores = [m.score for m in completed if m.score is not None]
    if scores:
        return sum(scores) / len(scores), "model_average"

    if raw.summary_score is not None:
        return raw.summary_score, "summary"

    return None, "none"


def _metadata(raw: RawResult) -> MediaMetadata:
    meta = raw.metadata
    resolution = meta.get("resolution")
    codec = meta.get("codec")
    return MediaMetadata(
        duration=to_number(meta.get("duration")),
        resolution=str(resolution) if resolution else None,
        codec=str(codec) if codec else None,
        bitrate=to_number(meta.get("bitrate")),
        processing_time=raw.processing_time,
        models_analyzed=len(raw.models),
        completed_models=sum(1 for m in raw.models if is_completed(m)),
    )


def normalize(
    raw: RawResult,
    file_meta: FileMeta,
    *,
    strict: Optional[bool] = None,
    received_at: Optional[datetime] = None,
) -> AnalysisResult:
    """
    Convert a terminal upstream response into an AnalysisResult.

    `received_at` only fills the id/timestamp when the upstream omits them.
    """
    strict = settings.strict_scoring if strict is None else strict
    received_at = received_at or datetime.now(timezone.utc)

    score, source = aggregate_score(raw)
    if score is None:
        if strict:
            raise ScoreUnavailableError(f"No usable score for {file_meta.filename}")
        logger.warning(
            f"[NORMALIZE] No usable score for {file_meta.filename}; "
            f"defaulting to 0 (models={len(raw.models)}, status={raw.overall_status})"
        )
        score = 0.0

    confidence = rescale(score)
    prediction = classify(confidence)
    breakdown = category_breakdown(confidence)

    logger.info(
        f"[NORMALIZE] {file_meta.filename}: score={confidence:.3f} ({source}), prediction={prediction}"
    )

    return AnalysisResult(
        id=raw.request_id or f"rd_{int(received_at.timestamp() * 1000)}",
        filename=file_meta.filename,
        file_type=file_meta.file_type,
        file_size=file_meta.file_size,
        confidence=confidence,
        prediction=prediction,
        category_breakdown=breakdown,
        details=AnalysisDetails(
            overall_score=confidence,
            category_breakdown=breakdown,
            metadata=_metadata(raw),
            frame_analysis=raw.frame_analysis,
            audio_analysis=raw.audio_analysis,
            models=raw.models,
            score_source=source,
        ),
        processing_time=raw.processing_time,
        timestamp=raw.timestamp or received_at.isoformat(),
        thumbnail_url=raw.thumbnail_url,
    )
