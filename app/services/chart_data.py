"""
Presentation data for gauges, category bars and the confidence timeline.

When the result carries per-frame data the timeline is built from it.
Otherwise an illustrative timeline is generated around the overall
confidence; it is seeded from the analysis id (same id, same curve) and
every point is flagged `synthetic=True`. Nothing here feeds back into
scoring or explanations.
"""

import hashlib
import random
from typing import List

from app.analysis.normalizer import round_half_up
from app.schemas.analysis import AnalysisResult
from app.schemas.reports import CategorySlice, ChartData, ConfidenceLevel, TimelinePoint

LOW_RISK_COLOR = "#10b981"
MEDIUM_RISK_COLOR = "#f59e0b"
HIGH_RISK_COLOR = "#ef4444"

CATEGORY_COLORS = {
    "authentic": LOW_RISK_COLOR,
    "manipulated": HIGH_RISK_COLOR,
    "inconclusive": MEDIUM_RISK_COLOR,
}

SYNTHETIC_POINTS = 20
DEFAULT_DURATION_SEC = 60


def confidence_level(confidence: float) -> ConfidenceLevel:
    if confidence < 0.3:
        label, color = "Low Risk", LOW_RISK_COLOR
    elif confidence < 0.7:
        label, color = "Medium Risk", MEDIUM_RISK_COLOR
    else:
        label, color = "High Risk", HIGH_RISK_COLOR
    return ConfidenceLevel(label=label, color=color, percentage=round_half_up(confidence * 100))


def category_data(analysis: AnalysisResult) -> List[CategorySlice]:
    breakdown = analysis.category_breakdown.model_dump()
    return [
        CategorySlice(name=name.capitalize(), value=breakdown[name], color=CATEGORY_COLORS[name])
        for name in ("authentic", "manipulated", "inconclusive")
    ]


def _seed(analysis_id: str) -> int:
    return int.from_bytes(hashlib.sha256(analysis_id.encode("utf-8")).digest()[:8], "big")


def timeline(analysis: AnalysisResult) -> List[TimelinePoint]:
    frames = analysis.details.frame_analysis
    if frames:
        return [
            TimelinePoint(
                frame=f.frame,
                timestamp=f.timestamp,
                confidence=round_half_up(min(1.0, max(0.0, f.confidence)) * 100),
                anomalies=len(f.anomalies),
            )
            for f in frames
        ]

    rng = random.Random(_seed(analysis.id))
    duration = analysis.details.metadata.duration or DEFAULT_DURATION_SEC
    points = []
    for i in range(SYNTHETIC_POINTS):
        variation = (rng.random() - 0.5) * 0.3
        confidence = max(0.0, min(1.0, analysis.confidence + variation))
        points.append(TimelinePoint(
            frame=i + 1,
            timestamp=i / SYNTHETIC_POINTS * duration,
            confidence=round_half_up(confidence * 100),
            anomalies=1 if rng.random() > 0.8 else 0,
            synthetic=True,
        ))
    return points


def build_chart_data(analysis: AnalysisResult) -> ChartData:
    return ChartData(
        confidence_level=confidence_level(analysis.confidence),
        categories=category_data(analysis),
        timeline=timeline(analysis),
    )
