"""
Rule-based explanation of a normalized AnalysisResult.

`explain` is a pure function of its input: no clock, no randomness, no I/O.
Calling it twice on the same result yields identical output, and malformed
or missing inputs (no metadata, no frames) only drop the dependent sections.
"""

import logging
from typing import List, Optional

from app.analysis.normalizer import classify, rescale
from app.analysis.parser import is_completed
from app.config import settings
from app.schemas.analysis import AnalysisResult, ModelStatus
from app.schemas.explanation import (
    AffectedRegion,
    AuthenticityIndicator,
    DetailedExplanation,
    EvidenceLocation,
    ExplanationConfig,
    ExplanationEvidence,
    ExplanationReason,
    ExplanationSummary,
    FileProperty,
    FrameReason,
    MetadataAnalysis,
    ModelInsight,
    RiskFactor,
    TemporalAnalysis,
)

logger = logging.getLogger(__name__)

PROCESSING_VERSION = "1.0.0"

UNUSUAL_CODEC_ALLOWLIST = ("h264", "h265", "avc1")
COMMON_CODECS = ("h264", "h265", "avc1", "mp4", "mp3")
LOW_BITRATE_KBPS = 1000


def _pct(value: float) -> int:
    return int(round(value * 100))


def _default_config() -> ExplanationConfig:
    return ExplanationConfig(max_reasons_to_show=settings.explanation_max_reasons)


# ---------------------------------------------------------------------------
# Reasons
# ---------------------------------------------------------------------------


def _prediction_reasons(analysis: AnalysisResult) -> List[ExplanationReason]:
    c = analysis.confidence
    reasons = []

    if analysis.prediction == "authentic":
        reasons.append(ExplanationReason(
            id="auth_primary",
            category="model",
            type="evidence",
            severity="low" if c < 0.2 else "medium",
            confidence=1 - c,
            title="Content appears authentic",
            description=(
                f"AI analysis indicates this content is likely genuine with {_pct(1 - c)}% confidence. "
                "Multiple detection models found no significant signs of manipulation."
            ),
            technical_details=f"Ensemble model score: {c:.3f}, indicating low manipulation probability.",
            model_sources=["ensemble", "deepfake_detector"],
        ))
        if c < 0.1:
            reasons.append(ExplanationReason(
                id="auth_strong",
                category="technical",
                type="evidence",
                severity="low",
                confidence=0.95,
                title="Strong authenticity indicators",
                description="Analysis found consistent patterns typical of genuine content with no detectable artifacts.",
                technical_details="Low variance in model predictions, consistent temporal patterns, normal compression artifacts.",
            ))

    elif analysis.prediction == "manipulated":
        reasons.append(ExplanationReason(
            id="manip_primary",
            category="model",
            type="anomaly",
            severity="high" if c > 0.8 else "medium" if c > 0.5 else "low",
            confidence=c,
            title="Potential manipulation detected",
            description=(
                f"AI analysis detected signs of possible manipulation with {_pct(c)}% confidence. "
                "Multiple indicators suggest this content may be synthetically generated or altered."
            ),
            technical_details=f"Ensemble model score: {c:.3f}, exceeding manipulation threshold.",
            model_sources=["ensemble", "deepfake_detector"],
        ))
        if c > 0.8:
            reasons.append(ExplanationReason(
                id="manip_strong",
                category="visual",
                type="artifact",
                severity="high",
                confidence=0.9,
                title="Strong manipulation indicators",
                description="High-confidence detection of typical deepfake artifacts and inconsistencies.",
                technical_details="Multiple models detected convergent evidence of synthetic generation patterns.",
            ))
        if c > 0.6:
            reasons.append(ExplanationReason(
                id="manip_patterns",
                category="temporal",
                type="pattern",
                severity="medium",
                confidence=0.75,
                title="Suspicious temporal patterns",
                description="Analysis detected frame-to-frame inconsistencies common in generated content.",
                technical_details="Temporal coherence metrics indicate potential frame interpolation or synthesis.",
            ))

    else:
        reasons.append(ExplanationReason(
            id="inconcl_primary",
            category="model",
            type="inconsistency",
            severity="medium",
            confidence=abs(0.5 - c) * 2,
            title="Analysis inconclusive",
            description=(
                "The analysis could not determine with high confidence whether this content is "
                f"authentic or manipulated. Confidence score: {_pct(c)}%."
            ),
            technical_details=(
                f"Score {c:.3f} falls in the inconclusive range (0.3-0.7). "
                "Mixed signals from different detection models."
            ),
            model_sources=["ensemble"],
        ))

    return reasons


def _file_type_reasons(analysis: AnalysisResult) -> List[ExplanationReason]:
    file_type = analysis.file_type or ""

    if file_type.startswith("image/"):
        return [ExplanationReason(
            id="img_analysis",
            category="visual",
            type="evidence",
            severity="medium",
            confidence=0.8,
            title="Image analysis completed",
            description=(
                "Comprehensive pixel-level analysis performed looking for manipulation artifacts, "
                "inconsistent lighting, and synthetic generation patterns."
            ),
            technical_details="Face detection, compression analysis, and artifact detection models applied.",
        )]
    if file_type.startswith("video/"):
        return [ExplanationReason(
            id="video_analysis",
            category="temporal",
            type="evidence",
            severity="medium",
            confidence=0.85,
            title="Video temporal analysis",
            description="Frame-by-frame analysis examining temporal consistency, lip-sync accuracy, and motion patterns.",
            technical_details="Temporal coherence models analyzed inter-frame relationships and motion vectors.",
        )]
    if file_type.startswith("audio/"):
        return [ExplanationReason(
            id="audio_analysis",
            category="audio",
            type="evidence",
            severity="medium",
            confidence=0.8,
            title="Audio analysis completed",
            description="Spectral analysis examining voice patterns, synthetic speech indicators, and audio artifacts.",
            technical_details="Voice cloning detection and audio synthesis pattern analysis applied.",
        )]
    return []


def _metadata_reasons(analysis: AnalysisResult) -> List[ExplanationReason]:
    metadata = analysis.details.metadata
    reasons = []

    if metadata.codec:
        codec = metadata.codec.lower()
        if not any(common in codec for common in UNUSUAL_CODEC_ALLOWLIST):
            reasons.append(ExplanationReason(
                id="codec_unusual",
                category="metadata",
                type="anomaly",
                severity="low",
                confidence=0.3,
                title="Unusual codec detected",
                description=f"File uses codec '{metadata.codec}' which is less common for typical media files.",
                technical_details="Codec analysis for synthetic generation indicators.",
            ))

    if metadata.bitrate and metadata.bitrate < LOW_BITRATE_KBPS:
        reasons.append(ExplanationReason(
            id="bitrate_low",
            category="metadata",
            type="anomaly",
            severity="low",
            confidence=0.25,
            title="Low bitrate detected",
            description="Unusually low bitrate may indicate heavy compression or synthetic generation.",
            technical_details=f"Bitrate: {metadata.bitrate:g} kbps - below typical range for quality media.",
        ))

    return reasons


def _severity_for(score: float) -> str:
    if score > 0.8:
        return "high"
    if score > 0.5:
        return "medium"
    return "low"


def _distinct(items: List[str], limit: int = 3) -> List[str]:
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen[:limit]


def _anomaly_reasons(analysis: AnalysisResult) -> List[ExplanationReason]:
    reasons = []

    frames = analysis.details.frame_analysis or []
    flagged = [f for f in frames if f.anomalies]
    if flagged:
        peak = max(f.confidence for f in flagged)
        kinds = _distinct([a for f in flagged for a in f.anomalies])
        reasons.append(ExplanationReason(
            id="frame_anomalies",
            category="visual",
            type="artifact",
            severity=_severity_for(peak),
            confidence=peak,
            title="Frame-level anomalies detected",
            description=f"{len(flagged)} of {len(frames)} analyzed frames show anomalies: {', '.join(kinds)}.",
            technical_details=f"Peak per-frame manipulation score: {peak:.3f}.",
            affected_regions=[AffectedRegion(frame=f.frame, start_time=f.timestamp) for f in flagged],
        ))

    segments = analysis.details.audio_analysis.segments if analysis.details.audio_analysis else []
    flagged_segments = [s for s in segments if s.anomalies]
    if flagged_segments:
        peak = max(s.confidence for s in flagged_segments)
        kinds = _distinct([a for s in flagged_segments for a in s.anomalies])
        reasons.append(ExplanationReason(
            id="audio_anomalies",
            category="audio",
            type="anomaly",
            severity=_severity_for(peak),
            confidence=peak,
            title="Audio segment anomalies detected",
            description=f"{len(flagged_segments)} of {len(segments)} audio segments show anomalies: {', '.join(kinds)}.",
            technical_details=f"Peak per-segment manipulation score: {peak:.3f}.",
            affected_regions=[AffectedRegion(start_time=s.start, end_time=s.end) for s in flagged_segments],
        ))

    return reasons


def _missing_score_reason(analysis: AnalysisResult) -> List[ExplanationReason]:
    if analysis.details.score_source != "none":
        return []
    return [ExplanationReason(
        id="score_unavailable",
        category="model",
        type="inconsistency",
        severity="high",
        confidence=1.0,
        title="No usable detection score",
        description=(
            "None of the detection models returned a usable score, so the result defaults to 0% "
            "manipulation likelihood. Treat this classification as unverified."
        ),
        technical_details="No completed model score and no summary score in the upstream response.",
    )]


def generate_reasons(analysis: AnalysisResult, config: ExplanationConfig) -> List[ExplanationReason]:
    reasons = (
        _missing_score_reason(analysis)
        + _prediction_reasons(analysis)
        + _file_type_reasons(analysis)
        + _metadata_reasons(analysis)
        + _anomaly_reasons(analysis)
    )
    # sorted() is stable: equal-confidence reasons keep rule order
    reasons = sorted(reasons, key=lambda r: r.confidence, reverse=True)

    if not config.include_technical_details or config.simplify_for_general_audience:
        reasons = [r.model_copy(update={"technical_details": None, "model_sources": None}) for r in reasons]
    return reasons


# ---------------------------------------------------------------------------
# Evidence & model insights
# ---------------------------------------------------------------------------


def generate_evidence(analysis: AnalysisResult) -> List[ExplanationEvidence]:
    evidence = []

    for frame in analysis.details.frame_analysis or []:
        if frame.anomalies:
            evidence.append(ExplanationEvidence(
                id=f"frame_{frame.frame}",
                type="visual_artifact",
                location=EvidenceLocation(frame=frame.frame, timestamp=frame.timestamp),
                severity=frame.confidence,
                description=f"Frame {frame.frame}: {', '.join(frame.anomalies)}",
            ))

    if analysis.details.audio_analysis:
        for index, segment in enumerate(analysis.details.audio_analysis.segments):
            if segment.anomalies:
                evidence.append(ExplanationEvidence(
                    id=f"audio_{index}",
                    type="audio_distortion",
                    location=EvidenceLocation(timestamp=segment.start),
                    severity=segment.confidence,
                    description=f"Audio segment {segment.start:g}s-{segment.end:g}s: {', '.join(segment.anomalies)}",
                ))

    return evidence


def _key_findings(analysis: AnalysisResult) -> List[str]:
    c = analysis.confidence
    findings = []

    if analysis.prediction == "authentic":
        findings.append("No significant manipulation artifacts detected")
        findings.append("Consistent patterns throughout media")
        if c < 0.1:
            findings.append("Strong authenticity indicators present")
    elif analysis.prediction == "manipulated":
        findings.append("Synthetic generation patterns detected")
        if c > 0.8:
            findings.append("High-confidence manipulation indicators")
        if c > 0.6:
            findings.append("Multiple detection models agree")
    else:
        findings.append("Mixed signals from different analysis methods")
        findings.append("Requires manual review for definitive assessment")

    if analysis.file_type.startswith("video/"):
        findings.append("Temporal analysis completed")
    if analysis.file_type.startswith("audio/"):
        findings.append("Spectral analysis performed")
    return findings


def _ensemble_reasoning(analysis: AnalysisResult) -> str:
    c = analysis.confidence
    if analysis.prediction == "authentic":
        return (
            f"The ensemble model analyzed this content and found it to be authentic with {_pct(1 - c)}% "
            "confidence. The analysis considered multiple factors including pixel-level patterns, compression "
            "characteristics, and temporal consistency. No significant indicators of synthetic generation or "
            "manipulation were detected."
        )
    if analysis.prediction == "manipulated":
        return (
            f"The ensemble model detected potential manipulation with {_pct(c)}% confidence. The analysis "
            "identified patterns consistent with synthetic generation, including anomalous artifacts and "
            "inconsistencies that are typical of AI-generated or heavily edited content."
        )
    return (
        f"The analysis resulted in an inconclusive determination. The confidence score of {_pct(c)}% falls in "
        "the uncertain range, indicating mixed signals from different detection methods. This could be due to "
        "edge cases, novel generation techniques, or ambiguous content characteristics."
    )


def _model_type(name: str) -> str:
    lowered = name.lower()
    if settings.ensemble_model_marker.lower() in lowered:
        return "ensemble"
    if "audio" in lowered or "voice" in lowered:
        return "audio_analysis"
    if "face" in lowered:
        return "face_analysis"
    if "compression" in lowered:
        return "compression_analysis"
    return "deepfake_detector"


def _display_name(name: str) -> str:
    return name.replace("rd-", "", 1).replace("-", " ")


def _per_model_insight(model: ModelStatus) -> ModelInsight:
    score = rescale(model.score)
    prediction = classify(score)
    return ModelInsight(
        model_name=_display_name(model.name),
        model_type=_model_type(model.name),
        confidence=score,
        prediction=prediction,
        key_findings=[f"Model verdict: {model.status}", f"Manipulation score {_pct(score)}%"],
        technical_score=score,
        processing_time=0.0,
        reasoning=f"{_display_name(model.name)} scored this media at {_pct(score)}% ({prediction}).",
    )


def generate_model_insights(analysis: AnalysisResult) -> List[ModelInsight]:
    insights = [ModelInsight(
        model_name="Reality Defender Ensemble",
        model_type="ensemble",
        confidence=analysis.confidence,
        prediction=analysis.prediction,
        key_findings=_key_findings(analysis),
        technical_score=analysis.confidence,
        processing_time=analysis.processing_time,
        reasoning=_ensemble_reasoning(analysis),
    )]

    for model in analysis.details.models:
        if is_completed(model) and model.score is not None:
            insights.append(_per_model_insight(model))
    return insights


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


def _authenticity_indicators(analysis: AnalysisResult) -> List[AuthenticityIndicator]:
    c = analysis.confidence
    contribution = {
        "authentic": "positive",
        "manipulated": "negative",
    }.get(analysis.prediction, "neutral")

    # Weights are fixed editorial values
    indicators = [
        AuthenticityIndicator(
            factor="AI Model Analysis",
            weight=0.8,
            contribution=contribution,
            explanation=f"Primary AI detection model with {_pct(c)}% confidence",
        ),
        AuthenticityIndicator(
            factor="Technical Analysis",
            weight=0.6,
            contribution="neutral",
            explanation="Comprehensive technical analysis of file properties and metadata",
        ),
    ]
    if analysis.details.frame_analysis is not None:
        indicators.append(AuthenticityIndicator(
            factor="Temporal Consistency",
            weight=0.7,
            contribution="positive" if c < 0.5 else "negative",
            explanation="Frame-by-frame analysis for temporal consistency patterns",
        ))
    return indicators


def _risk_factors(analysis: AnalysisResult, reasons: List[ExplanationReason]) -> List[RiskFactor]:
    c = analysis.confidence
    risks = []

    if analysis.prediction == "manipulated":
        risks.append(RiskFactor(
            factor="Synthetic Content Detection",
            severity="critical" if c > 0.8 else "high" if c > 0.6 else "medium",
            likelihood=c,
            impact="Content may be artificially generated or manipulated",
        ))
    elif analysis.prediction == "inconclusive":
        risks.append(RiskFactor(
            factor="Uncertain Analysis",
            severity="medium",
            likelihood=abs(0.5 - c) * 2,
            impact="Cannot determine authenticity with high confidence",
        ))

    for reason in reasons:
        if reason.severity == "high":
            risks.append(RiskFactor(
                factor=reason.title,
                severity="high",
                likelihood=reason.confidence,
                impact=reason.description,
            ))
    return risks


def _recommendations(analysis: AnalysisResult) -> List[str]:
    c = analysis.confidence
    actions = []

    if analysis.details.score_source == "none":
        actions.append("Re-run the analysis; no detection model returned a usable score")

    if analysis.prediction == "manipulated":
        actions.append("Exercise caution when sharing or using this content")
        actions.append("Consider additional verification from independent sources")
        if c > 0.8:
            actions.append("High probability of manipulation - avoid using without verification")
    elif analysis.prediction == "inconclusive":
        actions.append("Seek additional expert analysis or verification")
        actions.append("Use caution and clearly label as unverified if sharing")
        actions.append("Consider analyzing with additional tools or methods")
    elif c < 0.2 and analysis.details.score_source != "none":
        actions.append("Content appears genuine with high confidence")

    actions.append("Keep original file metadata when possible for future reference")
    return actions


def generate_summary(analysis: AnalysisResult, reasons: List[ExplanationReason]) -> ExplanationSummary:
    return ExplanationSummary(
        primary_reason=reasons[0].description if reasons else "Analysis completed",
        secondary_reasons=[r.title for r in reasons[1:4]],
        overall_confidence=analysis.confidence,
        authenticity_indicators=_authenticity_indicators(analysis),
        risk_factors=_risk_factors(analysis, reasons),
        recommended_actions=_recommendations(analysis),
    )


# ---------------------------------------------------------------------------
# Optional sections
# ---------------------------------------------------------------------------


def _temporal_analysis(analysis: AnalysisResult) -> Optional[TemporalAnalysis]:
    frames = analysis.details.frame_analysis
    if frames is None:
        return None

    per_frame = [
        FrameReason(
            frame=f.frame,
            timestamp=f.timestamp,
            primary_concerns=list(f.anomalies),
            confidence_change=f.confidence - analysis.confidence,
        )
        for f in frames
    ]
    any_anomalies = any(f.anomalies for f in frames)
    return TemporalAnalysis(
        frame_by_frame_reasons=per_frame,
        overall_trends=[
            "Analyzed temporal consistency across all frames",
            "Some frames show anomalies" if any_anomalies else "No significant anomalies detected",
            "Frame-to-frame analysis completed",
        ],
    )


def _metadata_analysis(analysis: AnalysisResult) -> MetadataAnalysis:
    metadata = analysis.details.metadata
    properties = []

    if metadata.duration:
        properties.append(FileProperty(
            property="Duration",
            actual_value=f"{metadata.duration:g}s",
            assessment="normal" if metadata.duration > 0 else "suspicious",
            explanation="Media duration within expected range",
        ))

    if metadata.resolution:
        properties.append(FileProperty(
            property="Resolution",
            actual_value=metadata.resolution,
            assessment="normal",
            explanation="Standard resolution format detected",
        ))

    if metadata.codec:
        is_common = any(codec in metadata.codec.lower() for codec in COMMON_CODECS)
        properties.append(FileProperty(
            property="Codec",
            actual_value=metadata.codec,
            assessment="normal" if is_common else "suspicious",
            explanation="Standard codec format" if is_common else "Unusual codec may indicate processing",
        ))

    return MetadataAnalysis(
        file_properties=properties,
        processing_history=["File uploaded and analyzed via Reality Defender API"],
    )


def explain(analysis: AnalysisResult, config: Optional[ExplanationConfig] = None) -> DetailedExplanation:
    """Build the full DetailedExplanation for a normalized result."""
    config = config or _default_config()

    reasons = generate_reasons(analysis, config)
    summary = generate_summary(analysis, reasons)

    return DetailedExplanation(
        id=f"exp_{analysis.id}",
        analysis_id=analysis.id,
        summary=summary,
        reasons=reasons[:config.max_reasons_to_show],
        evidence=generate_evidence(analysis) if config.include_visual_evidence else [],
        model_insights=generate_model_insights(analysis) if config.include_model_insights else [],
        temporal_analysis=_temporal_analysis(analysis),
        metadata_analysis=_metadata_analysis(analysis),
        generated_at=analysis.timestamp,
        processing_version=PROCESSING_VERSION,
    )
