from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["high", "medium", "low"]


class AffectedRegion(BaseModel):
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    frame: Optional[int] = None


class ExplanationReason(BaseModel):
    id: str
    category: Literal["visual", "audio", "metadata", "model", "temporal", "technical"]
    type: Literal["evidence", "anomaly", "pattern", "inconsistency", "artifact"]
    severity: Severity
    confidence: float
    title: str
    description: str
    technical_details: Optional[str] = None
    affected_regions: Optional[List[AffectedRegion]] = None
    supporting_evidence: Optional[List[str]] = None
    model_sources: Optional[List[str]] = None


class EvidenceLocation(BaseModel):
    frame: Optional[int] = None
    timestamp: Optional[float] = None


class ExplanationEvidence(BaseModel):
    id: str
    type: Literal[
        "visual_artifact", "audio_distortion", "compression_anomaly",
        "temporal_inconsistency", "statistical_anomaly",
    ]
    location: EvidenceLocation
    severity: float     # 0-1
    description: str


class ModelInsight(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_name: str
    model_type: Literal["deepfake_detector", "face_analysis", "audio_analysis", "compression_analysis", "ensemble"]
    confidence: float
    prediction: Literal["authentic", "manipulated", "inconclusive"]
    key_findings: List[str]
    technical_score: float
    processing_time: float
    reasoning: str
    supporting_metrics: Optional[Dict[str, float]] = None


class AuthenticityIndicator(BaseModel):
    factor: str
    weight: float
    contribution: Literal["positive", "negative", "neutral"]
    explanation: str


class RiskFactor(BaseModel):
    factor: str
    severity: Literal["critical", "high", "medium", "low"]
    likelihood: float
    impact: str


class ExplanationSummary(BaseModel):
    primary_reason: str
    secondary_reasons: List[str]
    overall_confidence: float
    authenticity_indicators: List[AuthenticityIndicator]
    risk_factors: List[RiskFactor]
    recommended_actions: List[str] = Field(default_factory=list)


class FrameReason(BaseModel):
    frame: int
    timestamp: float
    primary_concerns: List[str]
    confidence_change: float


class TemporalAnalysis(BaseModel):
    frame_by_frame_reasons: List[FrameReason]
    overall_trends: List[str]


class FileProperty(BaseModel):
    property: str
    expected_value: Optional[str] = None
    actual_value: str
    assessment: Literal["normal", "suspicious", "anomalous"]
    explanation: str


class MetadataAnalysis(BaseModel):
    file_properties: List[FileProperty]
    processing_history: List[str] = Field(default_factory=list)


class DetailedExplanation(BaseModel):
    id: str
    analysis_id: str
    summary: ExplanationSummary
    reasons: List[ExplanationReason]
    evidence: List[ExplanationEvidence]
    model_insights: List[ModelInsight]
    temporal_analysis: Optional[TemporalAnalysis] = None
    metadata_analysis: Optional[MetadataAnalysis] = None
    generated_at: str
    processing_version: str


class ExplanationConfig(BaseModel):
    include_model_insights: bool = True
    include_technical_details: bool = True
    include_visual_evidence: bool = True
    simplify_for_general_audience: bool = False
    max_reasons_to_show: int = 10
    evidence_visualization: bool = True
