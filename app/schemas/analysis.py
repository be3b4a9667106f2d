from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.explanation import DetailedExplanation

Prediction = Literal["authentic", "manipulated", "inconclusive"]
ScoreSource = Literal["ensemble", "model_average", "summary", "none"]


class Job(BaseModel):
    """One outstanding remote analysis request. Never persisted."""
    job_id: str
    upload_target: str
    submitted_at: datetime


class ModelStatus(BaseModel):
    name: str
    status: str     # upper-cased; QUEUED / PROCESSING / ANALYZING / COMPLETE / NOT_APPLICABLE / verdicts
    score: Optional[float] = None


class FileMeta(BaseModel):
    filename: str
    file_type: str = "application/octet-stream"
    file_size: int = 0


class FrameAnalysis(BaseModel):
    frame: int
    timestamp: float = 0.0
    confidence: float = 0.0
    anomalies: List[str] = Field(default_factory=list)


class AudioSegment(BaseModel):
    start: float
    end: float
    confidence: float = 0.0
    anomalies: List[str] = Field(default_factory=list)


class AudioAnalysis(BaseModel):
    segments: List[AudioSegment] = Field(default_factory=list)
    waveform_data: Optional[List[float]] = None


class RawResult(BaseModel):
    """Parsed view of one upstream status/result document."""
    parser_version: str
    request_id: Optional[str] = None
    overall_status: Optional[str] = None
    models: List[ModelStatus] = Field(default_factory=list)
    summary_score: Optional[float] = None
    frame_analysis: Optional[List[FrameAnalysis]] = None
    audio_analysis: Optional[AudioAnalysis] = None
    metadata: dict = Field(default_factory=dict)
    processing_time: float = 0.0
    timestamp: Optional[str] = None
    thumbnail_url: Optional[str] = None
    payload: dict = Field(default_factory=dict)


class CategoryBreakdown(BaseModel):
    """Heuristic percentages. They are not a probability partition and need not sum to 100."""
    authentic: int
    manipulated: int
    inconclusive: int


class MediaMetadata(BaseModel):
    duration: Optional[float] = None
    resolution: Optional[str] = None
    codec: Optional[str] = None
    bitrate: Optional[float] = None
    processing_time: Optional[float] = None
    models_analyzed: int = 0
    completed_models: int = 0


class AnalysisDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    overall_score: float
    category_breakdown: CategoryBreakdown
    metadata: MediaMetadata
    frame_analysis: Optional[List[FrameAnalysis]] = None
    audio_analysis: Optional[AudioAnalysis] = None
    models: List[ModelStatus] = Field(default_factory=list)
    score_source: ScoreSource = "none"


class AnalysisResult(BaseModel):
    """Normalized, UI-ready outcome of a completed job. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    id: str
    filename: str
    file_type: str
    file_size: int
    confidence: float = Field(ge=0.0, le=1.0)
    prediction: Prediction
    category_breakdown: CategoryBreakdown
    details: AnalysisDetails
    processing_time: float = 0.0
    timestamp: str
    thumbnail_url: Optional[str] = None
    explanation: Optional[DetailedExplanation] = None


class StoredAnalysis(AnalysisResult):
    thumbnail_blob: Optional[str] = None    # data URI


class AnalysisProgressDetails(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    active_models: List[str] = Field(default_factory=list)
    completed_models: int = 0
    total_models: int = 0
    model_statuses: Dict[str, str] = Field(default_factory=dict)
    current_phase: str = ""


class UploadProgress(BaseModel):
    percentage: int
    stage: Literal["upload", "preprocessing", "analysis", "results"]
    message: str
    stages_completed: List[str] = Field(default_factory=list)
    analysis_details: Optional[AnalysisProgressDetails] = None
    time_elapsed: Optional[int] = None
    estimated_time_remaining: Optional[int] = None
