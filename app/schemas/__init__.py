from app.schemas.analysis import (
    AnalysisResult,
    FileMeta,
    Job,
    ModelStatus,
    RawResult,
    StoredAnalysis,
    UploadProgress,
)
from app.schemas.explanation import DetailedExplanation, ExplanationConfig
from app.schemas.reports import ApiStatus, ReportOptions, SignedUrlRequest
from app.schemas.usage import UsageReport, UsageStats, UserPreferences

__all__ = [
    "AnalysisResult",
    "FileMeta",
    "Job",
    "ModelStatus",
    "RawResult",
    "StoredAnalysis",
    "UploadProgress",
    "DetailedExplanation",
    "ExplanationConfig",
    "ApiStatus",
    "ReportOptions",
    "SignedUrlRequest",
    "UsageReport",
    "UsageStats",
    "UserPreferences",
]
