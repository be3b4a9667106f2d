from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ScanRecord(BaseModel):
    date: str
    file_type: str
    file_name: str
    confidence: float
    prediction: str


class UsageStats(BaseModel):
    total_scans: int = 0
    monthly_scans: int = 0
    current_month: str          # YYYY-MM
    last_reset: str
    scan_history: List[ScanRecord] = Field(default_factory=list)
    free_tier_limit: int


class ConfidenceBucket(BaseModel):
    range: str
    count: int


class DailyUsage(BaseModel):
    day: str    # MM-DD
    count: int


class UsageReport(BaseModel):
    stats: UsageStats
    remaining_scans: int
    usage_percentage: float
    can_make_scan: bool
    monthly_by_file_type: Dict[str, int]
    confidence_distribution: List[ConfidenceBucket]
    prediction_stats: Dict[str, int]
    weekly_usage: List[DailyUsage]


class UserPreferences(BaseModel):
    max_history_items: int = 10
    show_detailed_analysis: bool = True
    auto_download_reports: bool = False


class PreferencesUpdate(BaseModel):
    max_history_items: Optional[int] = Field(None, ge=1, le=500)
    show_detailed_analysis: Optional[bool] = None
    auto_download_reports: Optional[bool] = None


class HistoryStats(BaseModel):
    history_count: int
    estimated_size: str
    last_modified: Optional[str] = None


class ImportResult(BaseModel):
    success: bool
    message: str
