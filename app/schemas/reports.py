from pydantic import BaseModel


class ReportOptions(BaseModel):
    include_charts: bool = True
    include_timeline: bool = True
    include_raw_data: bool = False


class SignedUrlRequest(BaseModel):
    fileName: str | None = None     # upstream wire name, forwarded verbatim


class ApiStatus(BaseModel):
    status: str     # "online" | "unauthorized" | "error" | "offline"
    version: str | None = None


class ConfidenceLevel(BaseModel):
    label: str      # "Low Risk" | "Medium Risk" | "High Risk"
    color: str
    percentage: int


class CategorySlice(BaseModel):
    name: str
    value: int
    color: str


class TimelinePoint(BaseModel):
    frame: int
    timestamp: float
    confidence: int     # percent
    anomalies: int
    synthetic: bool = False


class ChartData(BaseModel):
    confidence_level: ConfidenceLevel
    categories: list[CategorySlice]
    timeline: list[TimelinePoint]
