"""
Central application configuration.

Every tunable value lives here as a typed, documented field.
Any field can be overridden at runtime via an environment variable of the
same name (case-insensitive), e.g.:

    POLL_MAX_ATTEMPTS=90 uvicorn app.main:app     # slow upstream day
    export HISTORY_MAX_ITEMS=25                   # staging override

A `.env` file at the project root is loaded automatically.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,   # RD_API_KEY == rd_api_key
        extra="ignore",         # silently drop unknown env vars
    )

    # ------------------------------------------------------------------ #
    # Reality Defender upstream                                           #
    # ------------------------------------------------------------------ #
    rd_api_key: str = Field(
        "", description="Server-held upstream credential (never sent to clients)"
    )
    rd_api_url: str = Field(
        "https://api.prd.realitydefender.xyz", description="Upstream API base URL"
    )
    rd_presign_path: str = Field(
        "/api/files/aws-presigned", description="Upload-target (presigned URL) endpoint"
    )
    rd_result_path: str = Field(
        "/api/media/users/{job_id}", description="Job status/result endpoint"
    )
    http_timeout_sec: int = Field(
        30, description="Total timeout for a single upstream HTTP call (seconds)"
    )
    upload_timeout_sec: int = Field(
        600, description="Total timeout for the upload PUT of large videos (seconds)"
    )

    # ------------------------------------------------------------------ #
    # Result polling                                                      #
    # ------------------------------------------------------------------ #
    poll_max_attempts: int = Field(
        60, description="Status queries before the analysis times out"
    )
    poll_interval_sec: float = Field(
        2.0, description="Fixed delay between status queries (60 × 2 s ≈ 120 s ceiling)"
    )
    progress_upload_share: int = Field(
        25, description="Percent of the progress bar reserved for upload/preprocessing"
    )
    progress_analysis_share: int = Field(
        70, description="Percent of the progress bar driven by model completion"
    )
    progress_ceiling: int = Field(
        95, description="Progress never exceeds this until the terminal result arrives"
    )
    eta_default_sec: int = Field(
        60, description="ETA reported while no applicable model is known"
    )

    # ------------------------------------------------------------------ #
    # Scoring & explanations                                              #
    # ------------------------------------------------------------------ #
    ensemble_model_marker: str = Field(
        "ensemble", description="Substring identifying the aggregate-scoring model"
    )
    strict_scoring: bool = Field(
        False, description="Raise instead of defaulting to 0 when no score is usable"
    )
    explanation_max_reasons: int = Field(
        10, description="Reasons kept after ranking"
    )

    # ------------------------------------------------------------------ #
    # History & usage                                                     #
    # ------------------------------------------------------------------ #
    data_dir: str = Field(
        "./data", description="Directory for the JSON state file (Redis-absent fallback)"
    )
    history_max_items: int = Field(
        10, description="Default cap on stored analyses (user preference overrides)"
    )
    usage_free_tier_limit: int = Field(
        50, description="Monthly scans allowed by the upstream free tier"
    )
    usage_history_limit: int = Field(
        100, description="Scan records kept in the usage log"
    )
    enforce_free_tier: bool = Field(
        False, description="Reject /analyze with 429 once the monthly limit is reached"
    )

    # ------------------------------------------------------------------ #
    # File Size Limits                                                    #
    # ------------------------------------------------------------------ #
    max_image_upload_mb: int = Field(
        20, description="Max MB for image uploads"
    )
    max_video_upload_mb: int = Field(
        200, description="Max MB for video uploads"
    )
    max_audio_upload_mb: int = Field(
        50, description="Max MB for audio uploads"
    )
    pil_max_image_pixels: int = Field(
        20_000_000, description="PIL decompression-bomb guard (pixels)"
    )

    # ------------------------------------------------------------------ #
    # Thumbnails                                                          #
    # ------------------------------------------------------------------ #
    thumbnail_max_size: int = Field(
        200, description="Longest thumbnail edge (px)"
    )
    thumbnail_jpeg_quality: int = Field(
        70, description="JPEG quality for stored thumbnails"
    )

    # ------------------------------------------------------------------ #
    # PDF report                                                          #
    # ------------------------------------------------------------------ #
    pdf_dpi: int = Field(
        150, description="Render resolution of report pages"
    )
    pdf_margin_mm: int = Field(
        20, description="Page margin (mm)"
    )
    report_title: str = Field(
        "ITL DeepFake Detection Report", description="Heading printed on every report"
    )

    # ------------------------------------------------------------------ #
    # Derived byte-level properties (computed from MB fields)             #
    # ------------------------------------------------------------------ #
    @property
    def max_image_upload_bytes(self) -> int:
        return self.max_image_upload_mb * 1024 * 1024

    @property
    def max_video_upload_bytes(self) -> int:
        return self.max_video_upload_mb * 1024 * 1024

    @property
    def max_audio_upload_bytes(self) -> int:
        return self.max_audio_upload_mb * 1024 * 1024

    # A4 in pixels at the configured DPI (not env-overridable)
    @property
    def pdf_page_size(self) -> tuple[int, int]:
        return (round(210 / 25.4 * self.pdf_dpi), round(297 / 25.4 * self.pdf_dpi))


# Single shared instance - import this everywhere.
settings = Settings()
