"""
Analysis error taxonomy.

Everything raised by the submission/polling/normalization core derives from
`AnalysisError`. Route handlers translate these into HTTPException; file
validation keeps raising HTTPException directly.
"""

from typing import Any, Optional


class AnalysisError(Exception):
    """Base class for failures of a remote analysis request."""

    status_code = 500
    user_message = "Analysis failed. Please try again."


class MissingCredentialsError(AnalysisError):
    status_code = 500
    user_message = "API key not configured"


class UpstreamError(AnalysisError):
    """Non-2xx answer from the detection service. Carries its status and body."""

    def __init__(self, status: int, body: Optional[Any] = None, message: str = ""):
        self.status = status
        self.body = body if body is not None else {}
        super().__init__(message or f"Upstream error: {status}")


class UpstreamDecodeError(UpstreamError):
    """2xx answer whose body is not a JSON object (HTML error page, truncated JSON)."""


class SubmissionError(AnalysisError):
    """Upload target could not be obtained, or the upload itself failed."""

    status_code = 502
    user_message = "Could not upload the file to the detection service."


class PollingTransientError(AnalysisError):
    """A single status query failed. Tolerated until the last attempt."""

    status_code = 502
    user_message = "Lost contact with the detection service."


class AnalysisTimeoutError(AnalysisError, TimeoutError):
    status_code = 504
    user_message = "Analysis timeout - taking longer than expected. Please try again."


class AnalysisCancelledError(AnalysisError):
    status_code = 499
    user_message = "Analysis cancelled."


class ScoreUnavailableError(AnalysisError):
    """No completed model and no summary field yielded a usable score."""

    status_code = 502
    user_message = "The detection service returned no usable score."
