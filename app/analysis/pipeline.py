"""
End-to-end analysis of one uploaded file:

    submit -> poll -> normalize -> explain -> usage + history

Progress events follow the upload stages (5 / 15 / 25), then the poller's
model-completion estimate, then a single 100 once the terminal result is in.
"""

import asyncio
import logging
from typing import Optional

from app.analysis.explainer import explain
from app.analysis.normalizer import normalize
from app.analysis.poller import ResultPoller
from app.analysis.progress import STAGES_PREPROCESSING, STAGES_UPLOAD, ProgressCallback, ProgressReporter
from app.analysis.submission import SubmissionClient
from app.core.errors import AnalysisCancelledError
from app.integrations.reality_defender import RealityDefenderClient
from app.schemas.analysis import AnalysisResult, FileMeta, UploadProgress
from app.schemas.explanation import ExplanationConfig
from app.services.history_service import HistoryService, create_thumbnail
from app.services.usage_service import UsageService

logger = logging.getLogger(__name__)


class AnalysisPipeline:
    def __init__(
        self,
        client: RealityDefenderClient,
        usage: Optional[UsageService] = None,
        history: Optional[HistoryService] = None,
        poller: Optional[ResultPoller] = None,
        explanation_config: Optional[ExplanationConfig] = None,
    ):
        self.client = client
        self.submission = SubmissionClient(client)
        self.poller = poller or ResultPoller(client)
        self.usage = usage
        self.history = history
        self.explanation_config = explanation_config

    async def analyze(
        self,
        content: bytes,
        file_meta: FileMeta,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
        thumbnail: Optional[str] = None,
    ) -> AnalysisResult:
        reporter = ProgressReporter(on_progress)

        await reporter.emit(UploadProgress(
            percentage=5,
            stage="upload",
            message="Preparing secure upload...",
            stages_completed=STAGES_UPLOAD,
        ))
        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelledError(f"Analysis of {file_meta.filename} cancelled before upload")

        job = await self.submission.submit(file_meta.filename, content, file_meta.file_type, reporter)

        await reporter.emit(UploadProgress(
            percentage=25,
            stage="preprocessing",
            message="Upload complete! Processing media...",
            stages_completed=STAGES_PREPROCESSING,
        ))

        raw = await self.poller.poll_until_complete(job.job_id, reporter, cancel_event)

        result = normalize(raw, file_meta)
        result = result.model_copy(update={"explanation": explain(result, self.explanation_config)})

        await self._track(result, content, thumbnail)
        return result

    async def _track(self, result: AnalysisResult, content: bytes, thumbnail: Optional[str]) -> None:
        """Usage and history are bookkeeping; a storage failure must not lose the result."""
        if self.usage is not None:
            try:
                self.usage.increment(result.file_type, result.filename, result.confidence, result.prediction)
            except Exception as e:
                logger.error(f"[USAGE] Failed to record scan for {result.id}: {e}")

        if self.history is not None:
            try:
                if thumbnail is None:
                    thumbnail = await asyncio.to_thread(create_thumbnail, content, result.file_type, result.filename)
                self.history.add(result, thumbnail)
            except Exception as e:
                logger.error(f"[HISTORY] Failed to store {result.id}: {e}")
