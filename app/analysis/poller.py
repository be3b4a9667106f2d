"""
Result polling state machine.

Each attempt queries the job once, parses the document, and either returns
(terminal) or emits a progress event and sleeps. Attempts are bounded by
settings.poll_max_attempts; a transient failure is tolerated except on the
last attempt.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional

import aiohttp

from app.analysis.normalizer import round_half_up
from app.analysis.parser import ACTIVE_STATES, ModelTally, parse_raw_result, tally_models
from app.analysis.progress import STAGES_ANALYSIS, STAGES_RESULTS, ProgressReporter
from app.config import settings
from app.core.errors import (
    AnalysisCancelledError,
    AnalysisTimeoutError,
    PollingTransientError,
    UpstreamDecodeError,
    UpstreamError,
)
from app.integrations.reality_defender import RealityDefenderClient
from app.schemas.analysis import AnalysisProgressDetails, ModelStatus, RawResult, UploadProgress

logger = logging.getLogger(__name__)

# Only these are shown as "active" in progress details; QUEUED is still counted as pending.
_DISPLAY_ACTIVE = ("ANALYZING", "PROCESSING")


def is_terminal(raw: RawResult, tally: ModelTally) -> bool:
    """
    Overall status outside the active set (a missing status included), or at
    least one model done and none still working.
    """
    if raw.overall_status not in ACTIVE_STATES:
        return True
    return tally.completed >= 1 and not tally.analyzing


def estimate_remaining(elapsed: float, completed: int, total: int) -> Optional[int]:
    if total == 0:
        return settings.eta_default_sec
    if completed == 0:
        return None
    estimated_total = elapsed / completed * total
    return max(0, round_half_up(estimated_total - elapsed))


def progress_percentage(completed: int, total: int) -> int:
    if total == 0:
        return settings.progress_upload_share
    share = settings.progress_upload_share + completed / total * settings.progress_analysis_share
    return min(settings.progress_ceiling, round_half_up(share))


def _display_name(name: str) -> str:
    return name.replace("rd-", "", 1).replace("-", " ", 1)


def build_progress(models: List[ModelStatus], elapsed: float) -> UploadProgress:
    """Progress event for one non-terminal attempt. Pure."""
    tally = tally_models(models)
    active = [_display_name(m.name) for m in models if m.status in _DISPLAY_ACTIVE][:3]

    if tally.analyzing:
        message = f"AI models analyzing: {tally.completed}/{tally.total} complete"
    else:
        message = "Finalizing analysis..."

    return UploadProgress(
        percentage=progress_percentage(tally.completed, tally.total),
        stage="analysis" if tally.completed > 0 else "preprocessing",
        message=message,
        stages_completed=STAGES_ANALYSIS,
        analysis_details=AnalysisProgressDetails(
            active_models=active,
            completed_models=tally.completed,
            total_models=tally.total,
            model_statuses={m.name: m.status for m in models},
            current_phase="Model Analysis" if tally.analyzing else "Results Compilation",
        ),
        time_elapsed=round_half_up(elapsed),
        estimated_time_remaining=estimate_remaining(elapsed, tally.completed, tally.total),
    )


class ResultPoller:
    def __init__(
        self,
        client: RealityDefenderClient,
        max_attempts: Optional[int] = None,
        interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.max_attempts = max_attempts or settings.poll_max_attempts
        self.interval = settings.poll_interval_sec if interval is None else interval
        self.clock = clock
        self.sleep = sleep

    async def _query(self, job_id: str) -> dict:
        try:
            return await self.client.fetch_result(job_id)
        except UpstreamDecodeError as e:
            raise PollingTransientError(f"Status query returned an undecodable body (HTTP {e.status})") from e
        except UpstreamError as e:
            raise PollingTransientError(f"Status query returned HTTP {e.status}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise PollingTransientError(f"Status query failed: {type(e).__name__}") from e

    @staticmethod
    def _check_cancelled(job_id: str, cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"[POLL] {job_id}: cancelled by caller")
            raise AnalysisCancelledError(f"Polling for {job_id} cancelled")

    async def poll_until_complete(
        self,
        job_id: str,
        reporter: Optional[ProgressReporter] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RawResult:
        """
        Query `job_id` until it is terminal.

        Raises AnalysisTimeoutError after max_attempts queries, the last
        PollingTransientError if the final attempt fails, and
        AnalysisCancelledError once `cancel_event` is set.
        """
        reporter = reporter or ProgressReporter()
        started = self.clock()

        for attempt in range(1, self.max_attempts + 1):
            self._check_cancelled(job_id, cancel_event)

            try:
                payload = await self._query(job_id)
            except PollingTransientError as e:
                if attempt == self.max_attempts:
                    logger.error(f"[POLL] {job_id}: final attempt {attempt} failed: {e}")
                    raise
                logger.warning(f"[POLL] {job_id}: attempt {attempt} failed, continuing: {e}")
                await self.sleep(self.interval)
                continue

            # a response that arrives after cancellation is discarded
            self._check_cancelled(job_id, cancel_event)

            raw = parse_raw_result(payload)
            tally = tally_models(raw.models)
            elapsed = self.clock() - started
            logger.info(
                f"[POLL] {job_id}: attempt {attempt}/{self.max_attempts} "
                f"status={raw.overall_status} models={tally.completed}/{tally.total}"
            )

            if is_terminal(raw, tally):
                await reporter.emit(UploadProgress(
                    percentage=100,
                    stage="results",
                    message="Analysis complete! Generating results...",
                    stages_completed=STAGES_RESULTS,
                    time_elapsed=round_half_up(elapsed),
                ), final=True)
                logger.info(f"[POLL] {job_id}: terminal after {attempt} attempts ({elapsed:.1f}s)")
                return raw

            await reporter.emit(build_progress(raw.models, elapsed))

            if attempt < self.max_attempts:
                await self.sleep(self.interval)

        logger.error(f"[POLL] {job_id}: no terminal result after {self.max_attempts} attempts")
        raise AnalysisTimeoutError(f"No terminal result for {job_id} after {self.max_attempts} attempts")
