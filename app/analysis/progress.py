"""
Progress event delivery.

Every UploadProgress the pipeline or the poller produces goes through a
ProgressReporter, which keeps the emitted percentages non-decreasing and
reserves 100 for the single final event.
"""

import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from app.config import settings
from app.schemas.analysis import UploadProgress

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[UploadProgress], Union[None, Awaitable[None]]]

STAGES_UPLOAD = []
STAGES_PREPROCESSING = ["upload"]
STAGES_ANALYSIS = ["upload", "preprocessing"]
STAGES_RESULTS = ["upload", "preprocessing", "analysis"]


class ProgressReporter:
    """Wraps a sync or async callback. A missing callback makes every emit a no-op."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self.last_percentage = 0
        self.finished = False

    async def emit(self, progress: UploadProgress, final: bool = False) -> UploadProgress:
        if self.finished:
            logger.debug(f"[PROGRESS] Ignoring event after completion: {progress.message}")
            return progress

        percentage = 100 if final else min(progress.percentage, settings.progress_ceiling)
        percentage = max(percentage, self.last_percentage)
        if percentage != progress.percentage:
            progress = progress.model_copy(update={"percentage": percentage})

        self.last_percentage = percentage
        self.finished = final

        if self.callback is not None:
            outcome = self.callback(progress)
            if inspect.isawaitable(outcome):
                await outcome
        return progress
