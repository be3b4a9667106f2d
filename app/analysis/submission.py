"""
Remote submission: presigned upload target + direct PUT of the file bytes.

A failed step is fatal to the analysis; nothing is retried and nothing is
persisted.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import aiohttp

from app.analysis.progress import STAGES_UPLOAD, ProgressReporter
from app.core.errors import MissingCredentialsError, SubmissionError, UpstreamError
from app.integrations.reality_defender import RealityDefenderClient
from app.schemas.analysis import Job, UploadProgress

logger = logging.getLogger(__name__)


def _extract_target(body: dict) -> tuple[str, str]:
    job_id = body.get("requestId") if isinstance(body, dict) else None
    inner = body.get("response") if isinstance(body, dict) else None
    signed_url = inner.get("signedUrl") if isinstance(inner, dict) else None
    if not job_id or not signed_url:
        raise SubmissionError("Upload target response is missing requestId or signedUrl")
    return str(job_id), str(signed_url)


class SubmissionClient:
    def __init__(self, client: RealityDefenderClient):
        self.client = client

    async def submit(
        self,
        file_name: str,
        content: bytes,
        content_type: Optional[str],
        reporter: Optional[ProgressReporter] = None,
    ) -> Job:
        """Obtain an upload target and transfer the file. Returns the Job to poll."""
        try:
            body = await self.client.request_upload_target(file_name)
            job_id, signed_url = _extract_target(body)
            logger.info(f"[SUBMIT] Upload target issued for {file_name} (request {job_id})")

            if reporter:
                await reporter.emit(UploadProgress(
                    percentage=15,
                    stage="upload",
                    message="Uploading to Reality Defender servers...",
                    stages_completed=STAGES_UPLOAD,
                ))

            await self.client.upload(signed_url, content, content_type)
        except MissingCredentialsError as e:
            raise SubmissionError(str(e)) from e
        except UpstreamError as e:
            raise SubmissionError(f"Detection service rejected the upload: HTTP {e.status}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SubmissionError(f"Transport error during upload: {type(e).__name__}") from e

        logger.info(f"[SUBMIT] Uploaded {file_name} ({len(content)} bytes) for request {job_id}")
        return Job(job_id=job_id, upload_target=signed_url, submitted_at=datetime.now(timezone.utc))
