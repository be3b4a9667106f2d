"""
Analysis route: /analyze

Accepts multipart/form-data with a 'file' field. Validates it, runs the
full submit/poll/normalize/explain pipeline and returns the AnalysisResult.

With `?stream=true` the response is NDJSON: one {"type": "progress"} line
per progress event, then a single {"type": "result"} or {"type": "error"}
line. Closing the connection cancels polling.
"""

import asyncio
import json
import logging
import mimetypes
import os
import tempfile

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse

from app.analysis.pipeline import AnalysisPipeline
from app.config import settings
from app.core.dependencies import get_pipeline, get_usage
from app.core.diagnostics import log_memory
from app.core.errors import AnalysisError
from app.core.file_validator import sanitize_log_message, validate_file
from app.schemas.analysis import AnalysisResult, FileMeta, UploadProgress
from app.services.usage_service import UsageService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Analysis"])


def _content_type(upload: UploadFile, filename: str) -> str:
    if upload.content_type and upload.content_type != "application/octet-stream":
        return upload.content_type
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


def _validate(filename: str, content: bytes) -> None:
    suffix = os.path.splitext(filename)[1].lower() or ".bin"
    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp_file:
        tmp_file.write(content)
        temp_path = tmp_file.name
    try:
        validate_file(filename, len(content), temp_path)
    finally:
        if os.path.exists(temp_path):
            os.remove(temp_path)


def _ndjson(payload: dict) -> bytes:
    return (json.dumps(payload) + "\n").encode("utf-8")


async def _stream_analysis(pipeline: AnalysisPipeline, content: bytes, file_meta: FileMeta):
    queue: asyncio.Queue = asyncio.Queue()
    cancel_event = asyncio.Event()

    async def on_progress(progress: UploadProgress) -> None:
        await queue.put({"type": "progress", "progress": progress.model_dump(mode="json")})

    async def run() -> None:
        try:
            result = await pipeline.analyze(content, file_meta, on_progress, cancel_event)
            await queue.put({"type": "result", "result": result.model_dump(mode="json")})
        except AnalysisError as e:
            logger.error(sanitize_log_message(f"[ANALYZE] {file_meta.filename} failed: {e}"))
            await queue.put({"type": "error", "status": e.status_code, "detail": e.user_message})
        except Exception as e:
            logger.exception(sanitize_log_message(f"[ANALYZE] {file_meta.filename} crashed: {e}"))
            await queue.put({"type": "error", "status": 500, "detail": "Internal processing error."})

    task = asyncio.create_task(run())
    try:
        while True:
            message = await queue.get()
            yield _ndjson(message)
            if message["type"] != "progress":
                break
    finally:
        # client went away or we are done
        cancel_event.set()
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


@router.post("/analyze", response_model=AnalysisResult)
async def analyze(
    file: UploadFile = File(...),
    stream: bool = Query(False, description="Stream NDJSON progress events before the result"),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
    usage: UsageService = Depends(get_usage),
):
    """
    Analyze an image, video or audio file for manipulation.
    """
    filename = file.filename or "uploaded_file"
    content = await file.read()

    log_memory(f"Pre-Analyze: {filename}")
    _validate(filename, content)

    if settings.enforce_free_tier and not usage.can_make_scan():
        raise HTTPException(status_code=429, detail="Monthly free tier limit reached")

    file_meta = FileMeta(filename=filename, file_type=_content_type(file, filename), file_size=len(content))
    logger.info(f"[ANALYZE] {filename} ({file_meta.file_type}, {file_meta.file_size} bytes), stream={stream}")

    if stream:
        return StreamingResponse(
            _stream_analysis(pipeline, content, file_meta),
            media_type="application/x-ndjson",
        )

    try:
        result = await pipeline.analyze(content, file_meta)
    except AnalysisError as e:
        logger.error(sanitize_log_message(f"[ANALYZE] {filename} failed: {e}"))
        raise HTTPException(status_code=e.status_code, detail=e.user_message)

    log_memory(f"Post-Analyze: {filename}")
    return result
