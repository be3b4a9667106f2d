"""
Reality Defender HTTP integration.

Thin wrapper over the three upstream calls an analysis needs:

    POST {base}/api/files/aws-presigned   -> {requestId, response: {signedUrl}}
    PUT  {signedUrl}                      -> raw file bytes
    GET  {base}/api/media/users/{id}      -> multi-model status/result JSON

Non-2xx answers raise UpstreamError (status + decoded body); a 2xx result
body that is not a JSON object raises UpstreamDecodeError. Transport
errors (aiohttp.ClientError, asyncio.TimeoutError) propagate untouched so
callers decide whether they are fatal (submission) or transient (polling).
"""

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from app.config import settings
from app.core.errors import MissingCredentialsError, UpstreamDecodeError, UpstreamError
from app.integrations import http_client as http_module

logger = logging.getLogger(__name__)


async def _read_json(response) -> Any:
    try:
        return await response.json(content_type=None)
    except (aiohttp.ContentTypeError, ValueError):
        return {}


class RealityDefenderClient:
    """Upstream client. The API key stays server-side; it is injected per request."""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        self.api_key = settings.rd_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.rd_api_url).rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self, json_body: bool = False) -> dict:
        if not self.api_key:
            raise MissingCredentialsError("RD_API_KEY is required. Configure your Reality Defender API key.")
        headers = {"X-API-KEY": self.api_key}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def request_upload_target(self, file_name: str) -> dict:
        """Ask the service for a one-time upload URL keyed by file name."""
        url = f"{self.base_url}{settings.rd_presign_path}"
        headers = self._headers(json_body=True)

        async with http_module.request_session() as session:
            async with session.post(url, json={"fileName": file_name}, headers=headers) as response:
                body = await _read_json(response)
                if not 200 <= response.status < 300:
                    logger.warning(f"[RD] Presign failed for {file_name}: HTTP {response.status}")
                    raise UpstreamError(response.status, body)
                return body

    async def upload(self, upload_url: str, content: bytes, content_type: Optional[str]) -> None:
        """Direct PUT of the raw bytes to the presigned location."""
        headers = {"Content-Type": content_type or "application/octet-stream"}
        # the shared session's timeout is sized for JSON calls, not 200 MB videos
        timeout = aiohttp.ClientTimeout(total=settings.upload_timeout_sec)

        async with http_module.request_session() as session:
            async with session.put(upload_url, data=content, headers=headers, timeout=timeout) as response:
                if not 200 <= response.status < 300:
                    logger.warning(f"[RD] Upload PUT failed: HTTP {response.status}")
                    raise UpstreamError(response.status, message=f"Failed to upload file: {response.status}")

    async def fetch_result(self, job_id: str) -> dict:
        """Current status/result document for a job."""
        path = settings.rd_result_path.format(job_id=job_id)
        url = f"{self.base_url}{path}"
        headers = self._headers()

        async with http_module.request_session() as session:
            async with session.get(url, headers=headers) as response:
                if not 200 <= response.status < 300:
                    raise UpstreamError(response.status, await _read_json(response))
                try:
                    body = await response.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError) as e:
                    logger.warning(f"[RD] Undecodable result body for {job_id}: {type(e).__name__}")
                    raise UpstreamDecodeError(response.status, message="Result body is not valid JSON") from e
                if not isinstance(body, dict):
                    raise UpstreamDecodeError(response.status, body, message="Result body is not a JSON object")
                return body

    async def check_status(self) -> dict:
        """Probe the presign endpoint: online | unauthorized | error | offline."""
        try:
            await self.request_upload_target("status-check.jpg")
        except MissingCredentialsError:
            return {"status": "error"}
        except UpstreamError as e:
            return {"status": "unauthorized" if e.status == 401 else "error"}
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"[RD] Status check failed: {type(e).__name__}")
            return {"status": "offline"}
        return {"status": "online", "version": "1.0.0"}
