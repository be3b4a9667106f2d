"""
Upstream passthrough routes: /api/rd/signed-url and /api/rd/result/{id}

The browser never sees the API key; these routes inject it server-side and
forward the upstream JSON (or its error status) unchanged.
"""

import asyncio
import logging

import aiohttp
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from app.core.dependencies import get_rd_client
from app.core.errors import MissingCredentialsError, UpstreamDecodeError, UpstreamError
from app.integrations.reality_defender import RealityDefenderClient
from app.schemas.reports import SignedUrlRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Proxy"])


def _upstream_response(e: UpstreamError) -> JSONResponse:
    return JSONResponse(
        status_code=e.status,
        content={"error": "Upstream error", "status": e.status, "response": e.body},
    )


async def _forward(call):
    try:
        return await call
    except MissingCredentialsError:
        raise HTTPException(status_code=500, detail="API key not configured")
    except UpstreamDecodeError as e:
        logger.error(f"[PROXY] Undecodable upstream body: HTTP {e.status}")
        raise HTTPException(status_code=502, detail="Invalid response from detection service")
    except UpstreamError as e:
        return _upstream_response(e)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"[PROXY] Upstream unreachable: {type(e).__name__}")
        raise HTTPException(status_code=502, detail="Detection service unreachable")


@router.post("/api/rd/signed-url")
async def signed_url(request: SignedUrlRequest, client: RealityDefenderClient = Depends(get_rd_client)):
    """Request a presigned upload URL for `fileName`."""
    if not request.fileName or not request.fileName.strip():
        raise HTTPException(status_code=400, detail="Invalid fileName")
    return await _forward(client.request_upload_target(request.fileName))


@router.get("/api/rd/result/{job_id}")
async def result(job_id: str, client: RealityDefenderClient = Depends(get_rd_client)):
    """Current status/result document of an upstream job."""
    return await _forward(client.fetch_result(job_id))
