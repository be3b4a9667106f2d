"""
System / health routes.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from app.core.dependencies import get_rd_client
from app.integrations.reality_defender import RealityDefenderClient
from app.schemas.reports import ApiStatus

router = APIRouter(tags=["System"])


@router.get("/health")
async def health():
    return {"status": "healthy"}


@router.get("/robots.txt", response_class=PlainTextResponse)
def robots():
    return "User-agent: *\nDisallow: /"


@router.get("/api/status", response_model=ApiStatus)
async def api_status(client: RealityDefenderClient = Depends(get_rd_client)):
    """Reachability of the detection service with the configured key."""
    return await client.check_status()
