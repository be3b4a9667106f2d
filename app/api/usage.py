"""
Usage route: /api/usage - monthly scan counter and dashboard breakdowns.
"""

from fastapi import APIRouter, Depends

from app.core.dependencies import get_usage
from app.schemas.usage import UsageReport
from app.services.usage_service import UsageService

router = APIRouter(tags=["Usage"])


@router.get("/api/usage", response_model=UsageReport)
def usage_report(usage: UsageService = Depends(get_usage)):
    return usage.report()
