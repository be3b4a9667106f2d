"""
Report routes: JSON/PDF export and chart data for a stored analysis.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from app.core.dependencies import get_history
from app.schemas.analysis import StoredAnalysis
from app.schemas.reports import ChartData, ReportOptions
from app.services.chart_data import build_chart_data
from app.services.history_service import HistoryService
from app.services.report_service import export_json, render_pdf

router = APIRouter(tags=["Reports"])


def _stored(analysis_id: str, history: HistoryService) -> StoredAnalysis:
    stored = history.get(analysis_id)
    if stored is None:
        raise HTTPException(status_code=404, detail="Report not found.")
    return stored


def _download_name(stored: StoredAnalysis, ext: str) -> str:
    safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in stored.filename)
    return f"itl-deepfake-analysis-{safe}-{stored.timestamp[:10]}.{ext}"


@router.get("/api/v1/reports/{analysis_id}.json")
def report_json(analysis_id: str, history: HistoryService = Depends(get_history)):
    stored = _stored(analysis_id, history)
    return Response(
        content=export_json(stored),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{_download_name(stored, "json")}"'},
    )


@router.get("/api/v1/reports/{analysis_id}.pdf")
async def report_pdf(
    analysis_id: str,
    include_charts: bool = Query(True),
    include_timeline: bool = Query(True),
    include_raw_data: bool = Query(False),
    history: HistoryService = Depends(get_history),
):
    """Render the PDF report. Rendering runs in the threadpool."""
    stored = _stored(analysis_id, history)
    options = ReportOptions(
        include_charts=include_charts,
        include_timeline=include_timeline,
        include_raw_data=include_raw_data,
    )
    pdf = await run_in_threadpool(render_pdf, stored, options)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{_download_name(stored, "pdf")}"'},
    )


@router.get("/api/v1/reports/{analysis_id}/charts", response_model=ChartData)
def report_charts(analysis_id: str, history: HistoryService = Depends(get_history)):
    return build_chart_data(_stored(analysis_id, history))
