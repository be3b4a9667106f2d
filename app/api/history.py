"""
History and preferences routes.

    GET/DELETE  /api/history
    GET         /api/history/stats
    GET         /api/history/export
    POST        /api/history/import
    GET/DELETE  /api/history/{analysis_id}
    GET/PATCH   /api/preferences
"""

from typing import List

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse

from app.core.dependencies import get_history
from app.schemas.analysis import StoredAnalysis
from app.schemas.usage import HistoryStats, ImportResult, PreferencesUpdate, UserPreferences
from app.services.history_service import HistoryService

router = APIRouter(tags=["History"])


@router.get("/api/history", response_model=List[StoredAnalysis])
def list_history(history: HistoryService = Depends(get_history)):
    return history.get_all()


@router.delete("/api/history")
def clear_history(history: HistoryService = Depends(get_history)):
    history.clear()
    return {"status": "cleared"}


@router.get("/api/history/stats", response_model=HistoryStats)
def history_stats(history: HistoryService = Depends(get_history)):
    return history.stats()


@router.get("/api/history/export")
def export_history(history: HistoryService = Depends(get_history)):
    data = history.export_data()
    filename = f"deepfake-analysis-export-{data['export_date'][:10]}.json"
    return JSONResponse(content=data, headers={"Content-Disposition": f'attachment; filename="{filename}"'})


@router.post("/api/history/import", response_model=ImportResult)
def import_history(payload: dict = Body(...), history: HistoryService = Depends(get_history)):
    outcome = history.import_data(payload)
    if not outcome.success:
        raise HTTPException(status_code=400, detail=outcome.message)
    return outcome


@router.get("/api/history/{analysis_id}", response_model=StoredAnalysis)
def get_analysis(analysis_id: str, history: HistoryService = Depends(get_history)):
    stored = history.get(analysis_id)
    if stored is None:
        raise HTTPException(status_code=404, detail="Analysis not found.")
    return stored


@router.delete("/api/history/{analysis_id}")
def delete_analysis(analysis_id: str, history: HistoryService = Depends(get_history)):
    if not history.remove(analysis_id):
        raise HTTPException(status_code=404, detail="Analysis not found.")
    return {"status": "deleted", "id": analysis_id}


@router.get("/api/preferences", response_model=UserPreferences)
def get_preferences(history: HistoryService = Depends(get_history)):
    return history.get_preferences()


@router.patch("/api/preferences", response_model=UserPreferences)
def update_preferences(update: PreferencesUpdate, history: HistoryService = Depends(get_history)):
    return history.update_preferences(update)
