"""
Service wiring.

`build_services(app)` runs once in the FastAPI lifespan, after the Redis and
HTTP integrations are initialized, and stores each service on `app.state`.
Route handlers receive them through the `get_*` dependencies, which tests
override with `app.dependency_overrides`.
"""

import logging

from fastapi import FastAPI, Request

from app.analysis.pipeline import AnalysisPipeline
from app.integrations.reality_defender import RealityDefenderClient
from app.services.history_service import HistoryService
from app.services.state_store import build_state_store
from app.services.usage_service import UsageService

logger = logging.getLogger(__name__)


def build_services(app: FastAPI) -> None:
    store = build_state_store()
    client = RealityDefenderClient()
    if not client.is_configured:
        logger.warning("[STARTUP] RD_API_KEY not set. /analyze and the proxy routes will fail until it is configured.")

    app.state.rd_client = client
    app.state.history = HistoryService(store)
    app.state.usage = UsageService(store)
    app.state.pipeline = AnalysisPipeline(client, usage=app.state.usage, history=app.state.history)


def get_rd_client(request: Request) -> RealityDefenderClient:
    return request.app.state.rd_client


def get_history(request: Request) -> HistoryService:
    return request.app.state.history


def get_usage(request: Request) -> UsageService:
    return request.app.state.usage


def get_pipeline(request: Request) -> AnalysisPipeline:
    return request.app.state.pipeline
