import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables at the very beginning
load_dotenv()

from fastapi import FastAPI, Request  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402
from starlette.exceptions import HTTPException as StarletteHTTPException  # noqa: E402

from app.api import analysis, history, proxy, reports, system, usage  # noqa: E402
from app.core.dependencies import build_services  # noqa: E402
from app.core.errors import AnalysisError  # noqa: E402
from app.integrations import http_client, redis_client  # noqa: E402

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    redis_client.initialize()
    await http_client.initialize()
    build_services(app)
    logger.info("[STARTUP] Services ready")

    yield

    await http_client.close()


app = FastAPI(title="DeepFake Detection API", lifespan=lifespan)


# ---- Global Exception Handler for CORS ----
# HTTP errors must carry CORS headers so the frontend can read the JSON body
# instead of getting a generic Network Error.
@app.exception_handler(StarletteHTTPException)
async def custom_http_exception_handler(request: Request, exc: StarletteHTTPException):
    headers = dict(getattr(exc, "headers", None) or {})
    headers["Access-Control-Allow-Origin"] = "*"
    headers["Access-Control-Allow-Methods"] = "*"
    headers["Access-Control-Allow-Headers"] = "*"

    # Drain the request body so an early rejection of an upload does not
    # drop the connection mid-stream.
    try:
        async for _ in request.stream():
            pass
    except Exception as e:
        logger.warning(f"Error draining request stream in exception handler: {e}")

    logger.info(f"[ERROR HANDLER] Returning {exc.status_code} to client: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError):
    logger.error(f"[ERROR HANDLER] Unhandled {type(exc).__name__}: {exc}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.user_message})


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(system.router)
app.include_router(proxy.router)
app.include_router(analysis.router)
app.include_router(history.router)
app.include_router(usage.router)
app.include_router(reports.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
