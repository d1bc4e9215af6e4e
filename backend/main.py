import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import get_settings
from core.database import dispose_database, get_database_manager, init_database
from core.dependencies import get_notifier
from core.logging import setup_logging
from domain.errors import GuardError
from routes.api_v1 import api_v1_router
from services.archival_service import sweep_forever

settings = get_settings()
setup_logging(settings)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

# CORS is configured here only, before any routers.
ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

app.include_router(api_v1_router)

_sweep_task: Optional[asyncio.Task] = None


@app.exception_handler(GuardError)
async def guard_error_handler(request: Request, exc: GuardError) -> JSONResponse:
    """Render reason-coded rejections as {message, error}."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.on_event("startup")
async def on_startup() -> None:
    """Application startup hook."""
    global _sweep_task

    await init_database(settings.database_url)
    await get_database_manager().create_schema()
    if settings.sweep_enabled:
        _sweep_task = asyncio.create_task(
            sweep_forever(settings.sweep_interval_seconds, get_notifier())
        )
    logger.info(
        "Application startup complete (env=%s, sweep_enabled=%s, timezone=%s)",
        settings.env,
        settings.sweep_enabled,
        settings.match_timezone,
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    """Application shutdown hook."""
    global _sweep_task

    if _sweep_task is not None:
        _sweep_task.cancel()
        try:
            await _sweep_task
        except asyncio.CancelledError:
            pass
        _sweep_task = None
    await dispose_database()
    logger.info("Application shutdown complete")


@app.get("/health")
async def health() -> dict:
    """Simple health check endpoint."""
    return {"status": "ok"}
