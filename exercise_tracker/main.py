"""FastAPI application wiring for the exercise tracker."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import AsyncConnectionPool

from .api.routes import router as api_router
from .config import get_settings
from .domain.service import ExerciseLogService
from .errors import install_error_handlers
from .logging_config import setup_logging
from .repository import ExerciseRepository

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the Postgres pool and build the service for the app lifecycle."""
    setup_logging(settings.log_level, settings.log_file)
    pool = AsyncConnectionPool(
        settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        open=False,
    )
    await pool.open()
    repository = ExerciseRepository(pool)
    if settings.db_init_schema:
        await repository.ensure_schema()
    app.state.pool = pool
    app.state.exercise_service = ExerciseLogService(repository)
    logger.info("%s %s ready", settings.app_name, settings.version)
    try:
        yield
    finally:
        await pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics")
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(api_router)


def run() -> None:
    """Serve the application with uvicorn on the configured host and port."""
    uvicorn.run(app, host=settings.http_host, port=settings.http_port)
