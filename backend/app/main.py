"""FastAPI application."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.app.api.routes.health import router as health_router
from backend.app.api.routes.metrics import router as metrics_router
from backend.app.api.routes.sources import router as sources_router
from backend.app.api.routes.strategy_jobs import router as strategy_jobs_router
from backend.app.api.routes.study import router as study_router
from backend.app.config import get_settings
from backend.app.db.engine import create_tables, get_async_engine, resolve_database_url

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create tables on SQLite; Postgres schemas are managed by Alembic."""
    settings = get_settings()
    if resolve_database_url(settings).startswith("sqlite"):
        logger.info("SQLite database detected, creating tables")
        await create_tables(get_async_engine())
    yield


app = FastAPI(title="Exam Strategy API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_settings().ui_origin],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(strategy_jobs_router, tags=["strategy-jobs"])
app.include_router(sources_router, tags=["sources"])
app.include_router(study_router, tags=["study"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Exam Strategy API", "version": "0.1.0"}
