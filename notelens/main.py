"""
NoteLens Application Entry Point

FastAPI application exposing note storage, analysis and related-note
lookup over HTTP.

Start locally:
    uvicorn notelens.main:app --host 0.0.0.0 --port 8000 --reload
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from notelens.api.v1.notes import router as notes_router
from notelens.core.config import settings
from notelens.core.logging import setup_logging
from notelens.repositories.notes import InMemoryNoteStore
from notelens.services.analyzer import build_orchestrator

# Initialize logging before any log statements
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        1. Create the note store.
        2. Wire providers (configured order) into the orchestrator.
           The local worker process starts lazily on first analysis.

    Shutdown:
        1. Terminate the local worker and close HTTP clients.
    """
    logger.info("Starting %s...", settings.PROJECT_NAME)
    logger.info("Log Level: %s", settings.LOG_LEVEL)

    store = InMemoryNoteStore()
    orchestrator = build_orchestrator(settings, store=store)
    app.state.store = store
    app.state.orchestrator = orchestrator

    yield  # Application runs here

    await orchestrator.close()
    logger.info("%s shutdown complete", settings.PROJECT_NAME)


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Note analysis with local/remote provider fallback and related-note search.",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(notes_router, prefix="/api/v1/notes", tags=["Notes"])


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check for load balancers and orchestrators."""
    primary, secondary = settings.provider_order
    return {
        "status": "ok",
        "service": "notelens",
        "environment": os.getenv("ENVIRONMENT", "local"),
        "providers": f"{primary},{secondary}",
    }
