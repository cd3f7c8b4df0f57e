"""
Preview service FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.config import settings
from backend.middleware.rate_limit import rate_limiter
from backend.routes import preview as preview_routes
from engine.preview import NodeSandbox

logger = logging.getLogger(__name__)


# Background task for cleanup
async def cleanup_task():
    """Drop stale rate limit entries. Runs every 60 seconds."""
    while True:
        try:
            rate_limiter.cleanup_old_entries(max_age_minutes=10)
        except Exception:
            logger.exception("Error in cleanup task")

        await asyncio.sleep(60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    - Report whether the headless sandbox can run
    - Start background cleanup task
    """
    if settings.PREVIEW_SANDBOX == "node":
        sandbox = NodeSandbox(node_binary=settings.NODE_BINARY)
        if sandbox.available():
            logger.info("Headless sandbox enabled (%s)", settings.NODE_BINARY)
        else:
            logger.warning("PREVIEW_SANDBOX=node but %s is not on PATH; builds will skip headless render", settings.NODE_BINARY)

    cleanup_task_handle = asyncio.create_task(cleanup_task())
    logger.info("Background cleanup task started")

    yield

    cleanup_task_handle.cancel()
    try:
        await cleanup_task_handle
    except asyncio.CancelledError:
        logger.info("Background cleanup task stopped")


app = FastAPI(
    title="App Preview",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

# Register routes
app.include_router(preview_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}
