# src/hyperlocal/main.py
"""Main entry point for the Hyperlocal application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from hyperlocal.api.errors import register_exception_handlers
from hyperlocal.api.v1 import heatmap_router, moderation_router, posts_router, search_router
from hyperlocal.core.redis import get_redis
from hyperlocal.core.settings import settings
from hyperlocal.services.broadcast import RedisBroadcaster
from hyperlocal.services.sweeper import ExpirySweeper

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Location-based ephemeral neighbourhood feed API",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

register_exception_handlers(app)

# Include API routers
app.include_router(posts_router, prefix="/api/v1")
app.include_router(moderation_router, prefix="/api/v1")
app.include_router(heatmap_router, prefix="/api/v1")
app.include_router(search_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    if settings.sweeper_enabled:
        sweeper = ExpirySweeper(
            broadcaster=RedisBroadcaster(get_redis(), settings.broadcast_channel)
        )
        await sweeper.start()
        app.state.sweeper = sweeper
        logger.info(
            "Expiry sweeper started (every %.0fs, archival every %.0fs)",
            sweeper.expiry_interval,
            sweeper.archive_interval,
        )
    else:
        app.state.sweeper = None


@app.on_event("shutdown")
async def on_shutdown() -> None:
    sweeper: ExpirySweeper | None = getattr(app.state, "sweeper", None)
    if sweeper:
        await sweeper.stop()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Location-based ephemeral neighbourhood feed API",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
    uvicorn.run("hyperlocal.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
