"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from edgecal import __version__
from edgecal.api import calibration, health
from edgecal.config import settings
from edgecal.database import init_db
from edgecal.logconfig import configure_logging

configure_logging(settings.log_level)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Edge Calibration API", environment=settings.environment)
    await init_db()

    yield

    # Shutdown
    logger.info("Shutting down Edge Calibration API")


app = FastAPI(
    title="Edge Calibration API",
    description="Weekly accuracy evaluation, weight learning and self-improvement for start/sit predictions",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(calibration.router, prefix=settings.api_v1_prefix)


@app.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {
        "name": "Edge Calibration API",
        "version": __version__,
        "docs": "/docs",
    }
