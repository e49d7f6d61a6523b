"""FastAPI application for the Billing Chain Engine."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from billing_engine import __version__
from billing_engine.api import chains_router, claims_router, services_router
from billing_engine.core.config import settings
from billing_engine.core.database import close_db, init_db

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events:
    - Startup: Create tables in debug mode (use Alembic otherwise)
    - Shutdown: Dispose of the database engine
    """
    if settings.debug:
        init_db()
    logger.info(f"{settings.app_name} ready")

    yield

    close_db()


app = FastAPI(
    title=settings.app_name,
    description="Billing code chaining, per-diem rounding and fixed-width claim batch generation.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(chains_router, prefix=settings.api_v1_prefix)
app.include_router(services_router, prefix=settings.api_v1_prefix)
app.include_router(claims_router, prefix=settings.api_v1_prefix)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, Any]:
    """Health check endpoint (liveness probe)."""
    return {
        "status": "healthy",
        "service": "billing-chain-engine",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {
        "service": f"{settings.app_name} API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }
