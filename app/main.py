"""TotalsRadar FastAPI application.

Head-to-head totals analytics: historical segments, confidence scoring,
over/under picks and the daily slate prewarm.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routes import config, health, matchups, picks, prewarm
from app.config import get_settings
from app.config.log_config import configure_logging
from app.models.base import engine

settings = get_settings()
configure_logging(settings.log_level)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("starting_totalsradar", version="0.1.0")
    yield
    await engine.dispose()
    logger.info("shutting_down_totalsradar")


# Create FastAPI application
app = FastAPI(
    title="TotalsRadar",
    description="Head-to-head totals analytics and decision engine",
    version="0.1.0",
    lifespan=lifespan,
)

# Include API routers
app.include_router(health.router)
app.include_router(matchups.router)
app.include_router(picks.router)
app.include_router(prewarm.router)
app.include_router(config.router)


# Error handlers
@app.exception_handler(404)
async def not_found_handler(request: Request, exc):
    """Custom 404 handler."""
    return JSONResponse({"detail": getattr(exc, "detail", "Not found")}, status_code=404)


@app.exception_handler(500)
async def server_error_handler(request: Request, exc):
    """Custom 500 handler."""
    logger.error("server_error", path=request.url.path, error=str(exc))
    return JSONResponse({"detail": "Internal server error"}, status_code=500)
