# app/main.py
"""
FastAPI application with database pool lifecycle management.
"""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from app.config import settings
from app.db.pool import db_pool
from app.features.event_suggestions.api import router as suggestions
from app.infrastructure.observability.logging import (
    bind_request_context,
    clear_request_context,
    get_logger,
    log_request,
    setup_logging,
)
from app.routes import health

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""

    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    logger.info("Initializing database pool")
    await db_pool.initialize()

    if not settings.ranking_configured():
        logger.warning("Ranking provider not configured; suggestions will use fallback ranking")

    logger.info("All services initialized successfully", services=["database_pool"])

    yield

    logger.info("Application shutting down")
    try:
        await db_pool.close()
    except Exception as e:
        logger.error("Error closing database pool", error=str(e))
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="Event Suggestions",
    description="Personalized, AI-ranked local event suggestions",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router)
app.include_router(suggestions.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing and a request id."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    clear_request_context()
    bind_request_context(request_id=request_id)

    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    response.headers["X-Request-ID"] = request_id
    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
