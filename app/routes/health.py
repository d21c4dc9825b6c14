# app/routes/health.py
"""
Health check endpoints: liveness, readiness and database pool details.
"""

import time

from fastapi import APIRouter

from app.config import settings
from app.db.pool import db_health_check

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "event-suggestions"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check: database pool plus configuration of the ranking
    provider and ingestion command.

    A missing ranking provider key is reported but does not fail readiness;
    suggestions degrade to fallback ranking without it.
    """
    checks = {}
    overall_ok = True

    # 1) Database pool health check
    t0 = time.time()
    try:
        db_health = await db_health_check()
        is_healthy = db_health.get("healthy", False)

        checks["database"] = {
            "ok": is_healthy,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }

        if "pool_stats" in db_health:
            checks["database"]["pool_stats"] = db_health["pool_stats"]

        if "warnings" in db_health:
            checks["database"]["warnings"] = db_health["warnings"]

        if not is_healthy:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")

        overall_ok = overall_ok and is_healthy

    except Exception as e:
        checks["database"] = {
            "ok": False,
            "error": f"{type(e).__name__}: {e}",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = False

    # 2) Configuration checks
    config_warnings = []

    if not settings.ranking_configured():
        config_warnings.append("FEATHERLESS_API_KEY not set - suggestions will use fallback ranking")

    if not settings.EVENT_INGEST_COMMAND:
        config_warnings.append("EVENT_INGEST_COMMAND not set - empty event pool cannot be refreshed")

    checks["configuration"] = {
        "ok": True,
        "ranking_provider_configured": settings.ranking_configured(),
        "ingestion_configured": bool(settings.EVENT_INGEST_COMMAND),
        "warnings": config_warnings or None,
        "environment": settings.environment,
    }

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}


@router.get("/health/database")
async def database_health():
    """Detailed database pool health information."""
    return await db_health_check()
