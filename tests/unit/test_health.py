"""
Tests for health check endpoints.
"""

import asyncio
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from app.db.pool import DatabasePoolManager
from app.main import app

client = TestClient(app)

HEALTHY_DB = {
    "healthy": True,
    "pool_stats": {"pool_size": 5, "pool_available": 4, "requests_waiting": 0},
}


def test_healthz_endpoint():
    """Test the basic health check endpoint."""
    response = client.get("/healthz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "event-suggestions"


def test_readyz_endpoint_all_services_healthy():
    """Test readiness endpoint when the database and configuration are healthy."""
    with (
        patch("app.routes.health.db_health_check", AsyncMock(return_value=HEALTHY_DB)),
        patch("app.routes.health.settings.FEATHERLESS_API_KEY", "test-key"),
        patch("app.routes.health.settings.EVENT_INGEST_COMMAND", "npx tsx scripts/ingest.ts"),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is True

    checks = data["checks"]
    assert checks["database"]["ok"] is True
    assert checks["database"]["pool_stats"]["pool_size"] == 5
    assert checks["configuration"]["ranking_provider_configured"] is True
    assert checks["configuration"]["ingestion_configured"] is True
    assert checks["configuration"]["warnings"] is None


def test_readyz_endpoint_database_unhealthy():
    """Test readiness endpoint when the pool reports unhealthy."""
    with patch(
        "app.routes.health.db_health_check",
        AsyncMock(return_value={"healthy": False, "error": "Connection failed"}),
    ):
        response = client.get("/readyz")

    # Should still return 200, but overall_ok should be False
    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["database"]["ok"] is False
    assert data["checks"]["database"]["error"] == "Connection failed"


def test_readyz_endpoint_database_check_raises():
    """Test readiness endpoint when the health check itself blows up."""
    with patch(
        "app.routes.health.db_health_check", AsyncMock(side_effect=RuntimeError("pool closed"))
    ):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["database"]["error"] == "RuntimeError: pool closed"


def test_readyz_missing_provider_key_only_warns():
    """A missing ranking key degrades suggestions but keeps the service ready."""
    with (
        patch("app.routes.health.db_health_check", AsyncMock(return_value=HEALTHY_DB)),
        patch("app.routes.health.settings.FEATHERLESS_API_KEY", None),
        patch("app.routes.health.settings.EVENT_INGEST_COMMAND", None),
    ):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is True
    configuration = data["checks"]["configuration"]
    assert configuration["ranking_provider_configured"] is False
    assert configuration["ingestion_configured"] is False
    assert len(configuration["warnings"]) == 2


def test_readyz_includes_latency_metrics():
    """Test that readiness checks include latency metrics."""
    with patch("app.routes.health.db_health_check", AsyncMock(return_value=HEALTHY_DB)):
        response = client.get("/readyz")

    checks = response.json()["checks"]
    assert isinstance(checks["database"]["latency_ms"], (int, float))


def test_uninitialized_pool_reports_unhealthy():
    """The pool health check never touches the database before initialize()."""
    health = asyncio.run(DatabasePoolManager("postgresql://unused").health_check())

    assert health == {"healthy": False, "error": "Pool not initialized", "service": "database_pool"}
