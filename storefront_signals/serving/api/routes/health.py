"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel

from storefront_signals.config import get_settings
from storefront_signals.database.connection import check_database_health
from storefront_signals.serving.cache import get_redis, redis_available

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Comprehensive health check endpoint.

    Checks:
    - Database connectivity
    - Redis connectivity (optional dependency)
    - Background worker pool
    """
    settings = get_settings()
    checks: Dict[str, Any] = {}
    overall_status = "healthy"

    db_health = await check_database_health()
    checks["database"] = db_health
    if db_health.get("status") != "healthy":
        overall_status = "unhealthy"

    if redis_available():
        try:
            await get_redis().ping()
            checks["redis"] = {"status": "healthy"}
        except Exception as e:
            checks["redis"] = {"status": "unhealthy", "error": str(e)}
            if overall_status == "healthy":
                overall_status = "degraded"
    else:
        checks["redis"] = {"status": "disabled"}

    engine = getattr(request.app.state, "engine", None)
    running = engine is not None and engine.dispatcher.running
    checks["workers"] = {"status": "healthy" if running else "stopped"}
    if not running and overall_status == "healthy":
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.utcnow(),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """Returns 200 if the application is running."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(response: Response) -> Dict[str, str]:
    """Returns 200 if the application is ready to receive traffic."""
    db_health = await check_database_health()
    if db_health.get("status") != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}
    return {"status": "ready"}
