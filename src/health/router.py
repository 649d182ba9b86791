"""Health check endpoints."""

from fastapi import APIRouter, Request

from src.config import get_settings
from src.core.redis import get_redis


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness check: the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, str | bool]:
    """Readiness check: reports which backing services are connected."""
    settings = get_settings()
    database = getattr(request.app.state, "cassandra_session", None) is not None
    return {
        "status": "ready" if database else "degraded",
        "environment": settings.environment,
        "database": database,
        "redis": get_redis() is not None,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
