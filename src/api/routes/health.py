"""
Health Check Routes
Service health monitoring endpoints
Source: https://microservices.io/patterns/observability/health-check-api.html
"""

from typing import Any

from fastapi import APIRouter

from src.api.config import settings
from src.db.connection import check_db_connection
from src.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Liveness check; does not touch the database."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@router.get("/health/detailed")
async def detailed_health_check() -> dict[str, Any]:
    """Readiness check with database status."""
    db_healthy = await check_db_connection()
    if not db_healthy:
        logger.warning("Detailed health check: database unreachable")

    return {
        "status": "healthy" if db_healthy else "unhealthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "checks": {
            "database": "healthy" if db_healthy else "unhealthy",
        },
    }
