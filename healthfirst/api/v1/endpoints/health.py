"""Health check endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from healthfirst.config import settings
from healthfirst.core.redis_client import check_redis_connection
from healthfirst.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Health check with dependency status."""

    database: str
    cache: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """Liveness check that touches no dependency."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Detailed health check",
)
async def detailed_health_check() -> DetailedHealthResponse:
    """
    Health check including the database and the search cache.

    The service is degraded without a database. A missing cache only slows
    search down, so it is reported but does not change the overall status.
    """
    db_healthy = await check_database_connection()

    if settings.cache_enabled:
        cache_status = "healthy" if await check_redis_connection() else "unhealthy"
    else:
        cache_status = "disabled"

    return DetailedHealthResponse(
        status="healthy" if db_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database="healthy" if db_healthy else "unhealthy",
        cache=cache_status,
    )


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    """Simple ping endpoint."""
    return {"message": "pong"}
