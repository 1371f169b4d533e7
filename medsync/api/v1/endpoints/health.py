"""Health check endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from medsync.config import settings
from medsync.constants import SUPPORTED_COUNTRIES
from medsync.core.redis_client import check_redis_connection
from medsync.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(BaseModel):
    """Detailed health check response model."""

    status: str
    version: str
    environment: str
    redis: str
    databases: dict[str, str]


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns:
        Basic health status
    """
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Detailed health check",
)
async def detailed_health_check() -> DetailedHealthResponse:
    """
    Detailed health check with Redis and per-country database status.

    Returns:
        Detailed health status including dependencies
    """
    redis_healthy = await check_redis_connection()
    databases = {
        country: "healthy" if await check_database_connection(country) else "unhealthy"
        for country in SUPPORTED_COUNTRIES
    }
    all_healthy = redis_healthy and all(v == "healthy" for v in databases.values())

    return DetailedHealthResponse(
        status="healthy" if all_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        redis="healthy" if redis_healthy else "unhealthy",
        databases=databases,
    )


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    """
    Simple ping endpoint.

    Returns:
        Pong response
    """
    return {"message": "pong"}
