"""Health check API routes."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from authhub.api.dependencies import get_database_session
from authhub.core.auth.entities import utcnow
from authhub.infrastructure.cache.redis_client import get_redis_client
from authhub.settings import Settings, get_settings
from .schemas import DetailedHealthResponse, HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health Check"])


def _timestamp() -> str:
    return utcnow().isoformat() + "Z"


@router.get(
    "",
    response_model=HealthResponse,
    summary="Basic health check",
    description="Liveness check without dependency probes.",
)
async def basic_health_check() -> HealthResponse:
    return HealthResponse(status="healthy", timestamp=_timestamp())


@router.get(
    "/detailed",
    response_model=DetailedHealthResponse,
    summary="Detailed health check",
    description="Check the database, Redis and identity provider configuration.",
)
async def detailed_health_check(
    session: AsyncSession = Depends(get_database_session),
    settings: Settings = Depends(get_settings),
) -> DetailedHealthResponse:
    """
    Perform detailed health check of the service and its dependencies.

    Redis is only required when OAuth state checking is enabled.
    """
    services = {}
    overall_status = "healthy"

    try:
        await session.execute(text("SELECT 1"))
        services["database"] = "healthy"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        services["database"] = "unhealthy"
        overall_status = "unhealthy"

    if settings.oauth_state_check_enabled:
        redis_healthy = await get_redis_client().ping()
        services["redis"] = "healthy" if redis_healthy else "unhealthy"
        if not redis_healthy:
            overall_status = "unhealthy"
    else:
        services["redis"] = "not_required"

    services["google_oauth"] = "configured" if settings.google_oauth_configured else "not_configured"

    return DetailedHealthResponse(
        status=overall_status,
        timestamp=_timestamp(),
        services=services,
        version=settings.api_version,
    )
