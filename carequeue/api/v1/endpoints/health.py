"""Health check endpoints."""

from fastapi import APIRouter, Request, status
from pydantic import BaseModel

from carequeue.config import settings

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
    database: str
    redis: str


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
async def detailed_health_check(request: Request) -> DetailedHealthResponse:
    """
    Detailed health check with database and Redis status.

    Redis only matters when event publishing is enabled; otherwise it is
    reported as ``disabled`` and does not degrade the status.
    """
    database = getattr(request.app.state, "database", None)
    notifications = getattr(request.app.state, "notifications", None)

    db_healthy = database is not None and await database.check_connection()

    if notifications is None or not notifications.enabled:
        redis_state = "disabled"
        redis_ok = True
    else:
        redis_ok = await notifications.check_connection()
        redis_state = "healthy" if redis_ok else "unhealthy"

    return DetailedHealthResponse(
        status="healthy" if db_healthy and redis_ok else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database="healthy" if db_healthy else "unhealthy",
        redis=redis_state,
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
