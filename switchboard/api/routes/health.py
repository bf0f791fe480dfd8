"""Health check and metrics endpoints."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from switchboard import __version__
from switchboard.api.dependencies import HealthChecksDep
from switchboard.api.models import ComponentHealth, HealthResponse
from switchboard.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(checks: HealthChecksDep) -> HealthResponse:
    """Report overall status plus one entry per registered backend check."""
    components = []
    for name, check in checks.items():
        try:
            healthy = await check()
            components.append(
                ComponentHealth(name=name, status="healthy" if healthy else "unhealthy")
            )
        except Exception as e:
            logger.warning("health_check_failed", component=name, error=str(e))
            components.append(ComponentHealth(name=name, status="unhealthy", message=str(e)))

    degraded = any(c.status == "unhealthy" for c in components)
    return HealthResponse(
        status="degraded" if degraded else "healthy",
        version=__version__,
        components=components,
    )


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
