"""Health check endpoints for monitoring and deployment verification."""

from fastapi import APIRouter

from src.api.deps import AppSettings
from src.api.middleware.latency_logging import get_latency_stats
from src.core.openai import get_openai_metrics
from src.schemas.common import HealthResponse, HealthStatus, MetricsResponse

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness check",
    description="Basic health check to verify the service is running. Used for liveness checks.",
)
async def health_check() -> HealthResponse:
    """Return basic health status.

    This endpoint should always return 200 if the service is running.
    It does not check external dependencies.

    Returns:
        HealthResponse: Current health status with timestamp.
    """
    return HealthResponse(status=HealthStatus.HEALTHY)


@router.get(
    "/health/metrics",
    response_model=MetricsResponse,
    summary="Runtime metrics",
    description="Upstream call statistics and HTTP request latency statistics.",
)
async def metrics(settings: AppSettings) -> MetricsResponse:
    """Report upstream and request latency stats."""
    latency_stats = get_latency_stats()
    return MetricsResponse(
        upstream=get_openai_metrics().get_stats(),
        requests={
            **latency_stats.get_stats(),
            "by_path": latency_stats.get_stats_by_path(),
        },
        mock_mode=bool(settings.mock_openai),
    )
