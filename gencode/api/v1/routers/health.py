"""Health check endpoint."""

import time

from fastapi import APIRouter, Depends

from gencode.api.v1.dependencies import get_services
from gencode.api.v1.schemas import HealthStatus
from gencode.services import Services

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthStatus)
async def health_check(services: Services = Depends(get_services)) -> HealthStatus:
    """Health check endpoint for load balancers and monitoring."""
    stats = await services.store.stats()

    return HealthStatus(
        status="healthy" if services.hub.running else "degraded",
        service="gen-code",
        version=services.settings.api_version,
        uptime_seconds=round(time.time() - services.started_at, 3),
        tasks_in_memory=stats["total_tasks"],
        active_tasks=stats["active_tasks"],
        streaming_subscribers=services.hub.subscriber_count(),
        models=services.models,
    )
