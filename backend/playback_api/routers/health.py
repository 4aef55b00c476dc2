"""Health endpoints."""
from fastapi import APIRouter, Request

from ..schemas import HealthStatus

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthStatus)
def get_health(request: Request) -> HealthStatus:
    """Return service heartbeat information."""

    return HealthStatus(version=request.app.version)
