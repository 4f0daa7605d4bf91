"""Health check endpoints.

Provides endpoints for monitoring service health and readiness.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from agrimarket.infrastructure.order_store import get_order_store

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    service: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health.

    Returns:
        Health status with service name and version.
    """
    from agrimarket.infrastructure.config import settings

    return HealthResponse(
        status="healthy",
        service="agrimarket-orders",
        version=settings.api_version,
    )


@router.get("/ready")
async def readiness_check() -> JSONResponse:
    """Check if the order store is reachable.

    Returns:
        Readiness status; 503 while the store is unreachable.
    """
    try:
        await get_order_store().ping()
    except Exception as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable", "error": str(e)},
        )
    return JSONResponse(content={"status": "ready"})
