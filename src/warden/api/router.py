"""Root API router with health endpoints and the access routes."""

from fastapi import APIRouter
from pydantic import BaseModel

from warden.core.access.routes import router as access_router


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str


# Create root API router
api_router = APIRouter()

health_router = APIRouter(tags=["health"])


@health_router.get(
    "/health/live",
    response_model=HealthResponse,
    summary="Liveness probe",
)
async def liveness() -> HealthResponse:
    """Liveness probe endpoint."""
    return HealthResponse(status="alive")


api_router.include_router(health_router)
api_router.include_router(access_router)
