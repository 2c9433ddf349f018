"""
Health Router

Liveness endpoint.
"""

from fastapi import APIRouter

from clubauth import __version__
from clubauth.models.contracts.common import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(status="healthy", version=__version__)
