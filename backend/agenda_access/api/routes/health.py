"""
Health check route (no authentication, no database access).
"""

from fastapi import APIRouter
from pydantic import BaseModel

from agenda_access import __version__

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)
