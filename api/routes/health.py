"""Health check endpoints."""

from datetime import datetime
from typing import Dict

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from api.dependencies import get_repository
from core import __version__
from core.errors import RepositoryError
from storage.repository import LedgerRepository


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    services: Dict[str, str]


@router.get("/health", response_model=HealthResponse)
async def health_check(repository: LedgerRepository = Depends(get_repository)) -> HealthResponse:
    """Health check endpoint."""
    try:
        repository.get_vat_codes()
        storage = "up"
    except RepositoryError:
        storage = "down"

    return HealthResponse(
        status="healthy" if storage == "up" else "degraded",
        timestamp=datetime.utcnow().isoformat(),
        version=__version__,
        services={
            "api": "up",
            "storage": storage,
        }
    )


@router.get("/ready")
async def readiness_check() -> Dict[str, str]:
    """Readiness probe for Kubernetes."""
    return {"status": "ready"}


@router.get("/live")
async def liveness_check(response: Response) -> Dict[str, str]:
    """Liveness probe for Kubernetes."""
    return {"status": "alive"}
