"""
Health check endpoints.

Provides endpoints for monitoring application health and readiness.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from modules.auth.interfaces import ICredentialStore
from shared.config import Settings
from shared.exceptions import StorageError

from ..dependencies import get_app_settings, get_credential_store

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    status: str
    database: str
    users: int = 0


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_app_settings)) -> HealthResponse:
    """
    Basic health check endpoint.

    Returns 200 if the API is running.
    """
    return HealthResponse(status="healthy", version=settings.app_version)


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(
    store: ICredentialStore = Depends(get_credential_store),
) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Counts users through the credential store to prove it is reachable.
    """
    try:
        users = await store.count()
    except StorageError:
        return ReadinessResponse(status="degraded", database="unavailable")
    return ReadinessResponse(status="ready", database="connected", users=users)
