"""
Health check endpoints.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.core.config import settings
from app.core.dependencies import get_store_dependency
from app.core.exceptions import StoreError
from app.infrastructure.store import KeyValueStore

router = APIRouter()


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "service": "gatehouse-api",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@router.get("/health/ready")
async def readiness_check(
    store: KeyValueStore = Depends(get_store_dependency),
) -> Dict[str, Any]:
    """
    Readiness check including the backing store.

    Returns:
        Readiness status with component health
    """
    components = {
        "api": "healthy",
        "store": "unknown",
    }

    try:
        await store.get("health/ping")
        components["store"] = "healthy"
    except StoreError:
        components["store"] = "unhealthy"

    all_healthy = all(status == "healthy" for status in components.values())

    return {
        "status": "ready" if all_healthy else "not ready",
        "backend": settings.STORE_BACKEND,
        "components": components,
    }
