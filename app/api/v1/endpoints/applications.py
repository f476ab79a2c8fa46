"""
Application catalog endpoints.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from app.api.v1.decisions import ensure_allowed
from app.core.dependencies import Principal, get_application_service, get_current_principal
from app.domain.schemas.applications import AppDescriptor
from app.domain.schemas.eligibility import EligibilityResult
from app.services.applications import ApplicationService

router = APIRouter()


@router.get("", response_model=List[AppDescriptor])
async def list_applications(
    department: Optional[str] = Query(default=None),
    category: Optional[str] = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    service: ApplicationService = Depends(get_application_service),
) -> List[AppDescriptor]:
    """List the applications the caller may open."""
    return await service.list_for(principal.profile, department=department, category=category)


@router.get("/favorites")
async def get_favorites(
    principal: Principal = Depends(get_current_principal),
    service: ApplicationService = Depends(get_application_service),
) -> Dict[str, List[str]]:
    return {"favorites": await service.get_favorites(principal.user_id)}


@router.get("/analytics")
async def get_analytics(
    principal: Principal = Depends(get_current_principal),
    service: ApplicationService = Depends(get_application_service),
) -> Dict[str, Any]:
    return await service.get_analytics(principal.user_id)


@router.get("/{app_id}/access", response_model=AppDescriptor)
async def check_access(
    app_id: str,
    principal: Principal = Depends(get_current_principal),
    service: ApplicationService = Depends(get_application_service),
) -> AppDescriptor:
    """Get one application, refusing with the reason when the caller may not open it."""
    result = await service.get_for(principal.profile, app_id)
    if isinstance(result, EligibilityResult):
        ensure_allowed(result.eligible, result.reason)
    return result


@router.post("/{app_id}/access")
async def track_access(
    app_id: str,
    principal: Principal = Depends(get_current_principal),
    service: ApplicationService = Depends(get_application_service),
) -> Dict[str, Any]:
    """Record that the caller opened an application."""
    result = await service.get_for(principal.profile, app_id)
    if isinstance(result, EligibilityResult):
        ensure_allowed(result.eligible, result.reason)
    analytics = await service.track_access(principal.user_id, app_id)
    return {"app_id": app_id, "analytics": analytics}


@router.put("/{app_id}/favorite")
async def add_favorite(
    app_id: str,
    principal: Principal = Depends(get_current_principal),
    service: ApplicationService = Depends(get_application_service),
) -> Dict[str, List[str]]:
    result = await service.get_for(principal.profile, app_id)
    if isinstance(result, EligibilityResult):
        ensure_allowed(result.eligible, result.reason)
    return {"favorites": await service.add_favorite(principal.user_id, app_id)}


@router.delete("/{app_id}/favorite")
async def remove_favorite(
    app_id: str,
    principal: Principal = Depends(get_current_principal),
    service: ApplicationService = Depends(get_application_service),
) -> Dict[str, List[str]]:
    return {"favorites": await service.remove_favorite(principal.user_id, app_id)}
