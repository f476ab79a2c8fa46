"""
Session endpoints.
"""
from fastapi import APIRouter, Depends, status

from app.api.v1.decisions import ensure_allowed
from app.core.dependencies import Principal, get_current_principal, get_session_service
from app.domain.schemas.eligibility import EligibilityResult
from app.domain.schemas.sessions import SessionCreate, SessionResource
from app.services.sessions import SessionService

router = APIRouter()


@router.post("", response_model=SessionResource, status_code=status.HTTP_201_CREATED)
async def create_session(
    request: SessionCreate,
    principal: Principal = Depends(get_current_principal),
    service: SessionService = Depends(get_session_service),
) -> SessionResource:
    result = await service.create_session(request, principal.user_id, principal.profile)
    if isinstance(result, EligibilityResult):
        ensure_allowed(result.eligible, result.reason)
    return result


@router.get("/{session_id}/eligibility", response_model=EligibilityResult)
async def session_eligibility(
    session_id: str,
    principal: Principal = Depends(get_current_principal),
    service: SessionService = Depends(get_session_service),
) -> EligibilityResult:
    return await service.check_eligibility(session_id, principal.user_id)


@router.post("/{session_id}/register", response_model=EligibilityResult)
async def register_for_session(
    session_id: str,
    principal: Principal = Depends(get_current_principal),
    service: SessionService = Depends(get_session_service),
) -> EligibilityResult:
    """Take a seat in a session; refused when full, ineligible or already registered."""
    result = await service.register(session_id, principal.user_id)
    ensure_allowed(result.eligible, result.reason)
    return result
