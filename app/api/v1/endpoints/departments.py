"""
Department eligibility and administration endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from app.api.v1.decisions import ensure_allowed
from app.core.dependencies import Principal, get_current_principal, get_department_service
from app.domain.schemas.departments import DepartmentEligibilityResponse, DepartmentRecord
from app.domain.schemas.eligibility import EligibilityResult, TransitionResult
from app.services.departments import DepartmentService

router = APIRouter()


class PrimaryDepartmentRequest(BaseModel):
    department_id: str = Field(min_length=1)


class DepartmentCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    max_members: int = Field(default=50, ge=1)
    required_rank: int = Field(default=0, ge=0)
    backing_group_id: Optional[str] = None


@router.get("/eligibility", response_model=DepartmentEligibilityResponse)
async def department_eligibility(
    principal: Principal = Depends(get_current_principal),
    service: DepartmentService = Depends(get_department_service),
) -> DepartmentEligibilityResponse:
    """Evaluate the caller's department eligibility and apply auto-approvals."""
    return await service.evaluate(principal.user_id, principal.profile)


@router.post("/primary", response_model=EligibilityResult)
async def set_primary_department(
    request: PrimaryDepartmentRequest,
    principal: Principal = Depends(get_current_principal),
    service: DepartmentService = Depends(get_department_service),
) -> EligibilityResult:
    result = await service.set_primary_department(principal.user_id, request.department_id)
    ensure_allowed(result.eligible, result.reason)
    return result


@router.post("/{department_id}/members/{user_id}/promote", response_model=TransitionResult)
async def promote_member(
    department_id: str,
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    service: DepartmentService = Depends(get_department_service),
) -> TransitionResult:
    """Admit a pending user to a department."""
    result = await service.promote_pending_member(department_id, user_id, principal.profile)
    ensure_allowed(result.allowed, result.reason)
    return result


@router.post("", response_model=DepartmentRecord, status_code=status.HTTP_201_CREATED)
async def create_department(
    request: DepartmentCreateRequest,
    principal: Principal = Depends(get_current_principal),
    service: DepartmentService = Depends(get_department_service),
) -> DepartmentRecord:
    result = await service.create_department(
        principal.profile,
        request.name,
        request.description,
        max_members=request.max_members,
        required_rank=request.required_rank,
        backing_group_id=request.backing_group_id,
    )
    if isinstance(result, EligibilityResult):
        ensure_allowed(result.eligible, result.reason)
    return result
