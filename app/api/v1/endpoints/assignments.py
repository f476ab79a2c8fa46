"""
Assignment endpoints.
"""
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.v1.decisions import ensure_allowed
from app.core.dependencies import Principal, get_assignment_workflow, get_current_principal
from app.domain.schemas.assignments import Assignment, AssignmentCreate
from app.domain.schemas.eligibility import EligibilityResult, TransitionResult
from app.services.assignments import AssignmentWorkflow

router = APIRouter()


class StatusUpdate(BaseModel):
    status: str


@router.post("", response_model=Assignment, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    request: AssignmentCreate,
    principal: Principal = Depends(get_current_principal),
    workflow: AssignmentWorkflow = Depends(get_assignment_workflow),
) -> Assignment:
    result = await workflow.create_assignment(request, principal.user_id, principal.profile)
    if isinstance(result, EligibilityResult):
        ensure_allowed(result.eligible, result.reason)
    return result


@router.patch("/{assignment_id}/status", response_model=TransitionResult)
async def update_status(
    assignment_id: str,
    request: StatusUpdate,
    principal: Principal = Depends(get_current_principal),
    workflow: AssignmentWorkflow = Depends(get_assignment_workflow),
) -> TransitionResult:
    result = await workflow.transition(assignment_id, request.status, principal.user_id, principal.profile)
    ensure_allowed(result.allowed, result.reason)
    return result


@router.delete("/{assignment_id}", response_model=EligibilityResult)
async def delete_assignment(
    assignment_id: str,
    principal: Principal = Depends(get_current_principal),
    workflow: AssignmentWorkflow = Depends(get_assignment_workflow),
) -> EligibilityResult:
    result = await workflow.delete_assignment(assignment_id, principal.user_id, principal.profile)
    ensure_allowed(result.eligible, result.reason)
    return result
