"""
Form eligibility, submission and review endpoints.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.v1.decisions import ensure_allowed
from app.core.dependencies import Principal, get_current_principal, get_form_service
from app.domain.schemas.eligibility import EligibilityResult, TransitionResult
from app.domain.schemas.forms import AvailableForm, SubmissionStatus
from app.services.forms import FormService

router = APIRouter()

SUBMISSION_FEEDBACK = {
    SubmissionStatus.APPROVED: "Congratulations! Your application has been approved.",
    SubmissionStatus.REJECTED: "Your application was not successful this time. Please try again later.",
    SubmissionStatus.PENDING: "Your application is under review. You will be notified of the decision soon.",
}


class SubmitRequest(BaseModel):
    responses: Dict[str, Any]


class ReviewBody(BaseModel):
    decision: str
    feedback: str
    score: Optional[float] = None


@router.get("/available", response_model=List[AvailableForm])
async def available_forms(
    principal: Principal = Depends(get_current_principal),
    service: FormService = Depends(get_form_service),
) -> List[AvailableForm]:
    return await service.available_forms(principal.user_id)


@router.get("/{form_id}/eligibility", response_model=EligibilityResult)
async def form_eligibility(
    form_id: str,
    principal: Principal = Depends(get_current_principal),
    service: FormService = Depends(get_form_service),
) -> EligibilityResult:
    """Report whether the caller may submit a form, with the reason if not."""
    return await service.check_eligibility(form_id, principal.user_id)


@router.post("/{form_id}/submit", status_code=status.HTTP_201_CREATED)
async def submit_form(
    form_id: str,
    request: SubmitRequest,
    principal: Principal = Depends(get_current_principal),
    service: FormService = Depends(get_form_service),
) -> Dict[str, Any]:
    """Submit responses; the automated evaluation decides the initial status."""
    result = await service.submit(form_id, principal.user_id, request.responses)
    if isinstance(result, EligibilityResult):
        ensure_allowed(result.eligible, result.reason)

    return {
        "submission_id": result.id,
        "status": result.status.value,
        "score": result.evaluation.automated.overall_score,
        "feedback": SUBMISSION_FEEDBACK[result.status],
    }


@router.put("/submissions/{submission_id}/review", response_model=TransitionResult)
async def review_submission(
    submission_id: str,
    body: ReviewBody,
    principal: Principal = Depends(get_current_principal),
    service: FormService = Depends(get_form_service),
) -> TransitionResult:
    result = await service.review(
        submission_id,
        principal.user_id,
        principal.profile,
        body.decision,
        body.feedback,
        body.score,
    )
    ensure_allowed(result.allowed, result.reason)
    return result
