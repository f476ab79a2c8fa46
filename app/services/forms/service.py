"""
Form eligibility, submission and review workflow.
"""
import math
from typing import Any, Dict, List, Optional, Union

import structlog
from pydantic import ValidationError as PydanticValidationError

from app.core.clock import now_ms
from app.core.exceptions import StoreError, ValidationError
from app.core.logging import log_decision
from app.domain.schemas.eligibility import (
    EligibilityHistory,
    EligibilityResult,
    ResourceRequirements,
    ResourceState,
    TransitionResult,
)
from app.domain.schemas.forms import (
    AvailableForm,
    Evaluation,
    FieldType,
    FormTemplate,
    ManualEvaluation,
    ReviewRequest,
    Submission,
    SubmissionStatus,
)
from app.domain.schemas.profiles import PermissionLevel, PermissionProfile
from app.infrastructure.store import KeyValueStore
from app.services.auth.authorization.eligibility import evaluate_resource_eligibility
from app.services.user import UserService

from .scoring import quiz_answers, score_submission

logger = structlog.get_logger(__name__)

TEMPLATES = "forms/templates"
SUBMISSIONS = "forms/submissions"
ACTIVE_STATUS = "active"

REVIEWER_LEVEL = PermissionLevel.MIDDLE_RANK_APPRENTICE
CROSS_DEPARTMENT_REVIEWER_LEVEL = PermissionLevel.DEPARTMENT_HEAD


def submitter_field(user_id: str) -> str:
    """Template field holding a user's open submission claim."""
    return f"submitters/{user_id}"


def estimate_completion_minutes(template: FormTemplate) -> int:
    """Rough completion time: 5 minutes plus a per-field allowance."""
    minutes = 5.0
    for field in template.fields:
        if field.type == FieldType.TEXT.value:
            min_length = field.validation.min_length
            minutes += math.ceil(min_length / 50) if min_length else 2
        elif field.type == FieldType.QUIZ.value:
            minutes += len(field.questions) * 0.5 if field.questions else 2
        else:
            minutes += 1
    return math.floor(minutes + 0.5)


def validate_responses(template: FormTemplate, responses: Any) -> Dict[str, Any]:
    """
    Check submitted responses against the template's field rules.

    Minimum lengths are left to scoring; everything else is enforced here.

    Raises:
        ValidationError: If responses are malformed or incomplete
    """
    if not isinstance(responses, dict):
        raise ValidationError("Responses object is required", field="responses")

    missing = [f.label or f.id for f in template.fields if f.required and not responses.get(f.id)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", field="responses")

    for field in template.fields:
        response = responses.get(field.id)
        if not response:
            continue
        label = field.label or field.id

        if field.type == FieldType.TEXT.value:
            if not isinstance(response, str):
                raise ValidationError(f"{label} must be text", field=field.id)
            max_length = field.validation.max_length
            if max_length and len(response) > max_length:
                raise ValidationError(
                    f"{label} must be no more than {max_length} characters long",
                    field=field.id,
                )

        elif field.type == FieldType.QUIZ.value and field.questions:
            answers = quiz_answers(response)
            if answers is None:
                raise ValidationError(f"{label} requires quiz answers", field=field.id)
            if len(answers) != len(field.questions):
                raise ValidationError(f"{label} requires answers to all questions", field=field.id)

    return responses


class FormService:
    """Form workflow over the backing store."""

    def __init__(self, store: KeyValueStore, users: Optional[UserService] = None):
        self.store = store
        self.users = users or UserService(store)

    async def get_template(self, form_id: str) -> Optional[FormTemplate]:
        raw = await self.store.get(f"{TEMPLATES}/{form_id}")
        if not isinstance(raw, dict):
            return None
        return FormTemplate.model_validate({**raw, "id": form_id})

    async def get_submission(self, submission_id: str) -> Optional[Submission]:
        raw = await self.store.get(f"{SUBMISSIONS}/{submission_id}")
        if not isinstance(raw, dict):
            return None
        return Submission.model_validate({**raw, "id": submission_id})

    async def release_submitter(self, form_id: str, user_id: str) -> None:
        """Drop a user's submission claim so the form can be submitted again."""
        await self.store.update(f"{TEMPLATES}/{form_id}", {submitter_field(user_id): None})

    async def submission_statuses(self, user_id: str) -> Dict[str, List[str]]:
        """Statuses of a user's submissions grouped by form ID."""
        statuses: Dict[str, List[str]] = {}
        for doc in (await self.store.children(SUBMISSIONS)).values():
            if isinstance(doc, dict) and doc.get("userId") == user_id and doc.get("formId"):
                statuses.setdefault(doc["formId"], []).append(doc.get("status"))
        return statuses

    def _evaluate(
        self,
        template: Optional[FormTemplate],
        profile: Optional[PermissionProfile],
        record: Optional[Dict[str, Any]],
        statuses: List[str],
    ) -> EligibilityResult:
        requirements = ResourceRequirements.parse(template.requirements if template else None)
        history = EligibilityHistory(
            account_created_at=UserService.account_created_at(record),
            submission_statuses=statuses,
            check_submissions=True,
        )
        return evaluate_resource_eligibility(
            requirements,
            profile,
            ResourceState(found=template is not None, kind="Form"),
            history,
        )

    async def check_eligibility(self, form_id: str, user_id: str) -> EligibilityResult:
        """
        Decide whether a user may submit a form.

        Raises:
            ValidationError: If the template's requirements or the user record are malformed
        """
        template = await self.get_template(form_id)
        record = await self.users.get_record(user_id)
        profile = self.users.profile_from_record(user_id, record) if record is not None else None
        statuses = (await self.submission_statuses(user_id)).get(form_id, [])

        result = self._evaluate(template, profile, record, statuses)
        logger.info(
            "form_eligibility_checked",
            **log_decision("form_eligibility", result.eligible, result.reason, form_id=form_id, user_id=user_id),
        )
        return result

    async def submit(
        self,
        form_id: str,
        user_id: str,
        responses: Dict[str, Any],
    ) -> Union[Submission, EligibilityResult]:
        """
        Submit responses to a form.

        Returns:
            The stored submission, or the ineligible result

        Raises:
            ValidationError: If the responses fail the template's field rules
        """
        eligibility = await self.check_eligibility(form_id, user_id)
        if not eligibility.eligible:
            return eligibility

        template = await self.get_template(form_id)
        validate_responses(template, responses)

        automated = score_submission(template, responses)
        status = SubmissionStatus.from_recommendation(automated.recommendation)
        timestamp = now_ms()

        # Only one non-rejected submission per user and form
        holds_claim = status != SubmissionStatus.REJECTED
        if holds_claim:
            claim = await self.store.transaction(
                f"{TEMPLATES}/{form_id}",
                lambda current: None if current is not None else {"claimedAt": timestamp},
                field=submitter_field(user_id),
            )
            if not claim.committed:
                result = EligibilityResult.deny("Already submitted or approved")
                logger.info(
                    "form_submission_refused",
                    **log_decision("form_submission", False, result.reason, form_id=form_id, user_id=user_id),
                )
                return result

        document = {
            "formId": form_id,
            "userId": user_id,
            "status": status.value,
            "responses": responses,
            "evaluation": Evaluation(automated=automated).to_store(),
            "submittedAt": timestamp,
            "updatedAt": timestamp,
        }
        try:
            submission_id = await self.store.push(SUBMISSIONS, document)
        except StoreError:
            if holds_claim:
                await self.release_submitter(form_id, user_id)
            raise

        def count(current):
            analytics = dict(current) if isinstance(current, dict) else {}
            analytics["totalSubmissions"] = (analytics.get("totalSubmissions") or 0) + 1
            analytics[status.value] = (analytics.get(status.value) or 0) + 1
            return analytics

        await self.store.transaction(f"{TEMPLATES}/{form_id}", count, field="analytics")

        logger.info(
            "form_submitted",
            form_id=form_id,
            user_id=user_id,
            submission_id=submission_id,
            status=status.value,
            overall_score=automated.overall_score,
        )
        return Submission.model_validate({**document, "id": submission_id})

    async def review(
        self,
        submission_id: str,
        reviewer_id: str,
        reviewer: PermissionProfile,
        decision: str,
        feedback: str,
        score: Optional[float] = None,
    ) -> TransitionResult:
        """
        Record a manual decision on a pending submission.

        Raises:
            ValidationError: If decision, feedback or score are malformed
        """
        try:
            request = ReviewRequest(decision=decision, feedback=feedback, score=score)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ()))
            raise ValidationError(first.get("msg", "Invalid review"), field=field) from e

        if not reviewer.bypasses_checks and reviewer.level < REVIEWER_LEVEL:
            return TransitionResult(allowed=False, reason=f"Minimum level {REVIEWER_LEVEL.value} required")

        submission = await self.get_submission(submission_id)
        if submission is None:
            return TransitionResult(allowed=False, reason="Submission not found")

        template = await self.get_template(submission.form_id)
        reviewer_departments = {d for d in (reviewer.department.value, reviewer.primary_department) if d}
        if (
            not reviewer.bypasses_checks
            and reviewer.level < CROSS_DEPARTMENT_REVIEWER_LEVEL
            and (template is None or template.department not in reviewer_departments)
        ):
            return TransitionResult(
                allowed=False,
                reason="You can only review submissions for your department",
                old_status=submission.status.value,
            )

        timestamp = now_ms()
        manual = ManualEvaluation(
            reviewed_by=reviewer_id,
            reviewed_at=timestamp,
            score=request.score if request.score is not None else submission.evaluation.automated.overall_score,
            feedback=request.feedback,
            decision=request.decision,
        )
        observed = {}

        def apply_review(current):
            if not isinstance(current, dict):
                observed["status"] = None
                return None
            observed["status"] = current.get("status")
            if current.get("status") != SubmissionStatus.PENDING.value:
                return None
            updated = dict(current)
            updated["status"] = request.decision.value
            updated["evaluation"] = {**(current.get("evaluation") or {}), "manual": manual.to_store()}
            updated["updatedAt"] = timestamp
            return updated

        result = await self.store.transaction(f"{SUBMISSIONS}/{submission_id}", apply_review)
        if not result.committed:
            if observed.get("status") is None:
                return TransitionResult(allowed=False, reason="Submission not found")
            return TransitionResult(
                allowed=False,
                reason="Only pending submissions can be reviewed",
                old_status=observed["status"],
            )

        def count(current):
            analytics = dict(current) if isinstance(current, dict) else {}
            analytics[request.decision.value] = (analytics.get(request.decision.value) or 0) + 1
            analytics["pending"] = max(0, (analytics.get("pending") or 0) - 1)
            return analytics

        await self.store.transaction(f"{TEMPLATES}/{submission.form_id}", count, field="analytics")
        if request.decision == SubmissionStatus.REJECTED:
            await self.release_submitter(submission.form_id, submission.user_id)

        logger.info(
            "submission_reviewed",
            submission_id=submission_id,
            reviewer_id=reviewer_id,
            decision=request.decision.value,
        )
        return TransitionResult(
            allowed=True,
            old_status=SubmissionStatus.PENDING.value,
            new_status=request.decision.value,
        )

    async def available_forms(self, user_id: str) -> List[AvailableForm]:
        """Active forms the user is currently eligible to submit."""
        record = await self.users.get_record(user_id)
        if record is None:
            return []
        profile = self.users.profile_from_record(user_id, record)
        statuses = await self.submission_statuses(user_id)

        available = []
        for form_id, raw in sorted((await self.store.children(TEMPLATES)).items()):
            if not isinstance(raw, dict) or raw.get("status") != ACTIVE_STATUS:
                continue
            template = FormTemplate.model_validate({**raw, "id": form_id})
            try:
                result = self._evaluate(template, profile, record, statuses.get(form_id, []))
            except ValidationError as e:
                logger.warning("form_requirements_invalid", form_id=form_id, error=e.message)
                continue
            if result.eligible:
                available.append(
                    AvailableForm(
                        id=form_id,
                        title=template.title,
                        description=template.description,
                        department=template.department,
                        estimated_time=estimate_completion_minutes(template),
                    )
                )
        return available
