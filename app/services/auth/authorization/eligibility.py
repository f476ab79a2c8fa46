"""
Resource eligibility evaluation.

A single ordered, short-circuiting rule set shared by forms and sessions.
The first failing check decides the reason; policy gates are skipped for
system service profiles, workflow-state checks never are.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import structlog

from app.core.logging import log_decision
from app.domain.schemas.eligibility import (
    EligibilityHistory,
    EligibilityResult,
    ResourceRequirements,
    ResourceState,
)
from app.domain.schemas.forms import SubmissionStatus
from app.domain.schemas.profiles import PermissionProfile

logger = structlog.get_logger(__name__)

BLOCKING_SUBMISSION_STATUSES = {SubmissionStatus.PENDING.value, SubmissionStatus.APPROVED.value}


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _check_policy(
    requirements: ResourceRequirements,
    profile: PermissionProfile,
    history: EligibilityHistory,
    now: datetime,
) -> Optional[str]:
    if requirements.min_level is not None and profile.level < requirements.min_level:
        return f"Minimum level {requirements.min_level} required"

    if requirements.min_days_active:
        created = history.account_created_at
        if created is None:
            return f"Must be active for {requirements.min_days_active} days"
        days_active = (now - _as_utc(created)).total_seconds() / 86400
        if days_active < requirements.min_days_active:
            return f"Must be active for {requirements.min_days_active} days"

    if requirements.departments:
        departments = {profile.department.value, profile.primary_department}
        if not departments.intersection(requirements.departments):
            return "Department requirement not met"

    if requirements.blacklisted_roles and profile.role.value in requirements.blacklisted_roles:
        return "Role restriction applies"

    return None


def _check_workflow(
    profile: PermissionProfile,
    resource_state: ResourceState,
    history: EligibilityHistory,
) -> Optional[str]:
    if history.check_submissions and BLOCKING_SUBMISSION_STATUSES.intersection(history.submission_statuses):
        return "Already submitted or approved"

    if profile.user_id and profile.user_id in resource_state.attendees:
        return "Already registered for this session"

    capacity = resource_state.capacity
    if capacity is not None and capacity.is_full:
        return "Session is full"

    return None


def evaluate_resource_eligibility(
    requirements: ResourceRequirements,
    profile: Optional[PermissionProfile],
    resource_state: ResourceState,
    history: Optional[EligibilityHistory] = None,
    now: Optional[datetime] = None,
) -> EligibilityResult:
    """
    Decide whether a profile may submit to or register for a resource.

    Args:
        requirements: Validated resource requirements
        profile: Requesting user's profile, None when the user does not exist
        resource_state: Live resource state (existence, capacity, attendees)
        history: User's prior submissions and account age
        now: Evaluation time, defaults to the current UTC time

    Returns:
        EligibilityResult with the first failing reason
    """
    history = history or EligibilityHistory()
    now = _as_utc(now) if now else datetime.now(timezone.utc)

    if not resource_state.found:
        result = EligibilityResult.deny(f"{resource_state.kind} not found")
    elif profile is None:
        result = EligibilityResult.deny("User not found")
    else:
        reason = None
        if not profile.bypasses_checks:
            reason = _check_policy(requirements, profile, history, now)
        if reason is None:
            reason = _check_workflow(profile, resource_state, history)
        result = EligibilityResult.deny(reason) if reason else EligibilityResult.allow()

    logger.debug(
        "resource_eligibility_evaluated",
        **log_decision(
            "resource_eligibility",
            result.eligible,
            result.reason,
            resource=resource_state.kind,
            user_id=profile.user_id if profile else None,
        ),
    )
    return result
