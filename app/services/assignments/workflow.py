"""
Assignment (task) workflow.

    pending -> in_progress -> under_review -> completed

Work can be sent one step back (in_progress -> pending, under_review ->
in_progress). Only managers may complete a task under review, and a
completed task is final.
"""
from typing import Dict, FrozenSet, Optional, Union

import structlog

from app.core.clock import now_s
from app.core.exceptions import ValidationError
from app.core.logging import log_decision
from app.domain.schemas.assignments import Assignment, AssignmentCreate, AssignmentStatus
from app.domain.schemas.eligibility import EligibilityResult, TransitionResult
from app.domain.schemas.profiles import PermissionLevel, PermissionProfile
from app.infrastructure.store import KeyValueStore
from app.services.user import UserService

logger = structlog.get_logger(__name__)

TASKS = "assignments/tasks"

MANAGER_LEVEL = PermissionLevel.MIDDLE_RANK
CREATOR_LEVEL = PermissionLevel.ASSOCIATE
DELETE_LEVEL = PermissionLevel.HIGH_RANK

VALID_TRANSITIONS: Dict[AssignmentStatus, FrozenSet[AssignmentStatus]] = {
    AssignmentStatus.PENDING: frozenset({AssignmentStatus.IN_PROGRESS}),
    AssignmentStatus.IN_PROGRESS: frozenset({AssignmentStatus.UNDER_REVIEW, AssignmentStatus.PENDING}),
    AssignmentStatus.UNDER_REVIEW: frozenset({AssignmentStatus.COMPLETED, AssignmentStatus.IN_PROGRESS}),
    AssignmentStatus.COMPLETED: frozenset(),
}


def task_key(assignment_id: str) -> str:
    return f"{TASKS}/{assignment_id}"


def is_manager(profile: PermissionProfile) -> bool:
    return profile.bypasses_checks or profile.level >= MANAGER_LEVEL


def check_transition(
    assignment: Assignment,
    new_status: AssignmentStatus,
    actor_id: str,
    actor: PermissionProfile,
) -> TransitionResult:
    """Decide a status change without touching the store."""
    old = assignment.status
    manager = is_manager(actor)

    if assignment.assigned_to != actor_id and not manager:
        reason = "Not authorized to update this assignment"
    elif old is AssignmentStatus.UNDER_REVIEW and new_status is AssignmentStatus.COMPLETED and not manager:
        reason = "Only managers can approve assignments"
    elif new_status not in VALID_TRANSITIONS[old]:
        reason = f"Invalid status transition from {old.value} to {new_status.value}"
    else:
        return TransitionResult(allowed=True, old_status=old.value, new_status=new_status.value)

    return TransitionResult(allowed=False, reason=reason, old_status=old.value)


class AssignmentWorkflow:
    """Assignment lifecycle over the backing store."""

    def __init__(self, store: KeyValueStore, users: Optional[UserService] = None):
        self.store = store
        self.users = users or UserService(store)

    async def get(self, assignment_id: str) -> Optional[Assignment]:
        raw = await self.store.get(task_key(assignment_id))
        if not isinstance(raw, dict):
            return None
        return Assignment.model_validate({**raw, "id": assignment_id})

    async def transition(
        self,
        assignment_id: str,
        new_status: Union[str, AssignmentStatus],
        actor_id: str,
        actor: PermissionProfile,
    ) -> TransitionResult:
        """
        Move an assignment to a new status.

        The status check and the update run in one store transaction.

        Raises:
            ValidationError: If the status is not a known assignment status
        """
        try:
            new_status = AssignmentStatus(new_status)
        except ValueError as e:
            raise ValidationError(f"Unknown assignment status: {new_status}", field="status") from e

        timestamp = now_s()
        outcome: Dict[str, TransitionResult] = {}

        def apply(current):
            if not isinstance(current, dict):
                outcome["result"] = TransitionResult(allowed=False, reason="Assignment not found")
                return None
            assignment = Assignment.model_validate({**current, "id": assignment_id})
            result = check_transition(assignment, new_status, actor_id, actor)
            outcome["result"] = result
            if not result.allowed:
                return None

            updated = dict(current)
            updated["status"] = new_status.value
            updated["updatedAt"] = timestamp
            if new_status is AssignmentStatus.COMPLETED:
                updated["completedAt"] = timestamp
                updated["completedBy"] = actor_id
            return updated

        await self.store.transaction(task_key(assignment_id), apply)
        result = outcome["result"]

        logger.info(
            "assignment_transition",
            **log_decision(
                "assignment_transition",
                result.allowed,
                result.reason,
                assignment_id=assignment_id,
                actor_id=actor_id,
                old_status=result.old_status,
                new_status=new_status.value,
            ),
        )
        return result

    async def create_assignment(
        self,
        data: AssignmentCreate,
        creator_id: str,
        creator: PermissionProfile,
    ) -> Union[Assignment, EligibilityResult]:
        """
        Create a pending assignment.

        Raises:
            ValidationError: If the due date is not in the future or the assignee does not exist
        """
        if not creator.bypasses_checks and creator.level < CREATOR_LEVEL:
            return EligibilityResult.deny(f"Minimum level {CREATOR_LEVEL.value} required")

        now = now_s()
        if data.due_date <= now:
            raise ValidationError("Due date must be in the future", field="dueDate")
        if not await self.users.exists(data.assigned_to):
            raise ValidationError("Assigned user does not exist", field="assignedTo")

        document = {
            **data.to_store(),
            "assignedBy": creator_id,
            "status": AssignmentStatus.PENDING.value,
            "createdAt": now,
            "updatedAt": now,
        }
        assignment_id = await self.store.push(TASKS, document)

        logger.info(
            "assignment_created",
            assignment_id=assignment_id,
            assigned_to=data.assigned_to,
            assigned_by=creator_id,
        )
        return Assignment.model_validate({**document, "id": assignment_id})

    async def delete_assignment(
        self,
        assignment_id: str,
        actor_id: str,
        actor: PermissionProfile,
    ) -> EligibilityResult:
        """Delete an assignment; level 6 or the creator only."""
        assignment = await self.get(assignment_id)
        if assignment is None:
            return EligibilityResult.deny("Assignment not found")

        if not actor.bypasses_checks and actor.level < DELETE_LEVEL and assignment.assigned_by != actor_id:
            return EligibilityResult.deny("Insufficient permissions to delete this assignment")

        await self.store.delete(task_key(assignment_id))
        logger.info("assignment_deleted", assignment_id=assignment_id, deleted_by=actor_id)
        return EligibilityResult.allow()
