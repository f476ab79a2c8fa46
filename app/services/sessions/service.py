"""
Session registration and scheduling.
"""
from typing import Any, Dict, Optional, Union

import structlog

from app.core.clock import now_ms
from app.core.exceptions import ValidationError
from app.core.logging import log_decision
from app.domain.schemas.eligibility import (
    EligibilityHistory,
    EligibilityResult,
    ResourceRequirements,
    ResourceState,
)
from app.domain.schemas.profiles import PermissionLevel, PermissionProfile
from app.domain.schemas.sessions import SessionCreate, SessionResource
from app.infrastructure.store import KeyValueStore
from app.services.auth.authorization.eligibility import evaluate_resource_eligibility
from app.services.user import UserService

logger = structlog.get_logger(__name__)

SESSIONS = "sessions/sessions"

HOST_LEVEL = PermissionLevel.MIDDLE_RANK_APPRENTICE
CROSS_DEPARTMENT_HOST_LEVEL = PermissionLevel.DEPARTMENT_HEAD
DEFAULT_MIN_CAPACITY = 1
DEFAULT_MAX_CAPACITY = 10


def session_key(session_id: str) -> str:
    return f"{SESSIONS}/{session_id}"


class SessionService:
    """Capacity-safe session registration."""

    def __init__(self, store: KeyValueStore, users: Optional[UserService] = None):
        self.store = store
        self.users = users or UserService(store)

    async def get_session(self, session_id: str) -> Optional[SessionResource]:
        raw = await self.store.get(session_key(session_id))
        if not isinstance(raw, dict):
            return None
        return SessionResource.model_validate({**raw, "id": session_id})

    def check_session(
        self,
        raw: Any,
        profile: Optional[PermissionProfile],
        record: Optional[Dict[str, Any]] = None,
    ) -> EligibilityResult:
        """Evaluate a raw session document against a profile."""
        if not isinstance(raw, dict):
            return evaluate_resource_eligibility(
                ResourceRequirements(),
                profile,
                ResourceState(found=False, kind="Session"),
            )

        session = SessionResource.model_validate(raw)
        return evaluate_resource_eligibility(
            ResourceRequirements.parse(session.requirements),
            profile,
            ResourceState(
                kind="Session",
                capacity=session.capacity,
                attendees=session.attendee_ids(),
            ),
            EligibilityHistory(account_created_at=UserService.account_created_at(record)),
        )

    async def check_eligibility(self, session_id: str, user_id: str) -> EligibilityResult:
        record = await self.users.get_record(user_id)
        profile = self.users.profile_from_record(user_id, record) if record is not None else None
        return self.check_session(await self.store.get(session_key(session_id)), profile, record)

    async def register(self, session_id: str, user_id: str) -> EligibilityResult:
        """
        Register a user for a session.

        The session is re-read, checked and updated in one store transaction,
        so two registrations racing for the last seat cannot both succeed.

        Raises:
            ValidationError: If the session requirements or user record are malformed
        """
        record = await self.users.get_record(user_id)
        profile = self.users.profile_from_record(user_id, record) if record is not None else None
        timestamp = now_ms()
        outcome: Dict[str, EligibilityResult] = {}

        def register_attendee(current):
            result = self.check_session(current, profile, record)
            outcome["result"] = result
            if not result.eligible:
                return None

            updated = dict(current)
            attendees = current.get("attendees") or []
            if isinstance(attendees, dict):
                attendees = list(attendees.values())
            updated["attendees"] = list(attendees) + [
                {"userId": user_id, "status": "confirmed", "registeredAt": timestamp}
            ]
            capacity = dict(current.get("capacity") or {})
            capacity["current"] = (capacity.get("current") or 0) + 1
            updated["capacity"] = capacity
            return updated

        await self.store.transaction(session_key(session_id), register_attendee)
        result = outcome["result"]

        logger.info(
            "session_registration",
            **log_decision("session_registration", result.eligible, result.reason,
                           session_id=session_id, user_id=user_id),
        )
        return result

    async def create_session(
        self,
        data: SessionCreate,
        creator_id: str,
        creator: PermissionProfile,
    ) -> Union[SessionResource, EligibilityResult]:
        """
        Schedule a new session.

        Hosts need level 3; hosting for another department needs level 7.

        Raises:
            ValidationError: If the requirements or capacity are malformed
        """
        if not creator.bypasses_checks:
            if creator.level < HOST_LEVEL:
                return EligibilityResult.deny(f"Minimum level {HOST_LEVEL.value} required")
            own_departments = {d for d in (creator.department.value, creator.primary_department) if d}
            if (
                data.department
                and data.department not in own_departments
                and creator.level < CROSS_DEPARTMENT_HOST_LEVEL
            ):
                return EligibilityResult.deny("You can only create sessions for your department")

        requirements = ResourceRequirements.parse(data.requirements)
        capacity = data.capacity or {}
        minimum = capacity.get("min") or DEFAULT_MIN_CAPACITY
        maximum = capacity.get("max") or DEFAULT_MAX_CAPACITY
        if minimum > maximum:
            raise ValidationError("Minimum capacity exceeds maximum", field="capacity")

        document = {
            **data.model_dump(by_alias=True, exclude_none=True, exclude={"capacity", "requirements"}),
            "capacity": {"min": minimum, "max": maximum, "current": 0},
            "requirements": requirements.model_dump(by_alias=True, exclude_none=True) or None,
            "status": "scheduled",
            "attendees": [],
            "createdBy": creator_id,
            "createdAt": now_ms(),
        }
        if document["requirements"] is None:
            document.pop("requirements")

        session_id = await self.store.push(SESSIONS, document)
        logger.info("session_created", session_id=session_id, created_by=creator_id)
        return SessionResource.model_validate({**document, "id": session_id})
