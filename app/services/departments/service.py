"""
Department eligibility, assignment and administration service.
"""
import asyncio
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import structlog

from app.core.clock import now_ms
from app.core.config import settings
from app.core.exceptions import ExternalServiceError, ValidationError
from app.core.logging import log_decision
from app.domain.schemas.departments import (
    DepartmentEligibilityReport,
    DepartmentEligibilityResponse,
    DepartmentRecord,
    DepartmentStatus,
    GroupMembership,
    PartnerEligibility,
    PartnerOrganization,
)
from app.domain.schemas.eligibility import EligibilityResult, TransitionResult
from app.domain.schemas.profiles import PermissionLevel, PermissionProfile
from app.infrastructure.membership import MembershipClient
from app.infrastructure.store import KeyValueStore
from app.services.user import UserService, user_key

from .eligibility import (
    compute_department_eligibility,
    departments_from_store,
    is_rank_eligible,
)

logger = structlog.get_logger(__name__)

DEPARTMENTS = "departments"
PARTNERS = "partners/organizations"
PRIMARY_FIELD = "onboarding/primaryDepartment"
PROFILE_ROLE_FIELD = "profile/role"

PROMOTION_LEVEL = PermissionLevel.DEPARTMENT_HEAD
CREATION_LEVEL = PermissionLevel.TECHNICAL_LEAD


def department_key(department_id: str) -> str:
    return f"{DEPARTMENTS}/{department_id}"


class DepartmentService:
    """
    Evaluates department eligibility and persists its consequences.

    Group memberships come from the external membership service. When that
    service is unreachable the user is treated as belonging to no group, so
    only existing department members remain eligible.
    """

    def __init__(
        self,
        store: KeyValueStore,
        membership_client: MembershipClient,
        users: Optional[UserService] = None,
        main_group_id: Optional[str] = None,
        hierarchy: Optional[Sequence[str]] = None,
    ):
        self.store = store
        self.membership_client = membership_client
        self.users = users or UserService(store)
        self.main_group_id = str(main_group_id or settings.MAIN_GROUP_ID)
        self.hierarchy = list(hierarchy if hierarchy is not None else settings.DEPARTMENT_HIERARCHY)

    async def fetch_memberships(self, user_id: str) -> Tuple[Dict[str, GroupMembership], bool]:
        """
        Fetch group memberships, failing closed.

        Returns:
            Memberships keyed by group ID, and whether the lookup succeeded
        """
        try:
            return await self.membership_client.list_group_roles(user_id), True
        except ExternalServiceError as e:
            logger.warning(
                "membership_unavailable_failing_closed",
                user_id=user_id,
                error=e.message,
            )
            return {}, False

    async def load_departments(self) -> Dict[str, DepartmentRecord]:
        return departments_from_store(await self.store.children(DEPARTMENTS))

    async def get_department(self, department_id: str) -> Optional[DepartmentRecord]:
        raw = await self.store.get(department_key(department_id))
        if not isinstance(raw, dict):
            return None
        return DepartmentRecord.model_validate({**raw, "id": department_id})

    async def apply_auto_assignment(self, report: DepartmentEligibilityReport) -> Optional[str]:
        """
        Persist the writes an eligibility report calls for.

        Roster entries and the primary department are only written when
        absent, so concurrent evaluations never overwrite each other.

        Returns:
            The primary department actually stored
        """
        user_id = report.user_id

        for assignment in report.auto_assignments:
            entry = {"joinedAt": now_ms(), "role": assignment.role, "rank": assignment.rank}
            result = await self.store.transaction(
                department_key(assignment.department_id),
                lambda current, entry=entry: None if current is not None else entry,
                field=f"members/{user_id}",
            )
            if result.committed:
                logger.info(
                    "department_auto_assigned",
                    user_id=user_id,
                    department_id=assignment.department_id,
                    rank=assignment.rank,
                )

        primary = report.primary_department
        if report.primary_is_new and primary:
            result = await self.store.transaction(
                user_key(user_id),
                lambda current: None if current else primary,
                field=PRIMARY_FIELD,
            )
            primary = result.value
            if result.committed:
                logger.info("primary_department_selected", user_id=user_id, department_id=primary)

        if report.membership_available:
            await self.store.update(user_key(user_id), {PROFILE_ROLE_FIELD: report.main_group_role})

        return primary

    async def partner_eligibility(
        self,
        user_id: str,
        memberships: Dict[str, GroupMembership],
    ) -> List[PartnerEligibility]:
        """Partner organizations the user represents or belongs to. No writes."""
        raw = await self.store.children(PARTNERS)
        partners = [
            PartnerOrganization.model_validate({**doc, "id": partner_id})
            for partner_id, doc in sorted(raw.items())
            if isinstance(doc, dict)
        ]
        return list(await asyncio.gather(*(self._partner_entry(user_id, p, memberships) for p in partners)))

    async def _partner_entry(
        self,
        user_id: str,
        partner: PartnerOrganization,
        memberships: Dict[str, GroupMembership],
    ) -> PartnerEligibility:
        representative = next((r for r in partner.representatives if r.roblox_id == str(user_id)), None)
        membership = memberships.get(partner.group_id) if partner.group_id else None

        group_icon, group_name = None, None
        if partner.group_id:
            group_icon, group_name = await asyncio.gather(
                self.membership_client.group_icon(partner.group_id),
                self.membership_client.group_name(partner.group_id),
            )

        if representative is not None:
            role = representative.role
        elif membership is not None:
            role = membership.role_name
        else:
            role = None

        return PartnerEligibility(
            id=partner.id,
            name=partner.name,
            eligible=representative is not None or membership is not None,
            representative=representative is not None,
            group_member=membership is not None,
            group_id=partner.group_id,
            group_name=group_name,
            group_icon=group_icon,
            role=role,
        )

    async def evaluate(
        self,
        user_id: str,
        profile: Optional[PermissionProfile] = None,
    ) -> DepartmentEligibilityResponse:
        """
        Compute and apply department eligibility for a user.

        Args:
            user_id: User being evaluated
            profile: Caller's resolved profile, if already known

        Returns:
            Per-department decisions, auto-assignments, partners and the
            primary department
        """
        memberships, available = await self.fetch_memberships(user_id)
        departments, record = await asyncio.gather(
            self.load_departments(),
            self.users.get_record(user_id),
        )

        onboarding = (record or {}).get("onboarding") or {}
        stored_primary = onboarding.get("primaryDepartment") if isinstance(onboarding, dict) else None
        if not stored_primary and profile is not None:
            stored_primary = profile.primary_department

        report = compute_department_eligibility(
            user_id,
            memberships,
            departments,
            self.main_group_id,
            stored_primary=stored_primary,
            hierarchy=self.hierarchy,
            membership_available=available,
        )

        primary, partners = await asyncio.gather(
            self.apply_auto_assignment(report),
            self.partner_eligibility(user_id, memberships),
        )

        logger.info(
            "department_eligibility_evaluated",
            user_id=user_id,
            main_group_member=report.main_group_member,
            membership_available=available,
            eligible=[d.id for d in report.departments if d.eligible],
            auto_added=report.auto_added,
        )

        return DepartmentEligibilityResponse(
            main_group_member=report.main_group_member,
            main_group_role=report.main_group_role,
            membership_available=available,
            departments=report.departments,
            auto_added=report.auto_added,
            partners=partners,
            primary_department=primary,
        )

    async def set_primary_department(self, user_id: str, department_id: str) -> EligibilityResult:
        """Record a user's explicit primary department choice."""
        memberships, available = await self.fetch_memberships(user_id)
        main_group_member = self.main_group_id in memberships

        if not available:
            result = EligibilityResult.deny("Membership service unavailable")
        elif not main_group_member:
            result = EligibilityResult.deny("User must be a member of the main group")
        else:
            department = await self.get_department(department_id)
            if department is None or not department.is_active:
                result = EligibilityResult.deny("Invalid or inactive department")
            elif not (
                department.has_member(user_id)
                or is_rank_eligible(department, memberships, main_group_member)
            ):
                result = EligibilityResult.deny("User is not eligible for this department")
            else:
                await self.store.update(user_key(user_id), {PRIMARY_FIELD: department_id})
                result = EligibilityResult.allow()

        logger.info(
            "primary_department_change",
            **log_decision(
                "primary_department",
                result.eligible,
                result.reason,
                user_id=user_id,
                department_id=department_id,
            ),
        )
        return result

    async def promote_pending_member(
        self,
        department_id: str,
        user_id: str,
        approver: PermissionProfile,
    ) -> TransitionResult:
        """
        Admit a pending user to a department roster.

        The approver must be a department head or a system service. The
        user's eligibility is re-checked against fresh group data. Promoting
        an existing member changes nothing.
        """
        active = DepartmentStatus.ACTIVE.value
        pending = DepartmentStatus.PENDING.value

        if not approver.bypasses_checks and approver.level < PROMOTION_LEVEL:
            return TransitionResult(
                allowed=False,
                reason=f"Minimum level {PROMOTION_LEVEL.value} required",
            )

        department = await self.get_department(department_id)
        if department is None or not department.is_active:
            return TransitionResult(allowed=False, reason="Invalid or inactive department")

        if department.has_member(user_id):
            return TransitionResult(
                allowed=True,
                reason="Already an active member",
                old_status=active,
                new_status=active,
            )

        memberships, available = await self.fetch_memberships(user_id)
        main_group_member = self.main_group_id in memberships
        if not is_rank_eligible(department, memberships, main_group_member):
            reason = "User is not eligible for this department"
            if not available:
                reason = "Membership service unavailable"
            return TransitionResult(
                allowed=False,
                reason=reason,
                old_status=DepartmentStatus.INELIGIBLE.value,
            )

        membership = memberships[department.backing_group_id]
        entry = {"joinedAt": now_ms(), "role": membership.role_name, "rank": membership.rank}
        result = await self.store.transaction(
            department_key(department_id),
            lambda current: None if current is not None else entry,
            field=f"members/{user_id}",
        )

        if not result.committed:
            return TransitionResult(
                allowed=True,
                reason="Already an active member",
                old_status=active,
                new_status=active,
            )

        logger.info(
            "department_member_promoted",
            department_id=department_id,
            user_id=user_id,
            approved_by=approver.user_id,
        )
        return TransitionResult(allowed=True, old_status=pending, new_status=active)

    async def create_department(
        self,
        creator: PermissionProfile,
        name: str,
        description: str,
        max_members: int = 50,
        required_rank: int = 0,
        backing_group_id: Optional[str] = None,
    ) -> Union[DepartmentRecord, EligibilityResult]:
        """
        Create a department.

        Raises:
            ValidationError: If name or description is blank
        """
        if not creator.bypasses_checks and creator.level < CREATION_LEVEL:
            return EligibilityResult.deny(f"Minimum level {CREATION_LEVEL.value} required")

        name = (name or "").strip()
        description = (description or "").strip()
        if not name or not description:
            raise ValidationError("Name and description are required", field="name")

        department_id = re.sub(r"\s+", "_", name.lower())
        document: Dict[str, Any] = {
            "name": name,
            "description": description,
            "groupId": backing_group_id,
            "isActive": True,
            "members": {},
            "settings": {
                "maxMembers": max_members,
                "autoApprove": False,
                "requiredRank": required_rank,
            },
            "createdBy": creator.user_id,
            "createdAt": now_ms(),
        }
        if backing_group_id is None:
            document.pop("groupId")

        result = await self.store.transaction(
            department_key(department_id),
            lambda current: None if current is not None else document,
        )
        if not result.committed:
            return EligibilityResult.deny("Department already exists")

        logger.info("department_created", department_id=department_id, created_by=creator.user_id)
        return DepartmentRecord.model_validate({**document, "id": department_id})
