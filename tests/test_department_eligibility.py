"""
Tests for department eligibility, auto-assignment and administration.
"""
import asyncio

import pytest

from app.core.config import settings
from app.domain.schemas.departments import DepartmentStatus
from app.domain.schemas.eligibility import EligibilityResult
from app.domain.schemas.profiles import Department, PermissionProfile, Role
from app.infrastructure.store import MemoryStore
from app.services.departments import (
    DepartmentService,
    compute_department_eligibility,
    select_primary_department,
)
from app.services.departments.eligibility import departments_from_store
from tests.fixtures.records import (
    HR_GROUP_ID,
    MAIN_GROUP_ID,
    MODERATION_GROUP_ID,
    PARTNER_GROUP_ID,
    FakeMembershipClient,
    department_doc,
    membership,
    memberships,
    user_record,
)

HIERARCHY = ["hr", "moderation"]


def registry():
    return departments_from_store({
        "moderation": department_doc("Moderation", MODERATION_GROUP_ID, required_rank=10, auto_approve=True),
        "hr": department_doc("Human Resources", HR_GROUP_ID, required_rank=50),
        "archive": department_doc("Archive", "9999", is_active=False),
    })


def staff_memberships(moderation_rank=20, hr_rank=None):
    entries = [membership(MAIN_GROUP_ID, 5, "Staff"), membership(MODERATION_GROUP_ID, moderation_rank, "Moderator")]
    if hr_rank is not None:
        entries.append(membership(HR_GROUP_ID, hr_rank, "Recruiter"))
    return memberships(*entries)


def head(level=7):
    return PermissionProfile(level=level, role=Role.MODERATION_HEAD, department=Department.MODERATION, user_id="head")


class TestComputeDepartmentEligibility:
    """Test the pure eligibility computation."""

    def test_auto_approve_department_becomes_active(self):
        """A qualifying rank in an auto-approve department is active and scheduled for assignment."""
        # Act
        report = compute_department_eligibility("u1", staff_memberships(), registry(), MAIN_GROUP_ID, hierarchy=HIERARCHY)

        # Assert
        decisions = {d.id: d for d in report.departments}
        assert report.main_group_member is True
        assert report.main_group_role == "Staff"
        assert decisions["moderation"].status == DepartmentStatus.ACTIVE
        assert decisions["moderation"].role == "Moderator"
        assert report.auto_added == ["moderation"]
        assert report.auto_assignments[0].rank == 20

    def test_manual_department_is_pending(self):
        report = compute_department_eligibility(
            "u1", staff_memberships(hr_rank=60), registry(), MAIN_GROUP_ID, hierarchy=HIERARCHY
        )

        decisions = {d.id: d for d in report.departments}
        assert decisions["hr"].status == DepartmentStatus.PENDING
        assert decisions["hr"].eligible is True
        assert "hr" not in report.auto_added

    def test_rank_below_requirement_is_ineligible(self):
        report = compute_department_eligibility(
            "u1", staff_memberships(moderation_rank=5, hr_rank=49), registry(), MAIN_GROUP_ID
        )

        assert all(d.status == DepartmentStatus.INELIGIBLE for d in report.departments)
        assert report.primary_department is None

    def test_main_group_required(self):
        """Department group rank alone is not enough without the main group."""
        report = compute_department_eligibility(
            "u1", memberships(membership(MODERATION_GROUP_ID, 200)), registry(), MAIN_GROUP_ID
        )

        assert report.main_group_member is False
        assert all(not d.eligible for d in report.departments)

    def test_existing_member_stays_active(self):
        """Roster members are active without group data and are not re-assigned."""
        departments = departments_from_store({
            "hr": department_doc("Human Resources", HR_GROUP_ID, required_rank=50, members={"u1": {"rank": 55}}),
        })

        report = compute_department_eligibility("u1", {}, departments, MAIN_GROUP_ID, membership_available=False)

        assert report.departments[0].status == DepartmentStatus.ACTIVE
        assert report.auto_assignments == []
        assert report.membership_available is False

    def test_inactive_departments_skipped(self):
        report = compute_department_eligibility("u1", staff_memberships(), registry(), MAIN_GROUP_ID)

        assert [d.id for d in report.departments] == ["hr", "moderation"]

    def test_stored_primary_kept(self):
        report = compute_department_eligibility(
            "u1", staff_memberships(hr_rank=60), registry(), MAIN_GROUP_ID,
            stored_primary="moderation", hierarchy=HIERARCHY,
        )

        assert report.primary_department == "moderation"
        assert report.primary_is_new is False

    def test_member_list_form(self):
        """Rosters stored as a list of IDs are accepted."""
        departments = departments_from_store({"hr": department_doc("HR", HR_GROUP_ID, members=["u1", "u2"])})

        assert departments["hr"].has_member("u2") is True


class TestSelectPrimaryDepartment:
    """Test primary department selection."""

    def test_highest_in_hierarchy_wins(self):
        report = compute_department_eligibility(
            "u1", staff_memberships(hr_rank=60), registry(), MAIN_GROUP_ID, hierarchy=HIERARCHY
        )

        assert report.primary_department == "hr"
        assert report.primary_is_new is True

    def test_unlisted_departments_last_then_by_id(self):
        report = compute_department_eligibility(
            "u1", staff_memberships(hr_rank=60), registry(), MAIN_GROUP_ID
        )

        assert select_primary_department(report.departments, ["moderation"]) == "moderation"
        assert select_primary_department(report.departments, []) == "hr"

    def test_nothing_eligible(self):
        assert select_primary_department([], HIERARCHY) is None

    def test_default_hierarchy_prefers_moderation(self):
        """Eligible for moderation and hr, the configured hierarchy picks moderation."""
        report = compute_department_eligibility(
            "u1", staff_memberships(hr_rank=60), registry(), MAIN_GROUP_ID,
            hierarchy=settings.DEPARTMENT_HIERARCHY,
        )

        assert report.primary_department == "moderation"


@pytest.fixture
def department_store():
    return MemoryStore({
        "departments/moderation": department_doc("Moderation", MODERATION_GROUP_ID, required_rank=10, auto_approve=True),
        "departments/hr": department_doc("Human Resources", HR_GROUP_ID, required_rank=50),
        "users/u1": user_record(level=2),
        "partners/organizations/acme": {
            "name": "Acme",
            "groupId": int(PARTNER_GROUP_ID),
            "representatives": {"r1": {"robloxId": 42, "role": "Liaison"}},
        },
    })


def make_service(store, client):
    return DepartmentService(store, client, main_group_id=MAIN_GROUP_ID, hierarchy=HIERARCHY)


class TestDepartmentService:
    """Test evaluation with persistence."""

    @pytest.mark.asyncio
    async def test_evaluate_persists_assignment_and_primary(self, department_store):
        """Auto-approved departments are written to the roster and the primary is set."""
        # Arrange
        client = FakeMembershipClient({"u1": staff_memberships()})
        service = make_service(department_store, client)

        # Act
        response = await service.evaluate("u1")

        # Assert
        assert response.auto_added == ["moderation"]
        assert response.primary_department == "moderation"
        roster = await department_store.get("departments/moderation", "members/u1")
        assert roster["rank"] == 20
        assert roster["role"] == "Moderator"
        assert await department_store.get("users/u1", "onboarding/primaryDepartment") == "moderation"
        assert await department_store.get("users/u1", "profile/role") == "Staff"

    @pytest.mark.asyncio
    async def test_evaluate_twice_is_stable(self, department_store):
        """A second evaluation finds the roster entry and adds nothing."""
        client = FakeMembershipClient({"u1": staff_memberships()})
        service = make_service(department_store, client)

        await service.evaluate("u1")
        joined_at = await department_store.get("departments/moderation", "members/u1/joinedAt")
        second = await service.evaluate("u1")

        assert second.auto_added == []
        assert await department_store.get("departments/moderation", "members/u1/joinedAt") == joined_at

    @pytest.mark.asyncio
    async def test_stored_primary_not_overwritten(self, department_store):
        await department_store.update("users/u1", {"onboarding/primaryDepartment": "moderation"})
        client = FakeMembershipClient({"u1": staff_memberships(hr_rank=60)})

        response = await make_service(department_store, client).evaluate("u1")

        assert response.primary_department == "moderation"
        assert await department_store.get("users/u1", "onboarding/primaryDepartment") == "moderation"

    @pytest.mark.asyncio
    async def test_concurrent_evaluations_write_one_primary(self, department_store):
        client = FakeMembershipClient({"u1": staff_memberships(hr_rank=60)})
        service = make_service(department_store, client)

        first, second = await asyncio.gather(service.evaluate("u1"), service.evaluate("u1"))

        assert first.primary_department == second.primary_department == "hr"

    @pytest.mark.asyncio
    async def test_membership_outage_fails_closed(self, department_store):
        """Without group data only existing roster members remain eligible."""
        # Arrange
        await department_store.update("departments/hr", {"members/u1": {"rank": 55}})
        await department_store.update("users/u1", {"profile/role": "Staff"})
        service = make_service(department_store, FakeMembershipClient(fail=True))

        # Act
        response = await service.evaluate("u1")

        # Assert
        decisions = {d.id: d for d in response.departments}
        assert response.membership_available is False
        assert response.main_group_member is False
        assert decisions["hr"].status == DepartmentStatus.ACTIVE
        assert decisions["moderation"].status == DepartmentStatus.INELIGIBLE
        assert response.auto_added == []
        assert await department_store.get("users/u1", "profile/role") == "Staff"

    @pytest.mark.asyncio
    async def test_partner_entries(self, department_store):
        client = FakeMembershipClient(
            {"42": memberships(membership(PARTNER_GROUP_ID, 1, "Guest"))},
            names={PARTNER_GROUP_ID: "Acme Group"},
        )

        response = await make_service(department_store, client).evaluate("42")

        partner = response.partners[0]
        assert partner.id == "acme"
        assert partner.eligible is True
        assert partner.representative is True
        assert partner.group_member is True
        assert partner.role == "Liaison"
        assert partner.group_name == "Acme Group"
        assert partner.group_icon is None


class TestSetPrimaryDepartment:
    """Test explicit primary department changes."""

    @pytest.mark.asyncio
    async def test_eligible_choice_saved(self, department_store):
        client = FakeMembershipClient({"u1": staff_memberships(hr_rank=60)})

        result = await make_service(department_store, client).set_primary_department("u1", "hr")

        assert result == EligibilityResult.allow()
        assert await department_store.get("users/u1", "onboarding/primaryDepartment") == "hr"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "client, department_id, reason",
        [
            (FakeMembershipClient(fail=True), "hr", "Membership service unavailable"),
            (FakeMembershipClient({"u1": memberships(membership(HR_GROUP_ID, 60))}), "hr",
             "User must be a member of the main group"),
            (FakeMembershipClient({"u1": staff_memberships()}), "missing", "Invalid or inactive department"),
            (FakeMembershipClient({"u1": staff_memberships()}), "hr", "User is not eligible for this department"),
        ],
    )
    async def test_denials(self, department_store, client, department_id, reason):
        result = await make_service(department_store, client).set_primary_department("u1", department_id)

        assert result.eligible is False
        assert result.reason == reason
        assert await department_store.get("users/u1", "onboarding/primaryDepartment") is None


class TestPromotePendingMember:
    """Test admitting pending users."""

    @pytest.mark.asyncio
    async def test_head_promotes_pending_user(self, department_store):
        client = FakeMembershipClient({"u1": staff_memberships(hr_rank=60)})

        result = await make_service(department_store, client).promote_pending_member("hr", "u1", head())

        assert result.allowed is True
        assert (result.old_status, result.new_status) == ("pending", "active")
        assert (await department_store.get("departments/hr", "members/u1"))["rank"] == 60

    @pytest.mark.asyncio
    async def test_promoting_member_again_is_noop(self, department_store):
        client = FakeMembershipClient({"u1": staff_memberships(hr_rank=60)})
        service = make_service(department_store, client)

        await service.promote_pending_member("hr", "u1", head())
        result = await service.promote_pending_member("hr", "u1", head())

        assert result.allowed is True
        assert result.reason == "Already an active member"
        assert result.old_status == result.new_status == "active"

    @pytest.mark.asyncio
    async def test_low_level_approver_denied(self, department_store):
        client = FakeMembershipClient({"u1": staff_memberships(hr_rank=60)})

        result = await make_service(department_store, client).promote_pending_member("hr", "u1", head(level=6))

        assert result.allowed is False
        assert result.reason == "Minimum level 7 required"
        assert await department_store.get("departments/hr", "members/u1") is None

    @pytest.mark.asyncio
    async def test_ineligible_user_not_promoted(self, department_store):
        client = FakeMembershipClient({"u1": staff_memberships(hr_rank=10)})

        result = await make_service(department_store, client).promote_pending_member("hr", "u1", head())

        assert result.allowed is False
        assert result.reason == "User is not eligible for this department"


class TestCreateDepartment:
    """Test department creation."""

    @pytest.mark.asyncio
    async def test_create(self, department_store):
        service = make_service(department_store, FakeMembershipClient())

        department = await service.create_department(head(level=8), "Public Relations", "Outreach", required_rank=30)

        assert department.id == "public_relations"
        assert department.is_active is True
        assert department.required_rank == 30
        assert (await department_store.get("departments/public_relations"))["createdBy"] == "head"

    @pytest.mark.asyncio
    async def test_duplicate_denied(self, department_store):
        service = make_service(department_store, FakeMembershipClient())

        result = await service.create_department(head(level=8), "HR", "Duplicate")

        assert result == EligibilityResult.deny("Department already exists")

    @pytest.mark.asyncio
    async def test_level_required(self, department_store):
        service = make_service(department_store, FakeMembershipClient())

        result = await service.create_department(head(level=7), "Events", "Parties")

        assert result.eligible is False
        assert await department_store.get("departments/events") is None
