"""
Department eligibility computation.

Merges a user's external group memberships with department policy. This
module performs no I/O; persisting auto-assignments is a separate step.
"""
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from app.domain.schemas.departments import (
    AutoAssignment,
    DepartmentDecision,
    DepartmentEligibilityReport,
    DepartmentRecord,
    DepartmentStatus,
    GroupMembership,
)


def is_rank_eligible(
    department: DepartmentRecord,
    memberships: Mapping[str, GroupMembership],
    main_group_member: bool,
) -> bool:
    """Whether group data alone qualifies a user for a department."""
    membership = memberships.get(department.backing_group_id) if department.backing_group_id else None
    return main_group_member and membership is not None and membership.rank >= department.required_rank


def decide_department(
    user_id: str,
    department: DepartmentRecord,
    memberships: Mapping[str, GroupMembership],
    main_group_member: bool,
) -> DepartmentDecision:
    membership = memberships.get(department.backing_group_id) if department.backing_group_id else None

    if department.has_member(user_id):
        status = DepartmentStatus.ACTIVE
    elif is_rank_eligible(department, memberships, main_group_member):
        status = DepartmentStatus.ACTIVE if department.auto_approve else DepartmentStatus.PENDING
    else:
        status = DepartmentStatus.INELIGIBLE

    return DepartmentDecision(
        id=department.id,
        name=department.name,
        eligible=status is not DepartmentStatus.INELIGIBLE,
        status=status,
        role=membership.role_name if membership else None,
        rank=membership.rank if membership else None,
    )


def select_primary_department(
    decisions: Iterable[DepartmentDecision],
    hierarchy: Sequence[str],
) -> Optional[str]:
    """
    Pick the eligible department ranked highest in the hierarchy.

    Departments missing from the hierarchy sort last; ties break by ID.
    """
    priority = {dept_id: index for index, dept_id in enumerate(hierarchy)}
    eligible = [d.id for d in decisions if d.eligible]
    if not eligible:
        return None
    return min(eligible, key=lambda dept_id: (priority.get(dept_id, len(priority)), dept_id))


def compute_department_eligibility(
    user_id: str,
    memberships: Mapping[str, GroupMembership],
    departments: Mapping[str, DepartmentRecord],
    main_group_id: str,
    stored_primary: Optional[str] = None,
    hierarchy: Sequence[str] = (),
    membership_available: bool = True,
) -> DepartmentEligibilityReport:
    """
    Compute per-department status for one user.

    Args:
        user_id: User being evaluated
        memberships: The user's group memberships keyed by group ID
        departments: Department registry keyed by ID
        main_group_id: Group every staff member must belong to
        stored_primary: Primary department already persisted for the user
        hierarchy: Department IDs, highest priority first
        membership_available: False when memberships could not be fetched

    Returns:
        Report with decisions, the auto-assignments to persist and the
        primary department
    """
    main_membership = memberships.get(str(main_group_id))
    main_group_member = main_membership is not None

    decisions: List[DepartmentDecision] = []
    assignments: List[AutoAssignment] = []

    for dept_id in sorted(departments):
        department = departments[dept_id]
        if not department.is_active:
            continue

        decision = decide_department(user_id, department, memberships, main_group_member)
        decisions.append(decision)

        if (
            decision.status is DepartmentStatus.ACTIVE
            and not department.has_member(user_id)
        ):
            assignments.append(
                AutoAssignment(
                    department_id=dept_id,
                    role=decision.role,
                    rank=decision.rank or 0,
                )
            )

    primary = stored_primary or None
    primary_is_new = False
    if not primary:
        primary = select_primary_department(decisions, hierarchy)
        primary_is_new = primary is not None

    return DepartmentEligibilityReport(
        user_id=user_id,
        main_group_member=main_group_member,
        main_group_role=main_membership.role_name if main_membership else None,
        membership_available=membership_available,
        departments=decisions,
        auto_assignments=assignments,
        primary_department=primary,
        primary_is_new=primary_is_new,
    )


def departments_from_store(raw: Mapping[str, Dict]) -> Dict[str, DepartmentRecord]:
    """Validate raw department documents keyed by ID."""
    return {
        dept_id: DepartmentRecord.model_validate({**doc, "id": dept_id})
        for dept_id, doc in raw.items()
        if isinstance(doc, dict)
    }
