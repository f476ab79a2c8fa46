"""
Application access matrix.

Decides which feature modules a profile can see. Universal apps are open to
everyone; corporate staff (and anyone at level 5 or above) see every app;
everyone else adds the apps of their department group.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Set

import structlog

from app.domain.schemas.applications import AppDescriptor
from app.domain.schemas.profiles import PermissionLevel, PermissionProfile

logger = structlog.get_logger(__name__)

UNIVERSAL = "universal"
CORPORATE = "corporate"

APP_ACCESS_MATRIX: Dict[str, List[str]] = {
    UNIVERSAL: ["maia", "forms", "bake", "dof", "community", "sessions"],
    CORPORATE: [
        "oam-corporate", "uvm-corporate", "pvm-corporate", "courses-corporate",
        "forms-manager", "assignments-manager",
    ],
    "moderation": ["oam-basic", "uvm-basic", "courses-moderation", "bake-mod", "assignments"],
    "public-relations": ["partners", "pvm-basic", "bake-partners", "courses-pr", "assignments"],
    "talent-acquisition": ["uvm-basic", "myhr-manager", "courses-ta", "bake-hr", "assignments"],
    "hr": [
        "myhr-basic", "performance", "courses-hr", "bake", "sessions-manager",
        "forms-manager", "employee-directory", "assignments-manager",
    ],
    "mr": [
        "myhr-basic", "performance", "courses-mr", "bake", "sessions-manager-basic",
        "employee-directory", "assignments",
    ],
    "lr": ["myhr-basic", "performance", "courses-mr", "bake", "sessions"],
}

# Level thresholds of the permission tokens
BASIC_LEVEL = PermissionLevel.BASE_RANK
DEPARTMENT_ADMIN_LEVEL = PermissionLevel.BASE_RANK_APPRENTICE
CORPORATE_LEVEL = PermissionLevel.MIDDLE_RANK
ADMIN_LEVEL = PermissionLevel.TECHNICAL_LEAD
DEVELOPER_LEVEL = PermissionLevel.PRESIDENT

LEVEL_TOKENS = {
    "basic_access": BASIC_LEVEL,
    "group_access": BASIC_LEVEL,
    "department_access": BASIC_LEVEL,
    "department_admin": DEPARTMENT_ADMIN_LEVEL,
    "admin_access": ADMIN_LEVEL,
    "developer_access": DEVELOPER_LEVEL,
}


def _all_apps(matrix: Mapping[str, Iterable[str]]) -> Set[str]:
    return {app_id for apps in matrix.values() for app_id in apps}


def has_corporate_access(profile: PermissionProfile) -> bool:
    """Corporate department members and level 5+ see every app."""
    return profile.app_department == CORPORATE or profile.level >= CORPORATE_LEVEL


def get_accessible_apps(
    profile: PermissionProfile,
    matrix: Mapping[str, Iterable[str]] = APP_ACCESS_MATRIX,
) -> Set[str]:
    """
    Get the IDs of every application a profile may open.

    Args:
        profile: Resolved permission profile
        matrix: Department group to app IDs mapping

    Returns:
        Set of accessible app IDs
    """
    if profile.level >= DEVELOPER_LEVEL or has_corporate_access(profile):
        return _all_apps(matrix)

    accessible = set(matrix.get(UNIVERSAL, []))
    accessible.update(matrix.get(profile.app_department, []))
    return accessible


def has_app_access(profile: PermissionProfile, app_id: str) -> bool:
    """Check matrix membership of a single app."""
    if profile.bypasses_checks:
        return True
    return app_id in get_accessible_apps(profile)


def has_required_permissions(profile: PermissionProfile, tokens: Optional[Iterable[str]]) -> bool:
    """
    Check an app's required permission tokens.

    Any single satisfied token grants access. Unknown tokens are treated as
    role names and pass when they equal the profile's role.
    """
    tokens = list(tokens or [])
    if not tokens:
        return True
    if profile.bypasses_checks or profile.level >= DEVELOPER_LEVEL:
        return True
    if has_corporate_access(profile):
        return True

    for token in tokens:
        if token in LEVEL_TOKENS:
            if profile.level >= LEVEL_TOKENS[token]:
                return True
        elif token == "corporate_access":
            if profile.app_department == CORPORATE:
                return True
        elif token == profile.role.value:
            return True
    return False


def _sort_key(app: AppDescriptor):
    return (app.order or 999, app.name or "")


def list_applications(
    catalog: Mapping[str, AppDescriptor],
    profile: PermissionProfile,
    department: Optional[str] = None,
    category: Optional[str] = None,
    include_disabled: bool = False,
) -> List[AppDescriptor]:
    """
    List the catalog entries a profile may open.

    Disabled apps are skipped unless requested. At corporate level a
    ``-basic`` app is hidden when its ``-corporate`` sibling exists. The
    department filter only applies to apps that name a department.

    Returns:
        Matching apps sorted by order, then name
    """
    accessible = get_accessible_apps(profile)
    listed = []

    for app_id, app in catalog.items():
        if not include_disabled and not app.enabled:
            continue

        if profile.level >= CORPORATE_LEVEL and "-basic" in app_id:
            if app_id.replace("-basic", "-corporate") in catalog:
                continue

        if not profile.bypasses_checks and app_id not in accessible:
            continue

        if not has_required_permissions(profile, app.required_permissions):
            continue

        if department and app.department and app.department != department:
            continue

        if category and app.category != category:
            continue

        listed.append(app)

    listed.sort(key=_sort_key)
    logger.debug(
        "applications_filtered",
        user_id=profile.user_id,
        total=len(catalog),
        listed=len(listed),
    )
    return listed
