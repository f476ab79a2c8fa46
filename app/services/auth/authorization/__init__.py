"""
Authorization for Gatehouse.

This module resolves permission profiles from stored records and service
credentials, derives which applications a profile may open and evaluates
resource requirements for forms and sessions.
"""

from .applications import (
    APP_ACCESS_MATRIX,
    get_accessible_apps,
    has_app_access,
    has_corporate_access,
    has_required_permissions,
    list_applications,
)
from .eligibility import evaluate_resource_eligibility
from .profiles import (
    ProfileResolver,
    build_service_credentials,
    get_profile_resolver,
    resolve_permission_profile,
)
from .roles import ROLE_TABLE, RoleDefinition, RoleTable

__all__ = [
    # Profiles
    "ProfileResolver",
    "build_service_credentials",
    "get_profile_resolver",
    "resolve_permission_profile",

    # Roles
    "ROLE_TABLE",
    "RoleDefinition",
    "RoleTable",

    # Application access
    "APP_ACCESS_MATRIX",
    "get_accessible_apps",
    "has_app_access",
    "has_corporate_access",
    "has_required_permissions",
    "list_applications",

    # Resource eligibility
    "evaluate_resource_eligibility",
]
