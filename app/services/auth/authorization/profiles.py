"""
Permission profile resolution.

Normalizes a stored user record or a configured service credential into the
canonical ``PermissionProfile`` every decision works from.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, Mapping, Optional, Union

import structlog

from app.core.config import Settings, settings
from app.core.exceptions import ValidationError
from app.core.security import keys_match
from app.domain.schemas.profiles import (
    Department,
    PermissionLevel,
    PermissionProfile,
    Role,
    ServiceCredential,
)

from .roles import ROLE_TABLE, RoleTable

logger = structlog.get_logger(__name__)

ProfileSource = Union[Mapping[str, Any], ServiceCredential]


def build_service_credentials(config: Settings) -> Dict[str, ServiceCredential]:
    """Map configured API keys to their service identities."""
    credentials: Dict[str, ServiceCredential] = {}
    if config.INTERNAL_API_KEY:
        credentials[config.INTERNAL_API_KEY] = ServiceCredential(
            uid="internal-service",
            name="Internal Service",
            level=PermissionLevel.PRESIDENT,
            role=Role.SYSTEM_ADMIN,
            department=Department.SYSTEM,
        )
    if config.PARTNER_API_KEY:
        credentials[config.PARTNER_API_KEY] = ServiceCredential(
            uid="partner-service",
            name="Partner Service",
            level=PermissionLevel.MIDDLE_RANK_APPRENTICE,
            role=Role.PARTNER_API,
            department=Department.PARTNER,
        )
    return credentials


class ProfileResolver:
    """Resolves records and credentials against an injected role table."""

    def __init__(
        self,
        role_table: RoleTable = ROLE_TABLE,
        credentials: Optional[Dict[str, ServiceCredential]] = None,
    ):
        self.role_table = role_table
        self.credentials = credentials or {}

    def resolve(self, source: ProfileSource, user_id: Optional[str] = None) -> PermissionProfile:
        """
        Resolve a stored user record or a service credential.

        Args:
            source: User record (``{"permissions": ..., "onboarding": ...}``) or credential
            user_id: ID of the user the record belongs to

        Returns:
            Canonical permission profile

        Raises:
            ValidationError: If the record carries an unknown role or a bad level
        """
        if isinstance(source, ServiceCredential):
            return self._resolve_credential_profile(source)
        if not isinstance(source, Mapping):
            raise ValidationError("User record must be an object", field="record")
        return self._resolve_record(source, user_id)

    def _resolve_credential_profile(self, credential: ServiceCredential) -> PermissionProfile:
        definition = self.role_table.get(credential.role)
        level = definition.level if definition else credential.level
        department = definition.department if definition else credential.department
        return PermissionProfile(
            level=level,
            role=credential.role,
            department=department,
            user_id=credential.uid,
            is_service=True,
        )

    def _resolve_record(self, record: Mapping[str, Any], user_id: Optional[str]) -> PermissionProfile:
        permissions = record.get("permissions") or {}
        if not isinstance(permissions, Mapping):
            raise ValidationError("permissions must be an object", field="permissions")

        onboarding = record.get("onboarding") or {}
        primary = onboarding.get("primaryDepartment") if isinstance(onboarding, Mapping) else None

        role_name = permissions.get("role")
        if role_name:
            if not self.role_table.is_stored_role(role_name):
                logger.warning("unknown_role_on_record", user_id=user_id, role=role_name)
                raise ValidationError(f"Unknown role: {role_name}", field="permissions.role")
            definition = self.role_table.get(role_name)
            return PermissionProfile(
                level=definition.level,
                role=definition.role,
                department=definition.department,
                primary_department=primary or None,
                user_id=user_id,
            )

        level = permissions.get("level")
        if level is None:
            level = PermissionLevel.BASE_RANK
        elif isinstance(level, bool) or not isinstance(level, int) or not 0 <= level <= 10:
            raise ValidationError(f"Invalid permission level: {level!r}", field="permissions.level")

        department = permissions.get("department") or Department.GENERAL.value
        try:
            department = Department(department)
        except ValueError as e:
            raise ValidationError(
                f"Unknown department: {department}", field="permissions.department"
            ) from e

        return PermissionProfile(
            level=level,
            role=Role.BASE_RANK,
            department=department,
            primary_department=primary or None,
            user_id=user_id,
        )

    def resolve_credential(self, api_key: Optional[str]) -> Optional[ServiceCredential]:
        """Look up a raw API key; unknown keys resolve to None."""
        if not api_key:
            return None
        found = None
        # Every configured key is compared
        for configured, credential in self.credentials.items():
            if keys_match(api_key, configured):
                found = credential
        return found


@lru_cache
def get_profile_resolver() -> ProfileResolver:
    """Resolver configured from application settings."""
    return ProfileResolver(ROLE_TABLE, build_service_credentials(settings))


def resolve_permission_profile(
    source: ProfileSource,
    user_id: Optional[str] = None,
) -> PermissionProfile:
    """Resolve a record or credential with the default resolver."""
    return get_profile_resolver().resolve(source, user_id)
