"""
Static role table.

Every platform role implies a fixed (level, department) pair. The table is
the single lookup used by profile resolution; service roles are only ever
granted through configured credentials.
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional

from pydantic import BaseModel

from app.domain.schemas.profiles import Department, Role


class RoleDefinition(BaseModel):
    """Level and department implied by a role."""
    role: Role
    level: int
    department: Department
    is_service_role: bool = False


class RoleTable:
    """Lookup of role definitions by role name."""

    def __init__(self, definitions: Iterable[RoleDefinition]):
        self._definitions: Dict[Role, RoleDefinition] = {d.role: d for d in definitions}

    def get(self, role: str | Role) -> Optional[RoleDefinition]:
        """Get the definition of a role, or None for unknown names."""
        try:
            return self._definitions.get(Role(role))
        except ValueError:
            return None

    def is_stored_role(self, role: str | Role) -> bool:
        """Whether a role may appear on a stored user record."""
        definition = self.get(role)
        return definition is not None and not definition.is_service_role

    def __contains__(self, role: object) -> bool:
        return isinstance(role, (str, Role)) and self.get(role) is not None

    def __len__(self) -> int:
        return len(self._definitions)


def _define(role: Role, level: int, department: Department, service: bool = False) -> RoleDefinition:
    return RoleDefinition(role=role, level=level, department=department, is_service_role=service)


DEFAULT_ROLES = [
    _define(Role.BASE_RANK, 1, Department.GENERAL),
    _define(Role.BASE_RANK_APPRENTICE, 2, Department.GENERAL),
    _define(Role.MIDDLE_RANK_APPRENTICE, 3, Department.OPERATIONS),
    _define(Role.HIGH_RANK_APPRENTICE, 3, Department.OPERATIONS),
    _define(Role.MODERATION_INTERN, 2, Department.MODERATION),
    _define(Role.ACQUISITION_INTERN, 2, Department.HR),
    _define(Role.RELATIONS_INTERN, 2, Department.PR),
    _define(Role.MODERATION_ASSOCIATE, 4, Department.MODERATION),
    _define(Role.ACQUISITION_ASSOCIATE, 4, Department.HR),
    _define(Role.RELATIONS_ASSOCIATE, 4, Department.PR),
    _define(Role.MIDDLE_RANK, 5, Department.OPERATIONS),
    _define(Role.HIGH_RANK, 6, Department.OPERATIONS),
    _define(Role.MODERATION_HEAD, 7, Department.MODERATION),
    _define(Role.ACQUISITION_HEAD, 7, Department.HR),
    _define(Role.RELATIONS_HEAD, 7, Department.PR),
    _define(Role.TECHNICAL_LEAD, 8, Department.TECHNICAL),
    _define(Role.VICE_PRESIDENT, 9, Department.CORPORATE),
    _define(Role.CHAIRMAN, 9, Department.CORPORATE),
    _define(Role.PRESIDENT, 10, Department.CORPORATE),
    _define(Role.REPRESENTATIVE, 2, Department.PARTNER),

    # Service credentials
    _define(Role.SYSTEM_ADMIN, 10, Department.SYSTEM, service=True),
    _define(Role.PARTNER_API, 3, Department.PARTNER, service=True),
]

ROLE_TABLE = RoleTable(DEFAULT_ROLES)
