"""
Permission profile schemas.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class PermissionLevel(int, Enum):
    """Seniority levels, 0-10."""
    GUEST = 0
    BASE_RANK = 1
    BASE_RANK_APPRENTICE = 2
    MIDDLE_RANK_APPRENTICE = 3
    ASSOCIATE = 4
    MIDDLE_RANK = 5
    HIGH_RANK = 6
    DEPARTMENT_HEAD = 7
    TECHNICAL_LEAD = 8
    EXECUTIVE = 9
    PRESIDENT = 10


class Department(str, Enum):
    """Departments a role belongs to."""
    GENERAL = "general"
    OPERATIONS = "operations"
    MODERATION = "moderation"
    HR = "hr"
    PR = "pr"
    TECHNICAL = "technical"
    CORPORATE = "corporate"
    PARTNER = "partner"
    SYSTEM = "system"


class Role(str, Enum):
    """Platform roles."""
    BASE_RANK = "base_rank"
    BASE_RANK_APPRENTICE = "base_rank_apprentice"
    MIDDLE_RANK_APPRENTICE = "middle_rank_apprentice"
    HIGH_RANK_APPRENTICE = "high_rank_apprentice"
    MODERATION_INTERN = "moderation_intern"
    ACQUISITION_INTERN = "acquisition_intern"
    RELATIONS_INTERN = "relations_intern"
    MODERATION_ASSOCIATE = "moderation_associate"
    ACQUISITION_ASSOCIATE = "acquisition_associate"
    RELATIONS_ASSOCIATE = "relations_associate"
    MIDDLE_RANK = "middle_rank"
    HIGH_RANK = "high_rank"
    MODERATION_HEAD = "moderation_head"
    ACQUISITION_HEAD = "acquisition_head"
    RELATIONS_HEAD = "relations_head"
    TECHNICAL_LEAD = "technical_lead"
    VICE_PRESIDENT = "vice_president"
    CHAIRMAN = "chairman"
    PRESIDENT = "president"
    REPRESENTATIVE = "representative"

    # Service credentials only
    SYSTEM_ADMIN = "system_admin"
    PARTNER_API = "partner_api"


class PermissionProfile(BaseModel):
    """Canonical permission profile used by every decision."""
    level: int = Field(default=PermissionLevel.BASE_RANK, ge=0, le=10)
    role: Role = Role.BASE_RANK
    department: Department = Department.GENERAL
    primary_department: Optional[str] = None
    user_id: Optional[str] = None
    is_service: bool = False

    @property
    def app_department(self) -> str:
        """Department used to scope application access."""
        return self.primary_department or self.department.value

    @property
    def bypasses_checks(self) -> bool:
        """System service credentials skip policy gates."""
        return self.is_service and self.level >= PermissionLevel.PRESIDENT


class ServiceCredential(BaseModel):
    """A configured service identity presented through an API key."""
    uid: str
    name: str
    level: int = Field(ge=0, le=10)
    role: Role
    department: Department
