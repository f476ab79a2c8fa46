"""
Department, external group membership and partner schemas.
"""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import AliasChoices, AliasPath, BaseModel, Field, field_validator

from .base import StoreDocument


class GroupMembership(BaseModel):
    """A user's role within one external group."""
    group_id: str
    role_name: Optional[str] = None
    rank: int = 0


class DepartmentMember(StoreDocument):
    """Roster entry under departments/{id}/members/{userId}."""
    joined_at: Optional[int] = None
    role: Optional[str] = None
    rank: Optional[int] = None


class DepartmentRecord(StoreDocument):
    """A department of the registry."""
    id: str
    name: str = ""
    description: Optional[str] = None
    backing_group_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("groupId", "backingGroupId", "backing_group_id"),
    )
    required_rank: int = Field(
        default=0,
        validation_alias=AliasChoices(
            AliasPath("settings", "requiredRank"),
            AliasPath("settings", "requiredRole"),
            "requiredRank",
            "required_rank",
        ),
    )
    auto_approve: bool = Field(
        default=False,
        validation_alias=AliasChoices(AliasPath("settings", "autoApprove"), "autoApprove", "auto_approve"),
    )
    members: Dict[str, DepartmentMember] = Field(default_factory=dict)
    is_active: bool = False

    @field_validator("backing_group_id", mode="before")
    @classmethod
    def group_id_as_str(cls, v):
        return str(v) if v is not None else None

    @field_validator("required_rank", mode="before")
    @classmethod
    def non_numeric_rank_is_zero(cls, v):
        return v if isinstance(v, int) and not isinstance(v, bool) else 0

    @field_validator("members", mode="before")
    @classmethod
    def members_map(cls, v):
        if not v:
            return {}
        if isinstance(v, list):
            return {str(uid): {} for uid in v if uid is not None}
        if isinstance(v, dict):
            return {str(uid): entry if isinstance(entry, dict) else {} for uid, entry in v.items()}
        return v

    def has_member(self, user_id: str) -> bool:
        return user_id in self.members


class DepartmentStatus(str, Enum):
    """Per-department eligibility status."""
    ACTIVE = "active"
    PENDING = "pending"
    INELIGIBLE = "ineligible"


class DepartmentDecision(BaseModel):
    """Eligibility decision for one department."""
    id: str
    name: str = ""
    eligible: bool
    status: DepartmentStatus
    role: Optional[str] = None
    rank: Optional[int] = None


class AutoAssignment(BaseModel):
    """A roster write scheduled by an auto-approve decision."""
    department_id: str
    role: Optional[str] = None
    rank: int


class DepartmentEligibilityReport(BaseModel):
    """Result of the pure department eligibility computation."""
    user_id: str
    main_group_member: bool
    main_group_role: Optional[str] = None
    membership_available: bool = True
    departments: List[DepartmentDecision] = Field(default_factory=list)
    auto_assignments: List[AutoAssignment] = Field(default_factory=list)
    primary_department: Optional[str] = None
    primary_is_new: bool = False

    @property
    def auto_added(self) -> List[str]:
        return [a.department_id for a in self.auto_assignments]


class PartnerRepresentative(StoreDocument):
    roblox_id: str
    role: Optional[str] = None

    @field_validator("roblox_id", mode="before")
    @classmethod
    def id_as_str(cls, v):
        return str(v)


class PartnerOrganization(StoreDocument):
    """A partner organization under partners/organizations/{id}."""
    id: str
    name: str = ""
    group_id: Optional[str] = None
    status: Optional[str] = None
    representatives: List[PartnerRepresentative] = Field(default_factory=list)

    @field_validator("group_id", mode="before")
    @classmethod
    def group_id_as_str(cls, v):
        return str(v) if v is not None else None

    @field_validator("representatives", mode="before")
    @classmethod
    def representatives_list(cls, v):
        if not v:
            return []
        if isinstance(v, dict):
            return list(v.values())
        return v


class PartnerEligibility(BaseModel):
    """Side-effect free partner eligibility entry."""
    id: str
    name: str = ""
    eligible: bool
    representative: bool = False
    group_member: bool = False
    group_id: Optional[str] = None
    group_name: Optional[str] = None
    group_icon: Optional[str] = None
    role: Optional[str] = None


class DepartmentEligibilityResponse(BaseModel):
    """Outcome of a full department evaluation for one user."""
    main_group_member: bool
    main_group_role: Optional[str] = None
    membership_available: bool = True
    departments: List[DepartmentDecision] = Field(default_factory=list)
    auto_added: List[str] = Field(default_factory=list)
    partners: List[PartnerEligibility] = Field(default_factory=list)
    primary_department: Optional[str] = None
