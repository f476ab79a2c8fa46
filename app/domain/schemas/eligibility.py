"""
Eligibility decision schemas.

Requirements are validated once at the boundary and then handed to the
evaluator as an explicit struct.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import ValidationError

from .base import StoreDocument


class EligibilityResult(BaseModel):
    """Outcome of an eligibility decision. Never raised, always returned."""
    eligible: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "EligibilityResult":
        return cls(eligible=True, reason=None)

    @classmethod
    def deny(cls, reason: str) -> "EligibilityResult":
        return cls(eligible=False, reason=reason)


class TransitionResult(BaseModel):
    """Outcome of a workflow state transition."""
    allowed: bool
    reason: Optional[str] = None
    old_status: Optional[str] = None
    new_status: Optional[str] = None


class ResourceRequirements(StoreDocument):
    """
    Requirements attached to a gated resource.

    Every field is optional; an absent field places no restriction.
    """
    min_level: Optional[int] = Field(default=None, ge=0, le=10)
    min_days_active: Optional[int] = Field(default=None, ge=0)
    departments: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("departments", "requiredDepartments", "required_departments"),
    )
    blacklisted_roles: List[str] = Field(default_factory=list)

    @classmethod
    def parse(cls, raw: Optional[Dict[str, Any]]) -> "ResourceRequirements":
        """
        Validate a raw requirements object from the store.

        Raises:
            ValidationError: If a field has the wrong type or range
        """
        if raw is None:
            return cls()
        if not isinstance(raw, dict):
            raise ValidationError("Requirements must be an object", field="requirements")
        # Store documents use null/0 for "no requirement"
        cleaned = {k: v for k, v in raw.items() if v not in (None, 0, [])}
        try:
            return cls.model_validate(cleaned)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ()))
            raise ValidationError(f"Invalid requirements: {first.get('msg')}", field=field) from e


class Capacity(StoreDocument):
    """Seat counts of a session."""
    min: int = Field(default=1, ge=0)
    max: int = Field(default=10, ge=0)
    current: int = Field(default=0, ge=0)

    @property
    def is_full(self) -> bool:
        return self.current >= self.max


class ResourceState(BaseModel):
    """Live state of the gated resource at decision time."""
    found: bool = True
    kind: str = "Resource"
    capacity: Optional[Capacity] = None
    attendees: List[str] = Field(default_factory=list)


class EligibilityHistory(BaseModel):
    """Workflow history of the requesting user."""
    account_created_at: Optional[datetime] = None
    # Statuses of this user's prior submissions to the same form
    submission_statuses: List[str] = Field(default_factory=list)
    check_submissions: bool = False
