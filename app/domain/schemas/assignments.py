"""
Assignment (task) schemas.
"""
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from .base import StoreDocument


class AssignmentStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    UNDER_REVIEW = "under_review"
    COMPLETED = "completed"


class AssignmentPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Assignment(StoreDocument):
    """A task under assignments/tasks/{id}. Timestamps are epoch seconds."""
    id: Optional[str] = None
    title: str = ""
    description: str = ""
    assigned_to: str
    assigned_by: Optional[str] = None
    due_date: int
    priority: AssignmentPriority = AssignmentPriority.MEDIUM
    status: AssignmentStatus = AssignmentStatus.PENDING
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    completed_at: Optional[int] = None
    completed_by: Optional[str] = None


class AssignmentCreate(StoreDocument):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    assigned_to: str = Field(min_length=1)
    due_date: int
    priority: AssignmentPriority = AssignmentPriority.MEDIUM

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v
