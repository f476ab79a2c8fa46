"""
Training session schemas.
"""
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from .base import StoreDocument
from .eligibility import Capacity


class Attendee(StoreDocument):
    user_id: str
    status: str = "confirmed"
    registered_at: Optional[int] = None


class SessionResource(StoreDocument):
    """A session under sessions/sessions/{id}."""
    id: Optional[str] = None
    title: str = ""
    department: Optional[str] = None
    status: str = "scheduled"
    capacity: Capacity = Field(default_factory=Capacity)
    requirements: Optional[Dict[str, Any]] = None
    attendees: List[Attendee] = Field(default_factory=list)
    created_by: Optional[str] = None
    created_at: Optional[int] = None

    @field_validator("attendees", mode="before")
    @classmethod
    def attendees_list(cls, v):
        # Pushed children arrive as an {id: attendee} map
        if not v:
            return []
        if isinstance(v, dict):
            return list(v.values())
        return v

    @field_validator("capacity", mode="before")
    @classmethod
    def empty_capacity(cls, v):
        return v or {}

    def attendee_ids(self) -> List[str]:
        return [a.user_id for a in self.attendees]


class SessionCreate(StoreDocument):
    """Input for scheduling a new session."""
    title: str = Field(min_length=1)
    description: Optional[str] = None
    department: Optional[str] = None
    scheduled_for: Optional[int] = None
    capacity: Optional[Dict[str, int]] = None
    requirements: Optional[Dict[str, Any]] = None
