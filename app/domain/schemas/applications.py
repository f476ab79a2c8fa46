"""
Application (feature module) schemas.
"""
from typing import List, Optional

from pydantic import Field, field_validator

from .base import StoreDocument


class AppDescriptor(StoreDocument):
    """An application entry of the catalog stored under applications/{id}."""
    id: str
    name: str = ""
    description: Optional[str] = None
    category: Optional[str] = None
    department: Optional[str] = None
    required_permissions: List[str] = Field(default_factory=list)
    order: int = 999
    enabled: bool = True

    @field_validator("required_permissions", mode="before")
    @classmethod
    def coerce_permissions(cls, v):
        # The store may hold a single token, a list, or a {key: token} map
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        if isinstance(v, dict):
            return list(v.values())
        return v

    @field_validator("order", mode="before")
    @classmethod
    def default_order(cls, v):
        return 999 if not v else v
