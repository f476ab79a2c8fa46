"""
Base schema for documents held in the hierarchical store.
"""
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class StoreDocument(BaseModel):
    """Store documents use camelCase keys; attributes stay snake_case."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_store(self) -> Dict[str, Any]:
        """Serialize back to the store's key layout."""
        return self.model_dump(by_alias=True, mode="json")
