"""
User service.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog

from app.domain.schemas.profiles import PermissionProfile
from app.infrastructure.store import KeyValueStore
from app.services.auth.authorization.profiles import ProfileResolver, get_profile_resolver

logger = structlog.get_logger(__name__)


def user_key(user_id: str) -> str:
    return f"users/{user_id}"


class UserService:
    """Reads user records and resolves them into permission profiles."""

    def __init__(
        self,
        store: KeyValueStore,
        resolver: Optional[ProfileResolver] = None,
    ):
        self.store = store
        self.resolver = resolver or get_profile_resolver()

    async def get_record(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Get a stored user record.

        Args:
            user_id: User ID

        Returns:
            Record if found
        """
        record = await self.store.get(user_key(user_id))
        return record if isinstance(record, dict) else None

    async def exists(self, user_id: str) -> bool:
        return await self.get_record(user_id) is not None

    def profile_from_record(self, user_id: str, record: Dict[str, Any]) -> PermissionProfile:
        return self.resolver.resolve(record, user_id=user_id)

    async def get_profile(self, user_id: str) -> Optional[PermissionProfile]:
        """
        Resolve a user's permission profile.

        Args:
            user_id: User ID

        Returns:
            Profile, or None when the user does not exist

        Raises:
            ValidationError: If the stored record is malformed
        """
        record = await self.get_record(user_id)
        if record is None:
            return None
        return self.profile_from_record(user_id, record)

    @staticmethod
    def account_created_at(record: Optional[Dict[str, Any]]) -> Optional[datetime]:
        """Account creation time from ``activity.createdAt`` (epoch ms)."""
        activity = (record or {}).get("activity") or {}
        created = activity.get("createdAt") if isinstance(activity, dict) else None
        if isinstance(created, bool) or not isinstance(created, (int, float)):
            return None
        return datetime.fromtimestamp(created / 1000, tz=timezone.utc)
