"""
Application catalog service: listing, favorites and usage analytics.
"""
from typing import Any, Dict, List, Optional, Union

import structlog

from app.core.clock import now_s
from app.core.logging import log_decision
from app.domain.schemas.applications import AppDescriptor
from app.domain.schemas.eligibility import EligibilityResult
from app.domain.schemas.profiles import PermissionProfile
from app.infrastructure.store import KeyValueStore
from app.services.auth.authorization.applications import (
    has_app_access,
    has_required_permissions,
    list_applications,
)
from app.services.user import user_key

logger = structlog.get_logger(__name__)

CATALOG = "applications"
FAVORITES_FIELD = "settings/favorites"
ANALYTICS_FIELD = "settings/analytics"
MOST_USED_LIMIT = 5


def _as_list(value: Any) -> List[str]:
    if isinstance(value, list):
        return [v for v in value if v is not None]
    if isinstance(value, dict):
        return list(value.values())
    return []


class ApplicationService:
    """Catalog operations scoped to a caller's permission profile."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def load_catalog(self) -> Dict[str, AppDescriptor]:
        """Load every catalog entry keyed by app ID."""
        raw = await self.store.children(CATALOG)
        return {
            app_id: AppDescriptor.model_validate({**doc, "id": app_id})
            for app_id, doc in raw.items()
            if isinstance(doc, dict)
        }

    async def list_for(
        self,
        profile: PermissionProfile,
        department: Optional[str] = None,
        category: Optional[str] = None,
        include_disabled: bool = False,
    ) -> List[AppDescriptor]:
        catalog = await self.load_catalog()
        return list_applications(
            catalog,
            profile,
            department=department,
            category=category,
            include_disabled=include_disabled,
        )

    async def get_for(
        self,
        profile: PermissionProfile,
        app_id: str,
    ) -> Union[AppDescriptor, EligibilityResult]:
        """
        Get one app if the profile may open it.

        Returns:
            The descriptor, or an ineligible result with the reason
        """
        raw = await self.store.get(f"{CATALOG}/{app_id}")
        if not isinstance(raw, dict):
            return EligibilityResult.deny("Application not found")

        app = AppDescriptor.model_validate({**raw, "id": app_id})
        if not app.enabled:
            result = EligibilityResult.deny("Application is disabled")
        elif not has_app_access(profile, app_id):
            result = EligibilityResult.deny("Access denied to this application")
        elif not has_required_permissions(profile, app.required_permissions):
            result = EligibilityResult.deny("Insufficient permissions for this application")
        else:
            return app

        logger.info(
            "application_access_denied",
            **log_decision("app_access", False, result.reason, app_id=app_id, user_id=profile.user_id),
        )
        return result

    async def get_favorites(self, user_id: str) -> List[str]:
        return _as_list(await self.store.get(user_key(user_id), FAVORITES_FIELD))

    async def add_favorite(self, user_id: str, app_id: str) -> List[str]:
        """Add an app to the user's favorites. Adding twice is a no-op."""
        def add(current):
            favorites = _as_list(current)
            if app_id in favorites:
                return None
            return favorites + [app_id]

        result = await self.store.transaction(user_key(user_id), add, field=FAVORITES_FIELD)
        if result.committed:
            logger.info("favorite_added", user_id=user_id, app_id=app_id)
        return _as_list(result.value)

    async def remove_favorite(self, user_id: str, app_id: str) -> List[str]:
        """Remove an app from the user's favorites. Removing a missing app is a no-op."""
        def remove(current):
            favorites = _as_list(current)
            if app_id not in favorites:
                return None
            return [f for f in favorites if f != app_id]

        result = await self.store.transaction(user_key(user_id), remove, field=FAVORITES_FIELD)
        if result.committed:
            logger.info("favorite_removed", user_id=user_id, app_id=app_id)
        return _as_list(result.value)

    async def track_access(self, user_id: str, app_id: str) -> Dict[str, Any]:
        """
        Record that a user opened an app.

        The last-accessed marker and both counters are written in one
        transaction.
        """
        timestamp = now_s()

        def record(current):
            analytics = dict(current) if isinstance(current, dict) else {}
            usage = dict(analytics.get("usageStats") or {})
            usage[app_id] = (usage.get(app_id) or 0) + 1
            analytics["usageStats"] = usage
            analytics["totalAccesses"] = (analytics.get("totalAccesses") or 0) + 1
            analytics["lastAccessed"] = {"appId": app_id, "timestamp": timestamp}
            analytics["updatedAt"] = timestamp
            return analytics

        result = await self.store.transaction(user_key(user_id), record, field=ANALYTICS_FIELD)
        logger.debug("application_access_tracked", user_id=user_id, app_id=app_id)
        return result.value

    async def get_analytics(self, user_id: str) -> Dict[str, Any]:
        analytics = await self.store.get(user_key(user_id), ANALYTICS_FIELD) or {}
        usage = analytics.get("usageStats") or {}
        most_used = sorted(usage.items(), key=lambda item: item[1], reverse=True)[:MOST_USED_LIMIT]
        return {
            "most_used": [{"app_id": app_id, "count": count} for app_id, count in most_used],
            "last_accessed": analytics.get("lastAccessed"),
            "usage_stats": usage,
            "total_accesses": analytics.get("totalAccesses") or 0,
        }
