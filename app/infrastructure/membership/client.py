"""
Client for the external group-membership service.
"""
import asyncio
from typing import Any, Dict, Optional

import aiohttp
from pydantic import ValidationError as PydanticValidationError

from app.core.config import settings
from app.core.exceptions import ExternalServiceError
from app.core.logging import get_logger
from app.domain.schemas.departments import GroupMembership

logger = get_logger(__name__)

SERVICE_NAME = "membership"


class MembershipClient:
    """
    Reads a user's group roles plus group names and icons.

    Role lookups feed eligibility decisions and raise on failure so callers
    can fail closed. Name and icon lookups are cosmetic and return None on
    any failure.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        thumbnails_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.api_url = (api_url or settings.MEMBERSHIP_API_URL).rstrip("/")
        self.thumbnails_url = (thumbnails_url or settings.MEMBERSHIP_THUMBNAILS_URL).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(
            total=timeout_seconds if timeout_seconds is not None else settings.MEMBERSHIP_TIMEOUT_SECONDS
        )

    async def _get_json(self, url: str, params: Optional[Dict[str, str]] = None) -> Any:
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.get(url, params=params, headers={"Accept": "application/json"}) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise ExternalServiceError(
                        SERVICE_NAME,
                        f"HTTP {response.status}: {error_text[:200]}",
                    )
                return await response.json()

    async def list_group_roles(self, user_id: str) -> Dict[str, GroupMembership]:
        """
        Get the user's role in every group they belong to.

        Args:
            user_id: External platform user ID

        Returns:
            Memberships keyed by group ID

        Raises:
            ExternalServiceError: If the service errors, times out or answers garbage
        """
        url = f"{self.api_url}/v2/users/{user_id}/groups/roles"
        try:
            payload = await self._get_json(url)
        except ExternalServiceError as e:
            logger.warning("membership_lookup_failed", user_id=user_id, error=e.message)
            raise
        except asyncio.TimeoutError as e:
            logger.warning("membership_lookup_timeout", user_id=user_id, timeout=self.timeout.total)
            raise ExternalServiceError(SERVICE_NAME, "Request timed out") from e
        except aiohttp.ClientError as e:
            logger.warning("membership_lookup_failed", user_id=user_id, error=str(e))
            raise ExternalServiceError(SERVICE_NAME, str(e)) from e
        except ValueError as e:
            logger.warning("membership_lookup_malformed", user_id=user_id, error=str(e))
            raise ExternalServiceError(SERVICE_NAME, "Malformed response") from e

        if not isinstance(payload, dict) or not isinstance(payload.get("data", []), list):
            raise ExternalServiceError(SERVICE_NAME, "Unexpected response shape")

        memberships: Dict[str, GroupMembership] = {}
        for entry in payload.get("data") or []:
            if not isinstance(entry, dict):
                continue
            group = entry.get("group") or {}
            role = entry.get("role") or {}
            if not isinstance(group, dict) or not isinstance(role, dict) or group.get("id") is None:
                continue
            group_id = str(group["id"])
            try:
                memberships[group_id] = GroupMembership(
                    group_id=group_id,
                    role_name=role.get("name"),
                    rank=role.get("rank") or 0,
                )
            except PydanticValidationError as e:
                logger.warning("membership_lookup_malformed", user_id=user_id, group_id=group_id, error=str(e))
                raise ExternalServiceError(SERVICE_NAME, "Malformed response") from e

        logger.debug("membership_lookup_succeeded", user_id=user_id, groups=len(memberships))
        return memberships

    async def group_icon(self, group_id: str) -> Optional[str]:
        """Circular 150x150 icon URL of a group, or None."""
        url = f"{self.thumbnails_url}/v1/groups/icons"
        params = {
            "groupIds": str(group_id),
            "size": "150x150",
            "format": "Png",
            "isCircular": "true",
        }
        try:
            payload = await self._get_json(url, params=params)
            return payload["data"][0]["imageUrl"] or None
        except (ExternalServiceError, aiohttp.ClientError, asyncio.TimeoutError, KeyError, IndexError, TypeError, ValueError) as e:
            logger.debug("group_icon_unavailable", group_id=group_id, error=str(e))
            return None

    async def group_name(self, group_id: str) -> Optional[str]:
        """Display name of a group, or None."""
        url = f"{self.api_url}/v1/groups/{group_id}"
        try:
            payload = await self._get_json(url)
            return payload.get("name") or None
        except (ExternalServiceError, aiohttp.ClientError, asyncio.TimeoutError, AttributeError, ValueError) as e:
            logger.debug("group_name_unavailable", group_id=group_id, error=str(e))
            return None
