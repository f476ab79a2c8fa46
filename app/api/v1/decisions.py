"""
Translation of decision outcomes into HTTP errors.
"""
from typing import Optional

from fastapi import HTTPException, status


def ensure_allowed(allowed: bool, reason: Optional[str]) -> None:
    """
    Raise for a negative decision.

    Missing resources map to 404, every other refusal to 403 with its reason.
    """
    if allowed:
        return
    if reason and reason.endswith("not found"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=reason)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=reason or "Not eligible")
