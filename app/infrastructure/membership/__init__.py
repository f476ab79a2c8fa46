"""
External group-membership service module.
"""
from .client import MembershipClient

__all__ = ["MembershipClient"]
