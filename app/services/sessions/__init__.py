"""
Session services.
"""
from .service import SessionService

__all__ = ["SessionService"]
