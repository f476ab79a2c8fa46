"""
Application catalog services.
"""
from .service import ApplicationService

__all__ = ["ApplicationService"]
