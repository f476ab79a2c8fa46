"""
API v1 router configuration.
"""
from fastapi import APIRouter

from app.api.v1.endpoints import (
    applications,
    assignments,
    departments,
    forms,
    health,
    sessions,
)

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(health.router, tags=["health"])
api_router.include_router(applications.router, prefix="/applications", tags=["applications"])
api_router.include_router(departments.router, prefix="/departments", tags=["departments"])
api_router.include_router(forms.router, prefix="/forms", tags=["forms"])
api_router.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
api_router.include_router(assignments.router, prefix="/assignments", tags=["assignments"])
