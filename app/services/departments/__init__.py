"""
Department eligibility and assignment services.
"""
from .eligibility import compute_department_eligibility, select_primary_department
from .service import DepartmentService

__all__ = [
    "DepartmentService",
    "compute_department_eligibility",
    "select_primary_department",
]
