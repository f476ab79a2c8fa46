"""
Assignment workflow services.
"""
from .workflow import VALID_TRANSITIONS, AssignmentWorkflow, check_transition

__all__ = ["AssignmentWorkflow", "VALID_TRANSITIONS", "check_transition"]
