"""
Form scoring and submission workflow.
"""
from .scoring import score_submission
from .service import FormService

__all__ = ["FormService", "score_submission"]
