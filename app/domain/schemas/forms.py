"""
Form template and submission schemas.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasPath, BaseModel, Field, field_validator

from .base import StoreDocument


class FieldType(str, Enum):
    TEXT = "text"
    QUIZ = "quiz"
    CHOICE = "choice"
    NUMBER = "number"
    DATE = "date"


class TextValidation(StoreDocument):
    min_length: int = Field(default=0, ge=0)
    max_length: Optional[int] = Field(default=None, ge=0)
    grammar_check: bool = True


class QuizQuestion(StoreDocument):
    question: str = ""
    options: List[Any] = Field(default_factory=list)
    correct: Any = None


class FormField(StoreDocument):
    id: str
    type: str = FieldType.TEXT.value
    label: str = ""
    required: bool = False
    validation: TextValidation = Field(default_factory=TextValidation)
    questions: List[QuizQuestion] = Field(default_factory=list)

    @field_validator("validation", mode="before")
    @classmethod
    def empty_validation(cls, v):
        return v or {}

    @field_validator("questions", mode="before")
    @classmethod
    def empty_questions(cls, v):
        return v or []


class FormTemplate(StoreDocument):
    """A form template under forms/templates/{id}."""
    id: str
    title: str = ""
    description: Optional[str] = None
    department: Optional[str] = None
    status: str = "draft"
    fields: List[FormField] = Field(default_factory=list)
    requirements: Optional[Dict[str, Any]] = None
    auto_approve_threshold: Optional[int] = Field(
        default=None,
        validation_alias=AliasPath("autoEvaluation", "thresholds", "autoApprove"),
    )
    auto_reject_threshold: Optional[int] = Field(
        default=None,
        validation_alias=AliasPath("autoEvaluation", "thresholds", "autoReject"),
    )

    @field_validator("fields", mode="before")
    @classmethod
    def fields_list(cls, v):
        if not v:
            return []
        if isinstance(v, dict):
            return list(v.values())
        return v


class Recommendation(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    REVIEW = "review"


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def from_recommendation(cls, recommendation: Recommendation) -> "SubmissionStatus":
        return {
            Recommendation.APPROVE: cls.APPROVED,
            Recommendation.REJECT: cls.REJECTED,
            Recommendation.REVIEW: cls.PENDING,
        }[recommendation]

    @property
    def is_terminal(self) -> bool:
        return self is not SubmissionStatus.PENDING


class SubmissionEvaluation(StoreDocument):
    """Automated grading of a submission."""
    grammar_score: float = 0
    length_score: float = 0
    quiz_score: float = 0
    overall_score: int = 0
    recommendation: Recommendation = Recommendation.REVIEW


class ManualEvaluation(StoreDocument):
    reviewed_by: str
    reviewed_at: int
    score: float
    feedback: str
    decision: SubmissionStatus


class Evaluation(StoreDocument):
    automated: SubmissionEvaluation
    manual: Optional[ManualEvaluation] = None


class Submission(StoreDocument):
    """A form submission under forms/submissions/{id}."""
    id: str
    form_id: str
    user_id: str
    status: SubmissionStatus
    responses: Dict[str, Any] = Field(default_factory=dict)
    evaluation: Evaluation
    submitted_at: int
    updated_at: int


class ReviewRequest(BaseModel):
    """Manual review input, validated before it reaches the workflow."""
    decision: SubmissionStatus
    feedback: str = Field(min_length=10)
    score: Optional[float] = Field(default=None, ge=0, le=100)

    @field_validator("decision")
    @classmethod
    def terminal_decision(cls, v: SubmissionStatus) -> SubmissionStatus:
        if not v.is_terminal:
            raise ValueError("Decision must be either 'approved' or 'rejected'")
        return v

    @field_validator("feedback", mode="before")
    @classmethod
    def strip_feedback(cls, v):
        return v.strip() if isinstance(v, str) else v


class AvailableForm(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    department: Optional[str] = None
    estimated_time: int
