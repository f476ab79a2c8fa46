"""
Domain schemas for Gatehouse.
"""

from .applications import AppDescriptor
from .assignments import Assignment, AssignmentCreate, AssignmentPriority, AssignmentStatus
from .base import StoreDocument
from .departments import (
    AutoAssignment,
    DepartmentDecision,
    DepartmentEligibilityReport,
    DepartmentEligibilityResponse,
    DepartmentMember,
    DepartmentRecord,
    DepartmentStatus,
    GroupMembership,
    PartnerEligibility,
    PartnerOrganization,
    PartnerRepresentative,
)
from .eligibility import (
    Capacity,
    EligibilityHistory,
    EligibilityResult,
    ResourceRequirements,
    ResourceState,
    TransitionResult,
)
from .forms import (
    AvailableForm,
    Evaluation,
    FieldType,
    FormField,
    FormTemplate,
    ManualEvaluation,
    QuizQuestion,
    Recommendation,
    ReviewRequest,
    Submission,
    SubmissionEvaluation,
    SubmissionStatus,
    TextValidation,
)
from .profiles import Department, PermissionLevel, PermissionProfile, Role, ServiceCredential
from .sessions import Attendee, SessionCreate, SessionResource

__all__ = [
    "StoreDocument",

    # Profiles
    "Department",
    "PermissionLevel",
    "PermissionProfile",
    "Role",
    "ServiceCredential",

    # Decisions
    "Capacity",
    "EligibilityHistory",
    "EligibilityResult",
    "ResourceRequirements",
    "ResourceState",
    "TransitionResult",

    # Applications
    "AppDescriptor",

    # Departments and partners
    "AutoAssignment",
    "DepartmentDecision",
    "DepartmentEligibilityReport",
    "DepartmentEligibilityResponse",
    "DepartmentMember",
    "DepartmentRecord",
    "DepartmentStatus",
    "GroupMembership",
    "PartnerEligibility",
    "PartnerOrganization",
    "PartnerRepresentative",

    # Forms
    "AvailableForm",
    "Evaluation",
    "FieldType",
    "FormField",
    "FormTemplate",
    "ManualEvaluation",
    "QuizQuestion",
    "Recommendation",
    "ReviewRequest",
    "Submission",
    "SubmissionEvaluation",
    "SubmissionStatus",
    "TextValidation",

    # Sessions
    "Attendee",
    "SessionCreate",
    "SessionResource",

    # Assignments
    "Assignment",
    "AssignmentCreate",
    "AssignmentPriority",
    "AssignmentStatus",
]
