"""
Core module containing the domain model, academic rules and exceptions.
"""

from .entities import *
from .academics import *
from .enrollment_policies import *
from .interfaces import *
from .exceptions import *
from .enums import *

__all__ = [
    # Entities
    "AbstractEntity",
    "Student",
    "Instructor",
    "Course",
    "Enrollment",
    "Quiz",
    "QuizQuestion",
    "QuizSubmission",
    "QuizAnswer",
    "ActivityLogEntry",

    # Academic rules
    "Term",
    "TermRules",
    "QUALITY_POINTS",
    "compute_gpa",
    "percentage_score",
    "validate_grade",

    # Policies and interfaces
    "AdmissionContext",
    "EnrollmentPolicy",
    "DuplicateEnrollmentPolicy",
    "CapacityPolicy",
    "CreditLimitPolicy",
    "Repository",
    "ActivityRecorder",

    # Enums
    "Role",
    "StudentStatus",
    "EnrollmentStatus",
    "TermType",
    "SubmissionStatus",
    "GradingMode",
    "AuditAction",

    # Exceptions
    "AthenaException",
    "ValidationError",
    "AuthorizationError",
    "ResourceNotFoundError",
    "BusinessRejection",
    "DuplicateEnrollmentError",
    "CourseFullError",
    "CreditLimitExceededError",
    "InvalidTransitionError",
    "PersistenceError",
    "TransientStorageError",
    "ConcurrencyError",
    "ConfigurationError",
]
