"""
Enumerations and constants for the Athena portal.
"""

from enum import Enum


class Role(Enum):
    """Caller roles as asserted by the auth gateway."""
    ADMIN = "Admin"
    INSTRUCTOR = "Instructor"
    STUDENT = "Student"


class StudentStatus(Enum):
    """Standing of a student record."""
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    GRADUATED = "Graduated"
    SUSPENDED = "Suspended"


class EnrollmentStatus(Enum):
    """Status of an enrollment."""
    ACTIVE = "Active"
    COMPLETED = "Completed"
    DROPPED = "Dropped"
    WITHDRAWN = "Withdrawn"


class TermType(Enum):
    """Kinds of academic terms, each with its own credit cap."""
    STANDARD = "standard"
    COMPRESSED = "compressed"


class SubmissionStatus(Enum):
    """Derived outcome of a quiz submission."""
    PENDING = "Pending"
    PASS = "Pass"
    FAIL = "Fail"


class GradingMode(Enum):
    """Deployment-wide quiz scoring policy."""
    DEFERRED = "deferred"
    IMMEDIATE = "immediate"


class AuditAction(Enum):
    """Types of recorded activity."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ENROLL = "ENROLL"
    SUBMIT = "SUBMIT"
    GRADE = "GRADE"
