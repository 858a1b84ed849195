"""
Services module containing the enrollment, academic and quiz workflows.
"""

from .concurrency_manager import ConcurrencyManager
from .activity_service import ActivityService
from .directory_service import DirectoryService
from .enrollment_service import EnrollmentService
from .lifecycle_service import EnrollmentLifecycleService
from .academic_service import AcademicSummaryService, AcademicSummary
from .quiz_service import QuizGradingService, SubmissionResult, GradeResult

__all__ = [
    "ConcurrencyManager",
    "ActivityService",
    "DirectoryService",
    "EnrollmentService",
    "EnrollmentLifecycleService",
    "AcademicSummaryService",
    "AcademicSummary",
    "QuizGradingService",
    "SubmissionResult",
    "GradeResult",
]
