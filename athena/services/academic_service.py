"""
Academic aggregates: GPA and credit totals derived from enrollment history.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..core.academics import compute_gpa
from ..core.enums import EnrollmentStatus
from ..core.exceptions import ResourceNotFoundError
from ..persistence.database import DatabaseManager
from ..persistence.repositories import EnrollmentRepository, StudentRepository

logger = logging.getLogger(__name__)


@dataclass
class AcademicSummary:
    """Derived academic standing of one student."""
    gpa: Optional[float]
    completed_credits: int
    total_graded_credits: int
    enrollments: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'gpa': self.gpa,
            'completed_credits': self.completed_credits,
            'total_credits': self.total_graded_credits,
            'enrollments': self.enrollments,
        }


class AcademicSummaryService:
    """Recomputes a student's aggregates from scratch on every call.

    Soft-deleted enrollments still count toward GPA and completed credits
    but are left out of the returned enrollment list. The result is written
    back to the student row as a cached snapshot.
    """

    def __init__(self, database: DatabaseManager, student_repository: StudentRepository,
                 enrollment_repository: EnrollmentRepository):
        self._database = database
        self._student_repository = student_repository
        self._enrollment_repository = enrollment_repository

    def compute_academic_summary(self, student_id: str) -> AcademicSummary:
        with self._database.transaction():
            if self._student_repository.find_by_id(student_id) is None:
                raise ResourceNotFoundError(f"Student {student_id} not found", details={'student_id': student_id})

            history = self._enrollment_repository.history_with_courses(student_id)
            gpa, graded_credits = compute_gpa(
                (row["grade"], row["credits"]) for row in history if row["grade"]
            )
            completed_credits = sum(
                row["credits"] for row in history if row["status"] == EnrollmentStatus.COMPLETED.value
            )
            self._student_repository.update_fields(
                student_id,
                gpa=gpa,
                completed_credits=completed_credits,
                total_graded_credits=graded_credits,
            )

        logger.debug("Recomputed aggregates for student %s: gpa=%s completed=%d",
                     student_id, gpa, completed_credits)
        return AcademicSummary(
            gpa=gpa,
            completed_credits=completed_credits,
            total_graded_credits=graded_credits,
            enrollments=[self._enrollment_view(row) for row in history if row["deleted_at"] is None],
        )

    @staticmethod
    def _enrollment_view(row: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'id': row["id"],
            'course_id': row["course_id"],
            'course_code': row["course_code"],
            'course_name': row["course_name"],
            'credits': row["credits"],
            'semester': row["semester"],
            'year': row["year"],
            'status': row["status"],
            'grade': row["grade"],
        }
