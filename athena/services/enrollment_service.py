"""
Enrollment admission: policy evaluation and seat allocation in one transaction.
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.academics import Term, TermRules
from ..core.entities import Enrollment
from ..core.enrollment_policies import (
    AdmissionContext, CapacityPolicy, CreditLimitPolicy, DuplicateEnrollmentPolicy,
)
from ..core.enums import AuditAction, EnrollmentStatus
from ..core.exceptions import CourseFullError, ResourceNotFoundError, ValidationError
from ..core.interfaces import ActivityRecorder, EnrollmentPolicy
from ..persistence.database import DatabaseManager
from ..persistence.repositories import CourseRepository, EnrollmentRepository, StudentRepository
from .concurrency_manager import ConcurrencyManager

logger = logging.getLogger(__name__)


class EnrollmentService:
    """Service deciding and recording enrollment requests."""

    def __init__(self, database: DatabaseManager, student_repository: StudentRepository,
                 course_repository: CourseRepository, enrollment_repository: EnrollmentRepository,
                 concurrency_manager: ConcurrencyManager, activity: ActivityRecorder,
                 term_rules: Optional[TermRules] = None):
        self._database = database
        self._student_repository = student_repository
        self._course_repository = course_repository
        self._enrollment_repository = enrollment_repository
        self._concurrency_manager = concurrency_manager
        self._activity = activity
        self._term_rules = term_rules or TermRules()
        self._policies: List[EnrollmentPolicy] = [
            DuplicateEnrollmentPolicy(),
            CapacityPolicy(),
            CreditLimitPolicy(self._term_rules),
        ]

    def request_enrollment(self, student_id: str, course_id: str, term: Term,
                           actor: Optional[Dict[str, Any]] = None) -> Enrollment:
        """Admit the student to the course for the term, or raise the first rejection.

        The checks and the writes share one write transaction, so the
        occupancy and credit totals read here cannot change before the
        enrollment is stored.
        """
        if not student_id:
            raise ValidationError("student_id is required")
        if not course_id:
            raise ValidationError("course_id is required")
        term.validate()

        with self._concurrency_manager.lock(ConcurrencyManager.course_key(course_id)):
            with self._database.transaction():
                student = self._student_repository.find_by_id(student_id)
                if student is None:
                    raise ResourceNotFoundError(f"Student {student_id} not found",
                                                details={'student_id': student_id})

                context = AdmissionContext(
                    student=student,
                    term=term,
                    course=self._course_repository.find_by_id(course_id),
                    existing=self._enrollment_repository.find_live(student_id, course_id, term),
                    active_term_credits=self._enrollment_repository.active_credits(student_id, term),
                )
                self._evaluate_policies(context, course_id)

                enrollment = Enrollment(student_id=student_id, course_id=course_id,
                                        semester=term.semester, year=term.year)
                self._enrollment_repository.insert(enrollment)
                if not self._course_repository.atomic_increment(
                        course_id, "current_enrollment", 1, ceiling_field="capacity"):
                    raise CourseFullError("Course is full", details={
                        'capacity': context.course.capacity,
                        'current_enrollment': context.course.capacity,
                    })

                self._activity.record(
                    AuditAction.ENROLL, "enrollment", enrollment.id,
                    f"Enrolled {student.full_name} in {context.course.code} for {term}",
                    actor=actor,
                )

        logger.info("Admitted student %s to course %s for %s (enrollment %s)",
                    student_id, course_id, term, enrollment.id)
        return enrollment

    def _evaluate_policies(self, context: AdmissionContext, course_id: str) -> None:
        """Evaluate admission policies in order; the first failure is raised."""
        course_checked = False
        for policy in self._policies:
            if policy.requires_course and not course_checked:
                self._check_course(context, course_id)
                course_checked = True
            if not policy.can_enroll(context):
                rejection = policy.rejection(context)
                logger.warning("Enrollment of student %s in course %s rejected by %s: %s",
                               context.student.id, course_id, policy.get_policy_name(), rejection.message)
                raise rejection

    @staticmethod
    def _check_course(context: AdmissionContext, course_id: str) -> None:
        """The course must exist and be offered in the requested term."""
        if context.course is None:
            raise ResourceNotFoundError(f"Course {course_id} not found", details={'course_id': course_id})
        if context.course.term != context.term:
            raise ValidationError(
                f"Course {context.course.code} is offered in {context.course.term}, not {context.term}",
                details={'course_term': str(context.course.term), 'requested_term': str(context.term)},
            )

    def list_enrollments(self, student_id: Optional[str] = None, course_id: Optional[str] = None,
                         status: Optional[str] = None) -> List[Dict[str, Any]]:
        """Live enrollments, newest first, optionally filtered."""
        if status and status != "All":
            try:
                EnrollmentStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown enrollment status: {status}",
                                      details={'allowed': [s.value for s in EnrollmentStatus]})
        return self._enrollment_repository.search(student_id=student_id, course_id=course_id, status=status)

    def get_enrollment(self, enrollment_id: str) -> Enrollment:
        enrollment = self._enrollment_repository.find_by_id(enrollment_id)
        if enrollment is None or enrollment.is_deleted:
            raise ResourceNotFoundError(f"Enrollment {enrollment_id} not found",
                                        details={'enrollment_id': enrollment_id})
        return enrollment

    def get_course_roster(self, course_id: str) -> List[Dict[str, Any]]:
        if self._course_repository.find_by_id(course_id) is None:
            raise ResourceNotFoundError(f"Course {course_id} not found", details={'course_id': course_id})
        return self._enrollment_repository.roster(course_id)
