"""
Enrollment lifecycle: status transitions, grade assignment and soft deletion.
"""

import logging
from typing import Any, Dict, FrozenSet, Optional, Union

from ..core.academics import validate_grade
from ..core.entities import Enrollment, utcnow
from ..core.enums import AuditAction, EnrollmentStatus
from ..core.exceptions import InvalidTransitionError, ResourceNotFoundError, ValidationError
from ..core.interfaces import ActivityRecorder
from ..persistence.database import DatabaseManager
from ..persistence.repositories import CourseRepository, EnrollmentRepository
from .academic_service import AcademicSummaryService
from .concurrency_manager import ConcurrencyManager

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[EnrollmentStatus, FrozenSet[EnrollmentStatus]] = {
    EnrollmentStatus.ACTIVE: frozenset({
        EnrollmentStatus.COMPLETED,
        EnrollmentStatus.DROPPED,
        EnrollmentStatus.WITHDRAWN,
    }),
}

SEAT_RELEASING = frozenset({EnrollmentStatus.DROPPED, EnrollmentStatus.WITHDRAWN})


class EnrollmentLifecycleService:
    """Moves enrollments through their states and keeps course occupancy in step."""

    def __init__(self, database: DatabaseManager, enrollment_repository: EnrollmentRepository,
                 course_repository: CourseRepository, concurrency_manager: ConcurrencyManager,
                 activity: ActivityRecorder, summary_service: Optional[AcademicSummaryService] = None):
        self._database = database
        self._enrollment_repository = enrollment_repository
        self._course_repository = course_repository
        self._concurrency_manager = concurrency_manager
        self._activity = activity
        self._summary_service = summary_service

    @staticmethod
    def _coerce_status(status: Union[str, EnrollmentStatus]) -> EnrollmentStatus:
        if isinstance(status, EnrollmentStatus):
            return status
        try:
            return EnrollmentStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown enrollment status: {status}",
                                  details={'allowed': [s.value for s in EnrollmentStatus]})

    def _load_live(self, enrollment_id: str) -> Enrollment:
        enrollment = self._enrollment_repository.find_by_id(enrollment_id)
        if enrollment is None or enrollment.is_deleted:
            raise ResourceNotFoundError(f"Enrollment {enrollment_id} not found",
                                        details={'enrollment_id': enrollment_id})
        return enrollment

    def _release_seat(self, course_id: str) -> None:
        self._course_repository.atomic_increment(course_id, "current_enrollment", -1, floor=0)

    def _refresh_aggregates(self, student_id: str) -> None:
        if self._summary_service is not None:
            self._summary_service.compute_academic_summary(student_id)

    def set_enrollment_status(self, enrollment_id: str, new_status: Union[str, EnrollmentStatus, None],
                              grade: Optional[str] = None,
                              actor: Optional[Dict[str, Any]] = None) -> Enrollment:
        """Apply a status change and/or grade to a live enrollment.

        Only Active may move to Completed, Dropped or Withdrawn. Requesting
        the current status, or passing None, leaves it unchanged but still
        stores a supplied grade. Completing requires a grade, supplied or
        already present.
        """
        if new_status is not None:
            new_status = self._coerce_status(new_status)
        validate_grade(grade)

        course_id = self._load_live(enrollment_id).course_id
        with self._concurrency_manager.lock(ConcurrencyManager.course_key(course_id)):
            with self._database.transaction():
                enrollment = self._load_live(enrollment_id)
                previous = enrollment.status
                if new_status is None:
                    new_status = previous
                fields: Dict[str, Any] = {}

                if previous != new_status:
                    if new_status not in ALLOWED_TRANSITIONS.get(previous, frozenset()):
                        raise InvalidTransitionError(
                            f"Cannot change enrollment from {previous.value} to {new_status.value}",
                            details={'current_status': previous.value, 'requested_status': new_status.value},
                        )
                    if new_status == EnrollmentStatus.COMPLETED and grade is None and enrollment.grade is None:
                        raise ValidationError("A grade is required to complete an enrollment")
                    fields['status'] = new_status
                    if new_status in SEAT_RELEASING:
                        self._release_seat(enrollment.course_id)

                if grade is not None:
                    fields['grade'] = grade

                if fields:
                    self._enrollment_repository.update_fields(enrollment.id, **fields)
                    enrollment.status = fields.get('status', enrollment.status)
                    enrollment.grade = fields.get('grade', enrollment.grade)
                    enrollment.touch()
                    self._activity.record(
                        AuditAction.UPDATE, "enrollment", enrollment.id,
                        f"Enrollment {previous.value} -> {enrollment.status.value}, grade {enrollment.grade}",
                        actor=actor,
                    )
                    self._refresh_aggregates(enrollment.student_id)

        logger.info("Enrollment %s: %s -> %s (grade %s)",
                    enrollment_id, previous.value, enrollment.status.value, enrollment.grade)
        return enrollment

    def delete_enrollment(self, enrollment_id: str, actor: Optional[Dict[str, Any]] = None) -> Enrollment:
        """Soft-delete an enrollment, withdrawing it first if it still holds a seat."""
        course_id = self._load_live(enrollment_id).course_id
        with self._concurrency_manager.lock(ConcurrencyManager.course_key(course_id)):
            with self._database.transaction():
                enrollment = self._load_live(enrollment_id)
                fields: Dict[str, Any] = {'deleted_at': utcnow()}
                if enrollment.is_active:
                    fields['status'] = EnrollmentStatus.WITHDRAWN
                    self._release_seat(enrollment.course_id)

                self._enrollment_repository.update_fields(enrollment.id, **fields)
                enrollment.status = fields.get('status', enrollment.status)
                enrollment.deleted_at = fields['deleted_at']
                enrollment.touch()
                self._activity.record(AuditAction.DELETE, "enrollment", enrollment.id,
                                      "Enrollment removed; grade history retained", actor=actor)
                self._refresh_aggregates(enrollment.student_id)

        logger.warning("Enrollment %s deleted (status %s, grade %s kept for GPA history)",
                       enrollment_id, enrollment.status.value, enrollment.grade)
        return enrollment
