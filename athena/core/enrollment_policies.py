"""
Admission policies evaluated, in order, before an enrollment is created.
"""

from dataclasses import dataclass
from typing import List, Optional

from .academics import Term, TermRules
from .entities import Course, Enrollment, Student
from .exceptions import (
    BusinessRejection, CourseFullError, CreditLimitExceededError, DuplicateEnrollmentError,
)
from .interfaces import EnrollmentPolicy


@dataclass
class AdmissionContext:
    """Snapshot read inside the admission transaction."""
    student: Student
    term: Term
    course: Optional[Course]
    existing: List[Enrollment]
    active_term_credits: int = 0


class DuplicateEnrollmentPolicy(EnrollmentPolicy):
    """At most one live enrollment per (student, course, term)."""

    requires_course = False

    def can_enroll(self, context: AdmissionContext) -> bool:
        return not context.existing

    def rejection(self, context: AdmissionContext) -> BusinessRejection:
        return DuplicateEnrollmentError(
            "Already enrolled in this course",
            details={'enrollment_id': context.existing[0].id},
        )

    def get_policy_name(self) -> str:
        return "DuplicateEnrollmentPolicy"


class CapacityPolicy(EnrollmentPolicy):
    """The course must have a free seat."""

    def can_enroll(self, context: AdmissionContext) -> bool:
        return not context.course.is_full

    def rejection(self, context: AdmissionContext) -> BusinessRejection:
        return CourseFullError(
            "Course is full",
            details={
                'capacity': context.course.capacity,
                'current_enrollment': context.course.current_enrollment,
            },
        )

    def get_policy_name(self) -> str:
        return "CapacityPolicy"


class CreditLimitPolicy(EnrollmentPolicy):
    """Active credits in the term plus the new course must not exceed the term cap."""

    def __init__(self, term_rules: TermRules):
        self._term_rules = term_rules

    def can_enroll(self, context: AdmissionContext) -> bool:
        cap = self._term_rules.credit_cap(context.term)
        return context.active_term_credits + context.course.credits <= cap

    def rejection(self, context: AdmissionContext) -> BusinessRejection:
        cap = self._term_rules.credit_cap(context.term)
        return CreditLimitExceededError(
            f"Credit limit exceeded. Maximum {cap} credits per {context.term.semester} term.",
            details={
                'current_credits': context.active_term_credits,
                'max_credits': cap,
                'course_credits': context.course.credits,
            },
        )

    def get_policy_name(self) -> str:
        return "CreditLimitPolicy"
