"""
Student, course and instructor records, plus portal-wide statistics.
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.academics import Term
from ..core.entities import Course, Instructor, Student
from ..core.enums import AuditAction, EnrollmentStatus, StudentStatus
from ..core.exceptions import BusinessRejection, ResourceNotFoundError, ValidationError
from ..core.interfaces import ActivityRecorder
from ..persistence.database import DatabaseManager
from ..persistence.repositories import (
    CourseRepository, EnrollmentRepository, InstructorRepository, StudentRepository,
)

logger = logging.getLogger(__name__)


def _require(value: Optional[str], name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")
    return str(value).strip()


def _require_email(email: Optional[str]) -> str:
    email = _require(email, "email")
    if "@" not in email:
        raise ValidationError("email is not valid", details={'email': email})
    return email


class DirectoryService:
    """Creates and looks up the records the enrollment and quiz services act on."""

    def __init__(self, database: DatabaseManager, student_repository: StudentRepository,
                 course_repository: CourseRepository, instructor_repository: InstructorRepository,
                 enrollment_repository: EnrollmentRepository, activity: ActivityRecorder,
                 default_passing_score: float = 60):
        self._database = database
        self._student_repository = student_repository
        self._course_repository = course_repository
        self._instructor_repository = instructor_repository
        self._enrollment_repository = enrollment_repository
        self._activity = activity
        self._default_passing_score = default_passing_score

    # Students

    def create_student(self, user_id: str, first_name: str, last_name: str, email: str,
                       major: Optional[str] = None, actor: Optional[Dict[str, Any]] = None) -> Student:
        student = Student(
            user_id=_require(user_id, "user_id"),
            first_name=_require(first_name, "first_name"),
            last_name=_require(last_name, "last_name"),
            email=_require_email(email),
            major=major,
        )
        with self._database.transaction():
            existing = self._student_repository.find_by_user_id(student.user_id)
            if existing is not None:
                raise BusinessRejection("A student record already exists for this user",
                                        details={'user_id': student.user_id, 'student_id': existing.id})
            self._student_repository.insert(student)
            self._activity.record(AuditAction.CREATE, "student", student.id,
                                  f"Created student {student.full_name}", actor=actor)

        logger.info("Created student %s (%s)", student.id, student.full_name)
        return student

    def get_student(self, student_id: str) -> Student:
        student = self._student_repository.find_by_id(student_id)
        if student is None:
            raise ResourceNotFoundError(f"Student {student_id} not found", details={'student_id': student_id})
        return student

    def find_student_by_user_id(self, user_id: str) -> Optional[Student]:
        return self._student_repository.find_by_user_id(user_id)

    def list_students(self, status: Optional[str] = None) -> List[Student]:
        if status:
            try:
                return self._student_repository.find_where(order_by="last_name", status=StudentStatus(status))
            except ValueError:
                raise ValidationError(f"Unknown student status: {status}")
        return self._student_repository.find_where(order_by="last_name")

    # Courses

    def create_course(self, code: str, name: str, credits: int, capacity: int, semester: str, year: int,
                      department: str = "", description: str = "",
                      actor: Optional[Dict[str, Any]] = None) -> Course:
        """Create a course offering; occupancy always starts at zero."""
        if not isinstance(credits, int) or credits < 1:
            raise ValidationError("credits must be a positive integer", details={'credits': credits})
        if not isinstance(capacity, int) or capacity < 1:
            raise ValidationError("capacity must be a positive integer", details={'capacity': capacity})
        term = Term(semester, year)
        term.validate()

        course = Course(code=_require(code, "code"), name=_require(name, "name"), credits=credits,
                        capacity=capacity, semester=term.semester, year=year,
                        department=department or "", description=description or "")
        with self._database.transaction():
            self._course_repository.insert(course)
            self._activity.record(AuditAction.CREATE, "course", course.id,
                                  f"Created course {course.code} for {term}", actor=actor)

        logger.info("Created course %s (%s, %d seats)", course.code, course.id, course.capacity)
        return course

    def get_course(self, course_id: str) -> Course:
        course = self._course_repository.find_by_id(course_id)
        if course is None:
            raise ResourceNotFoundError(f"Course {course_id} not found", details={'course_id': course_id})
        return course

    def list_courses(self) -> List[Course]:
        return self._course_repository.find_where(order_by="code")

    # Instructors

    def create_instructor(self, user_id: str, first_name: str, last_name: str, email: str,
                          department: str = "", actor: Optional[Dict[str, Any]] = None) -> Instructor:
        instructor = Instructor(
            user_id=_require(user_id, "user_id"),
            first_name=_require(first_name, "first_name"),
            last_name=_require(last_name, "last_name"),
            email=_require_email(email),
            department=department or "",
        )
        with self._database.transaction():
            if self._instructor_repository.find_by_user_id(instructor.user_id) is not None:
                raise BusinessRejection("An instructor record already exists for this user",
                                        details={'user_id': instructor.user_id})
            self._instructor_repository.insert(instructor)
            self._activity.record(AuditAction.CREATE, "instructor", instructor.id,
                                  f"Created instructor {instructor.first_name} {instructor.last_name}",
                                  actor=actor)
        return instructor

    def assign_instructor(self, course_id: str, instructor_id: str,
                          actor: Optional[Dict[str, Any]] = None) -> None:
        with self._database.transaction():
            course = self.get_course(course_id)
            if self._instructor_repository.find_by_id(instructor_id) is None:
                raise ResourceNotFoundError(f"Instructor {instructor_id} not found",
                                            details={'instructor_id': instructor_id})
            self._instructor_repository.assign_course(instructor_id, course_id)
            self._activity.record(AuditAction.UPDATE, "course", course_id,
                                  f"Assigned instructor {instructor_id} to {course.code}", actor=actor)

    def get_instructor(self, instructor_id: str) -> Instructor:
        instructor = self._instructor_repository.find_by_id(instructor_id)
        if instructor is None:
            raise ResourceNotFoundError(f"Instructor {instructor_id} not found",
                                        details={'instructor_id': instructor_id})
        return instructor

    def find_instructor_by_user_id(self, user_id: str) -> Optional[Instructor]:
        return self._instructor_repository.find_by_user_id(user_id)

    def list_instructor_courses(self, instructor_id: str) -> List[Course]:
        self.get_instructor(instructor_id)
        return [self.get_course(course_id) for course_id in self._instructor_repository.course_ids(instructor_id)]

    def list_instructor_students(self, instructor_id: str, course_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Students enrolled in the instructor's courses, optionally narrowed to one of them."""
        self.get_instructor(instructor_id)
        if course_id and not self._instructor_repository.teaches(instructor_id, course_id):
            raise ResourceNotFoundError(f"Instructor {instructor_id} is not assigned to course {course_id}",
                                        details={'instructor_id': instructor_id, 'course_id': course_id})
        return self._instructor_repository.students(instructor_id, course_id)

    def get_instructor_statistics(self, user_id: str) -> Dict[str, int]:
        """Teaching totals for the instructor linked to ``user_id``; all zero when there is none."""
        instructor = self._instructor_repository.find_by_user_id(user_id)
        if instructor is None:
            return {
                'instructor_courses': 0,
                'total_students_in_courses': 0,
                'active_quizzes': 0,
                'passed_students': 0,
                'failed_students': 0,
            }
        return self._instructor_repository.statistics(instructor.id, self._default_passing_score)

    # Statistics

    def get_statistics(self) -> Dict[str, Any]:
        """Portal-wide counts; average GPA is taken from the cached student aggregates."""
        average_gpa = self._student_repository.average_gpa()
        return {
            'active_students': self._student_repository.count(status=StudentStatus.ACTIVE),
            'total_courses': self._course_repository.count(),
            'active_enrollments': self._enrollment_repository.count(status=EnrollmentStatus.ACTIVE,
                                                                    deleted_at=None),
            'average_gpa': round(average_gpa, 2) if average_gpa is not None else 0,
        }
