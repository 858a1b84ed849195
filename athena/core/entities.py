"""
Core entities for the Athena portal.
"""

import uuid
from abc import ABC
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .enums import EnrollmentStatus, StudentStatus, AuditAction
from .academics import Term, normalize_answer


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AbstractEntity(ABC):
    """Base abstract entity with universal ID, timestamps, and versioning."""

    def __init__(self, entity_id: Optional[str] = None, created_at: Optional[datetime] = None,
                 updated_at: Optional[datetime] = None, version: int = 1):
        self.id = entity_id or str(uuid.uuid4())
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or self.created_at
        self.version = version

    def touch(self) -> None:
        """Mark the entity as modified."""
        self.updated_at = utcnow()
        self.version += 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert entity to dictionary."""
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
            'version': self.version,
        }

    def __eq__(self, other) -> bool:
        return type(self) is type(other) and self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id})"


class Student(AbstractEntity):
    """Student record linked to a user identity; aggregates are derived."""

    def __init__(self, user_id: str, first_name: str, last_name: str, email: str,
                 major: Optional[str] = None, status: StudentStatus = StudentStatus.ACTIVE,
                 gpa: Optional[float] = None, completed_credits: int = 0,
                 total_graded_credits: int = 0, **kwargs):
        super().__init__(**kwargs)
        self.user_id = user_id
        self.first_name = first_name
        self.last_name = last_name
        self.email = email
        self.major = major
        self.status = status
        self.gpa = gpa
        self.completed_credits = completed_credits
        self.total_graded_credits = total_graded_credits

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'user_id': self.user_id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'email': self.email,
            'major': self.major,
            'status': self.status.value,
            'gpa': self.gpa,
            'completed_credits': self.completed_credits,
            'total_graded_credits': self.total_graded_credits,
        })
        return base_dict


class Instructor(AbstractEntity):
    """Instructor directory entry."""

    def __init__(self, user_id: str, first_name: str, last_name: str, email: str,
                 department: str = "", **kwargs):
        super().__init__(**kwargs)
        self.user_id = user_id
        self.first_name = first_name
        self.last_name = last_name
        self.email = email
        self.department = department

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'user_id': self.user_id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'email': self.email,
            'department': self.department,
        })
        return base_dict


class Course(AbstractEntity):
    """Course offering for one term. Occupancy is owned by the enrollment services."""

    def __init__(self, code: str, name: str, credits: int, capacity: int, semester: str, year: int,
                 department: str = "", description: str = "", current_enrollment: int = 0, **kwargs):
        super().__init__(**kwargs)
        self.code = code
        self.name = name
        self.credits = credits
        self.capacity = capacity
        self.semester = semester
        self.year = year
        self.department = department
        self.description = description
        self.current_enrollment = current_enrollment

    @property
    def term(self) -> Term:
        return Term(self.semester, self.year)

    @property
    def is_full(self) -> bool:
        return self.current_enrollment >= self.capacity

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'code': self.code,
            'name': self.name,
            'credits': self.credits,
            'capacity': self.capacity,
            'current_enrollment': self.current_enrollment,
            'semester': self.semester,
            'year': self.year,
            'department': self.department,
            'description': self.description,
        })
        return base_dict


class Enrollment(AbstractEntity):
    """A student's seat in a course for one term."""

    def __init__(self, student_id: str, course_id: str, semester: str, year: int,
                 status: EnrollmentStatus = EnrollmentStatus.ACTIVE, grade: Optional[str] = None,
                 enrolled_at: Optional[datetime] = None, deleted_at: Optional[datetime] = None, **kwargs):
        super().__init__(**kwargs)
        self.student_id = student_id
        self.course_id = course_id
        self.semester = semester
        self.year = year
        self.status = status
        self.grade = grade
        self.enrolled_at = enrolled_at or self.created_at
        self.deleted_at = deleted_at

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'student_id': self.student_id,
            'course_id': self.course_id,
            'semester': self.semester,
            'year': self.year,
            'status': self.status.value,
            'grade': self.grade,
            'enrolled_at': self.enrolled_at.isoformat(),
            'deleted_at': self.deleted_at.isoformat() if self.deleted_at else None,
        })
        return base_dict


class Quiz(AbstractEntity):
    """Quiz attached to a course. Scores are percentages."""

    def __init__(self, course_id: str, title: str, description: Optional[str] = None,
                 due_date: Optional[str] = None, total_points: int = 100,
                 passing_score: Optional[float] = None, **kwargs):
        super().__init__(**kwargs)
        self.course_id = course_id
        self.title = title
        self.description = description
        self.due_date = due_date
        self.total_points = total_points
        self.passing_score = passing_score

    def passing_threshold(self, default: float) -> float:
        return self.passing_score if self.passing_score is not None else default

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'course_id': self.course_id,
            'title': self.title,
            'description': self.description,
            'due_date': self.due_date,
            'total_points': self.total_points,
            'passing_score': self.passing_score,
        })
        return base_dict


class QuizQuestion(AbstractEntity):
    def __init__(self, quiz_id: str, question_text: str, correct_answer: str, points: int = 10, **kwargs):
        super().__init__(**kwargs)
        self.quiz_id = quiz_id
        self.question_text = question_text
        self.correct_answer = correct_answer
        self.points = points

    def is_correct(self, answer: Optional[str]) -> bool:
        if answer is None:
            return False
        return normalize_answer(answer) == normalize_answer(self.correct_answer)

    def to_dict(self, include_answer: bool = True) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'quiz_id': self.quiz_id,
            'question_text': self.question_text,
            'points': self.points,
        })
        if include_answer:
            base_dict['correct_answer'] = self.correct_answer
        return base_dict


class QuizSubmission(AbstractEntity):
    """One row per (quiz, student); a resubmission overwrites it in place."""

    def __init__(self, quiz_id: str, student_id: str, score: Optional[float] = None,
                 submitted_at: Optional[datetime] = None, graded_at: Optional[datetime] = None, **kwargs):
        super().__init__(**kwargs)
        self.quiz_id = quiz_id
        self.student_id = student_id
        self.score = score
        self.submitted_at = submitted_at or self.created_at
        self.graded_at = graded_at

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'quiz_id': self.quiz_id,
            'student_id': self.student_id,
            'score': self.score,
            'submitted_at': self.submitted_at.isoformat(),
            'graded_at': self.graded_at.isoformat() if self.graded_at else None,
        })
        return base_dict


class QuizAnswer(AbstractEntity):
    def __init__(self, quiz_id: str, student_id: str, question_id: str, answer: str,
                 is_correct: Optional[bool] = None, **kwargs):
        super().__init__(**kwargs)
        self.quiz_id = quiz_id
        self.student_id = student_id
        self.question_id = question_id
        self.answer = answer
        self.is_correct = is_correct

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'quiz_id': self.quiz_id,
            'student_id': self.student_id,
            'question_id': self.question_id,
            'answer': self.answer,
            'is_correct': self.is_correct,
        })
        return base_dict


class ActivityLogEntry(AbstractEntity):
    """Record of a mutation performed through the portal."""

    def __init__(self, action: AuditAction, entity_type: str, target_id: str, description: str = "",
                 actor_id: Optional[str] = None, actor_role: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.action = action
        self.entity_type = entity_type
        self.target_id = target_id
        self.description = description
        self.actor_id = actor_id
        self.actor_role = actor_role

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'action': self.action.value,
            'entity_type': self.entity_type,
            'target_id': self.target_id,
            'description': self.description,
            'actor_id': self.actor_id,
            'actor_role': self.actor_role,
        })
        return base_dict
