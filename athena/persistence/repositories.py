"""
Repository pattern implementations for data access.
"""

from abc import abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, TypeVar, Generic

from ..core.academics import Term
from ..core.entities import (
    AbstractEntity, Student, Instructor, Course, Enrollment, Quiz, QuizQuestion,
    QuizSubmission, QuizAnswer, ActivityLogEntry,
)
from ..core.enums import EnrollmentStatus, StudentStatus, AuditAction
from ..core.exceptions import PersistenceError
from ..core.interfaces import Repository
from .database import DatabaseManager

T = TypeVar('T', bound=AbstractEntity)

_BASE_COLUMNS = ("id", "created_at", "updated_at", "version")


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    return value


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _base_kwargs(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'entity_id': row["id"],
        'created_at': _parse_datetime(row["created_at"]),
        'updated_at': _parse_datetime(row["updated_at"]),
        'version': row["version"],
    }


class BaseRepository(Repository[T], Generic[T]):
    """Base repository implementation with common functionality."""

    table: str = ""
    columns: Tuple[str, ...] = ()

    def __init__(self, database: DatabaseManager):
        self._database = database

    @property
    def all_columns(self) -> Tuple[str, ...]:
        return _BASE_COLUMNS + self.columns

    def _check_columns(self, names) -> None:
        unknown = set(names) - set(self.all_columns)
        if unknown:
            raise PersistenceError(f"Unknown {self.table} column(s): {', '.join(sorted(unknown))}")

    def _entity_to_row(self, entity: T) -> Dict[str, Any]:
        return {column: _serialize(getattr(entity, column)) for column in self.all_columns}

    @abstractmethod
    def _entity_from_row(self, row: Dict[str, Any]) -> T:
        """Convert a row to an entity instance."""
        pass

    def insert(self, entity: T) -> T:
        """Insert a new entity."""
        row = self._entity_to_row(entity)
        placeholders = ", ".join("?" for _ in row)
        query = f"INSERT INTO {self.table} ({', '.join(row)}) VALUES ({placeholders})"
        self._database.execute_update(query, tuple(row.values()))
        return entity

    def find_by_id(self, entity_id: str) -> Optional[T]:
        """Find entity by ID."""
        results = self._database.execute_query(f"SELECT * FROM {self.table} WHERE id = ?", (entity_id,))
        return self._entity_from_row(results[0]) if results else None

    def _where(self, filters: Dict[str, Any]) -> Tuple[str, List[Any]]:
        self._check_columns(filters)
        clauses, params = [], []
        for key, value in filters.items():
            if value is None:
                clauses.append(f"{key} IS NULL")
            else:
                clauses.append(f"{key} = ?")
                params.append(_serialize(value))
        return (" WHERE " + " AND ".join(clauses)) if clauses else "", params

    def find_where(self, order_by: Optional[str] = None, **filters: Any) -> List[T]:
        """Find all entities whose columns equal the given filters (None matches NULL)."""
        where, params = self._where(filters)
        order_column = order_by or "created_at"
        self._check_columns([order_column])
        query = f"SELECT * FROM {self.table}{where} ORDER BY {order_column}, id"
        return [self._entity_from_row(row) for row in self._database.execute_query(query, tuple(params))]

    def count(self, **filters: Any) -> int:
        """Count entities matching filters."""
        where, params = self._where(filters)
        results = self._database.execute_query(f"SELECT COUNT(*) AS count FROM {self.table}{where}", tuple(params))
        return results[0]["count"] if results else 0

    def update_fields(self, entity_id: str, **fields: Any) -> bool:
        """Update selected columns and bump the row version."""
        if not fields:
            return False
        self._check_columns(fields)
        assignments = ", ".join(f"{key} = ?" for key in fields)
        query = f"UPDATE {self.table} SET {assignments}, updated_at = ?, version = version + 1 WHERE id = ?"
        params = tuple(_serialize(v) for v in fields.values()) + (
            datetime.now(timezone.utc).isoformat(), entity_id)
        return self._database.execute_update(query, params) > 0

    def atomic_increment(self, entity_id: str, field: str, delta: int, floor: int = 0,
                         ceiling_field: Optional[str] = None) -> bool:
        """Add delta to a numeric column in a single conditional statement.

        Increments are refused (False, row untouched) when they would pass
        ``ceiling_field``. Decrements are clamped at ``floor``. Returns False
        when the row does not exist.
        """
        self._check_columns([field] + ([ceiling_field] if ceiling_field else []))
        now = datetime.now(timezone.utc).isoformat()
        if delta >= 0:
            query = (f"UPDATE {self.table} SET {field} = {field} + ?, updated_at = ?, version = version + 1 "
                     f"WHERE id = ? AND {field} + ? >= ?")
            params = [delta, now, entity_id, delta, floor]
            if ceiling_field:
                query += f" AND {field} + ? <= {ceiling_field}"
                params.append(delta)
        else:
            query = (f"UPDATE {self.table} SET {field} = MAX({field} + ?, ?), updated_at = ?, "
                     f"version = version + 1 WHERE id = ?")
            params = [delta, floor, now, entity_id]
        return self._database.execute_update(query, tuple(params)) > 0


class StudentRepository(BaseRepository[Student]):
    """Repository for Student entities."""

    table = "students"
    columns = ("user_id", "first_name", "last_name", "email", "major", "status",
               "gpa", "completed_credits", "total_graded_credits")

    def _entity_from_row(self, row: Dict[str, Any]) -> Student:
        return Student(
            user_id=row["user_id"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            email=row["email"],
            major=row["major"],
            status=StudentStatus(row["status"]),
            gpa=row["gpa"],
            completed_credits=row["completed_credits"],
            total_graded_credits=row["total_graded_credits"],
            **_base_kwargs(row)
        )

    def find_by_user_id(self, user_id: str) -> Optional[Student]:
        """Find student by linked user identity."""
        students = self.find_where(user_id=user_id)
        return students[0] if students else None

    def average_gpa(self) -> Optional[float]:
        results = self._database.execute_query("SELECT AVG(gpa) AS avg_gpa FROM students WHERE gpa IS NOT NULL")
        return results[0]["avg_gpa"] if results else None


class InstructorRepository(BaseRepository[Instructor]):
    """Repository for Instructor entities and their course assignments."""

    table = "instructors"
    columns = ("user_id", "first_name", "last_name", "email", "department")

    def _entity_from_row(self, row: Dict[str, Any]) -> Instructor:
        return Instructor(
            user_id=row["user_id"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            email=row["email"],
            department=row["department"],
            **_base_kwargs(row)
        )

    def find_by_user_id(self, user_id: str) -> Optional[Instructor]:
        instructors = self.find_where(user_id=user_id)
        return instructors[0] if instructors else None

    def assign_course(self, instructor_id: str, course_id: str) -> None:
        self._database.execute_update(
            "INSERT OR IGNORE INTO course_instructors (course_id, instructor_id) VALUES (?, ?)",
            (course_id, instructor_id),
        )

    def teaches(self, instructor_id: str, course_id: str) -> bool:
        results = self._database.execute_query(
            "SELECT 1 FROM course_instructors WHERE course_id = ? AND instructor_id = ?",
            (course_id, instructor_id),
        )
        return bool(results)

    def course_ids(self, instructor_id: str) -> List[str]:
        results = self._database.execute_query(
            "SELECT course_id FROM course_instructors WHERE instructor_id = ? ORDER BY course_id",
            (instructor_id,),
        )
        return [row["course_id"] for row in results]

    def students(self, instructor_id: str, course_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Live enrollments in the instructor's courses, with student and course names."""
        query = """
            SELECT s.id AS student_id, s.first_name, s.last_name, s.email, s.major, s.gpa,
                   c.id AS course_id, c.code AS course_code, c.name AS course_name,
                   e.grade, e.status AS enrollment_status
            FROM course_instructors ci
            JOIN courses c ON ci.course_id = c.id
            JOIN enrollments e ON e.course_id = c.id
            JOIN students s ON e.student_id = s.id
            WHERE ci.instructor_id = ? AND e.deleted_at IS NULL
        """
        params: List[Any] = [instructor_id]
        if course_id:
            query += " AND c.id = ?"
            params.append(course_id)
        query += " ORDER BY c.code, s.last_name, s.first_name"
        return self._database.execute_query(query, tuple(params))

    def statistics(self, instructor_id: str, default_passing_score: float) -> Dict[str, int]:
        """Course, student and quiz counts plus graded pass/fail totals for one instructor."""
        results = self._database.execute_query(
            """
            SELECT
                (SELECT COUNT(*) FROM course_instructors ci WHERE ci.instructor_id = ?)
                    AS instructor_courses,
                (SELECT COUNT(DISTINCT e.student_id) FROM enrollments e
                   JOIN course_instructors ci ON e.course_id = ci.course_id
                  WHERE ci.instructor_id = ? AND e.status = ? AND e.deleted_at IS NULL)
                    AS total_students_in_courses,
                (SELECT COUNT(*) FROM quizzes q
                   JOIN course_instructors ci ON q.course_id = ci.course_id
                  WHERE ci.instructor_id = ?)
                    AS active_quizzes,
                (SELECT COUNT(*) FROM quiz_submissions qs
                   JOIN quizzes q ON qs.quiz_id = q.id
                   JOIN course_instructors ci ON q.course_id = ci.course_id
                  WHERE ci.instructor_id = ? AND qs.score IS NOT NULL
                    AND qs.score >= COALESCE(q.passing_score, ?))
                    AS passed_students,
                (SELECT COUNT(*) FROM quiz_submissions qs
                   JOIN quizzes q ON qs.quiz_id = q.id
                   JOIN course_instructors ci ON q.course_id = ci.course_id
                  WHERE ci.instructor_id = ? AND qs.score IS NOT NULL
                    AND qs.score < COALESCE(q.passing_score, ?))
                    AS failed_students
            """,
            (instructor_id, instructor_id, EnrollmentStatus.ACTIVE.value, instructor_id,
             instructor_id, default_passing_score, instructor_id, default_passing_score),
        )
        return dict(results[0])


class CourseRepository(BaseRepository[Course]):
    """Repository for Course entities."""

    table = "courses"
    columns = ("code", "name", "department", "description", "credits", "capacity",
               "current_enrollment", "semester", "year")

    def _entity_from_row(self, row: Dict[str, Any]) -> Course:
        return Course(
            code=row["code"],
            name=row["name"],
            credits=row["credits"],
            capacity=row["capacity"],
            semester=row["semester"],
            year=row["year"],
            department=row["department"],
            description=row["description"],
            current_enrollment=row["current_enrollment"],
            **_base_kwargs(row)
        )


class EnrollmentRepository(BaseRepository[Enrollment]):
    """Repository for Enrollment entities."""

    table = "enrollments"
    columns = ("student_id", "course_id", "semester", "year", "status", "grade",
               "enrolled_at", "deleted_at")

    def _entity_from_row(self, row: Dict[str, Any]) -> Enrollment:
        return Enrollment(
            student_id=row["student_id"],
            course_id=row["course_id"],
            semester=row["semester"],
            year=row["year"],
            status=EnrollmentStatus(row["status"]),
            grade=row["grade"],
            enrolled_at=_parse_datetime(row["enrolled_at"]),
            deleted_at=_parse_datetime(row["deleted_at"]),
            **_base_kwargs(row)
        )

    def find_live(self, student_id: str, course_id: str, term: Term) -> List[Enrollment]:
        """Non-deleted enrollments for one (student, course, term)."""
        return self.find_where(student_id=student_id, course_id=course_id,
                               semester=term.semester, year=term.year, deleted_at=None)

    def active_credits(self, student_id: str, term: Term) -> int:
        """Sum of course credits over the student's live Active enrollments in a term."""
        results = self._database.execute_query(
            """
            SELECT COALESCE(SUM(c.credits), 0) AS total_credits
            FROM enrollments e
            JOIN courses c ON e.course_id = c.id
            WHERE e.student_id = ? AND e.semester = ? AND e.year = ?
              AND e.status = ? AND e.deleted_at IS NULL
            """,
            (student_id, term.semester, term.year, EnrollmentStatus.ACTIVE.value),
        )
        return results[0]["total_credits"]

    def history_with_courses(self, student_id: str) -> List[Dict[str, Any]]:
        """Every enrollment of a student, deleted ones included, joined with its course."""
        return self._database.execute_query(
            """
            SELECT e.*, c.code AS course_code, c.name AS course_name, c.credits AS credits
            FROM enrollments e
            JOIN courses c ON e.course_id = c.id
            WHERE e.student_id = ?
            ORDER BY e.year, e.semester, c.code
            """,
            (student_id,),
        )

    def search(self, student_id: Optional[str] = None, course_id: Optional[str] = None,
               status: Optional[str] = None) -> List[Dict[str, Any]]:
        """Live enrollments joined with student and course names."""
        query = """
            SELECT e.*, s.first_name, s.last_name,
                   c.code AS course_code, c.name AS course_name, c.credits AS course_credits
            FROM enrollments e
            JOIN students s ON e.student_id = s.id
            JOIN courses c ON e.course_id = c.id
            WHERE e.deleted_at IS NULL
        """
        params: List[Any] = []
        if student_id:
            query += " AND e.student_id = ?"
            params.append(student_id)
        if course_id:
            query += " AND e.course_id = ?"
            params.append(course_id)
        if status and status != "All":
            query += " AND e.status = ?"
            params.append(status)
        query += " ORDER BY e.enrolled_at DESC"
        return self._database.execute_query(query, tuple(params))

    def roster(self, course_id: str) -> List[Dict[str, Any]]:
        return self._database.execute_query(
            """
            SELECT e.id AS enrollment_id, e.status AS enrollment_status, e.grade,
                   s.id AS student_id, s.first_name, s.last_name, s.email, s.major, s.gpa
            FROM enrollments e
            JOIN students s ON e.student_id = s.id
            WHERE e.course_id = ? AND e.deleted_at IS NULL
            ORDER BY s.last_name, s.first_name
            """,
            (course_id,),
        )


class QuizRepository(BaseRepository[Quiz]):
    """Repository for Quiz entities."""

    table = "quizzes"
    columns = ("course_id", "title", "description", "due_date", "total_points", "passing_score")

    def _entity_from_row(self, row: Dict[str, Any]) -> Quiz:
        return Quiz(
            course_id=row["course_id"],
            title=row["title"],
            description=row["description"],
            due_date=row["due_date"],
            total_points=row["total_points"],
            passing_score=row["passing_score"],
            **_base_kwargs(row)
        )


class QuizQuestionRepository(BaseRepository[QuizQuestion]):
    table = "quiz_questions"
    columns = ("quiz_id", "question_text", "correct_answer", "points")

    def _entity_from_row(self, row: Dict[str, Any]) -> QuizQuestion:
        return QuizQuestion(
            quiz_id=row["quiz_id"],
            question_text=row["question_text"],
            correct_answer=row["correct_answer"],
            points=row["points"],
            **_base_kwargs(row)
        )


class QuizSubmissionRepository(BaseRepository[QuizSubmission]):
    """Repository for QuizSubmission entities."""

    table = "quiz_submissions"
    columns = ("quiz_id", "student_id", "score", "submitted_at", "graded_at")

    def _entity_from_row(self, row: Dict[str, Any]) -> QuizSubmission:
        return QuizSubmission(
            quiz_id=row["quiz_id"],
            student_id=row["student_id"],
            score=row["score"],
            submitted_at=_parse_datetime(row["submitted_at"]),
            graded_at=_parse_datetime(row["graded_at"]),
            **_base_kwargs(row)
        )

    def find_for(self, quiz_id: str, student_id: str) -> Optional[QuizSubmission]:
        submissions = self.find_where(quiz_id=quiz_id, student_id=student_id)
        return submissions[0] if submissions else None

    def list_for_quiz(self, quiz_id: str) -> List[Dict[str, Any]]:
        """Submissions for a quiz with answer and correctness counts."""
        return self._database.execute_query(
            """
            SELECT qs.id AS submission_id, qs.student_id, qs.score, qs.submitted_at,
                   s.first_name, s.last_name, s.email,
                   q.total_points, q.passing_score,
                   (SELECT COUNT(*) FROM quiz_answers qa
                     WHERE qa.quiz_id = qs.quiz_id AND qa.student_id = qs.student_id) AS answers_count,
                   (SELECT COUNT(*) FROM quiz_answers qa
                     WHERE qa.quiz_id = qs.quiz_id AND qa.student_id = qs.student_id
                       AND qa.is_correct = 1) AS correct_count
            FROM quiz_submissions qs
            JOIN students s ON qs.student_id = s.id
            JOIN quizzes q ON qs.quiz_id = q.id
            WHERE qs.quiz_id = ?
            ORDER BY qs.submitted_at DESC
            """,
            (quiz_id,),
        )

    def list_for_student(self, student_id: str) -> List[Dict[str, Any]]:
        return self._database.execute_query(
            """
            SELECT qs.id AS submission_id, qs.quiz_id, qs.score, qs.submitted_at,
                   q.title AS quiz_title, q.total_points, q.passing_score,
                   c.code AS course_code, c.name AS course_name
            FROM quiz_submissions qs
            JOIN quizzes q ON qs.quiz_id = q.id
            JOIN courses c ON q.course_id = c.id
            WHERE qs.student_id = ?
            ORDER BY qs.submitted_at DESC
            """,
            (student_id,),
        )


class QuizAnswerRepository(BaseRepository[QuizAnswer]):
    table = "quiz_answers"
    columns = ("quiz_id", "student_id", "question_id", "answer", "is_correct")

    def _entity_from_row(self, row: Dict[str, Any]) -> QuizAnswer:
        is_correct = row["is_correct"]
        return QuizAnswer(
            quiz_id=row["quiz_id"],
            student_id=row["student_id"],
            question_id=row["question_id"],
            answer=row["answer"],
            is_correct=None if is_correct is None else bool(is_correct),
            **_base_kwargs(row)
        )

    def delete_for(self, quiz_id: str, student_id: str) -> int:
        return self._database.execute_update(
            "DELETE FROM quiz_answers WHERE quiz_id = ? AND student_id = ?", (quiz_id, student_id))

    def review(self, quiz_id: str, student_id: str) -> List[Dict[str, Any]]:
        """Answers joined with their questions, in question order."""
        return self._database.execute_query(
            """
            SELECT qa.id, qa.question_id, qa.answer AS student_answer, qa.is_correct,
                   qq.question_text, qq.correct_answer, qq.points
            FROM quiz_answers qa
            JOIN quiz_questions qq ON qa.question_id = qq.id
            WHERE qa.quiz_id = ? AND qa.student_id = ?
            ORDER BY qq.created_at, qq.id
            """,
            (quiz_id, student_id),
        )


class ActivityLogRepository(BaseRepository[ActivityLogEntry]):
    table = "activity_log"
    columns = ("action", "entity_type", "target_id", "description", "actor_id", "actor_role")

    def _entity_from_row(self, row: Dict[str, Any]) -> ActivityLogEntry:
        return ActivityLogEntry(
            action=AuditAction(row["action"]),
            entity_type=row["entity_type"],
            target_id=row["target_id"],
            description=row["description"],
            actor_id=row["actor_id"],
            actor_role=row["actor_role"],
            **_base_kwargs(row)
        )

    def recent(self, limit: int = 50) -> List[ActivityLogEntry]:
        results = self._database.execute_query(
            "SELECT * FROM activity_log ORDER BY created_at DESC, id DESC LIMIT ?", (limit,))
        return [self._entity_from_row(row) for row in results]
