"""
Persistence module for data storage, schema migrations and repositories.
"""

from .database import DatabaseManager, SQLiteDatabase, DatabaseFactory
from .migrations import MigrationManager, Migration, MIGRATIONS
from .repositories import (
    StudentRepository, InstructorRepository, CourseRepository, EnrollmentRepository,
    QuizRepository, QuizQuestionRepository, QuizSubmissionRepository, QuizAnswerRepository,
    ActivityLogRepository,
)

__all__ = [
    "DatabaseManager",
    "SQLiteDatabase",
    "DatabaseFactory",
    "MigrationManager",
    "Migration",
    "MIGRATIONS",
    "StudentRepository",
    "InstructorRepository",
    "CourseRepository",
    "EnrollmentRepository",
    "QuizRepository",
    "QuizQuestionRepository",
    "QuizSubmissionRepository",
    "QuizAnswerRepository",
    "ActivityLogRepository",
]
