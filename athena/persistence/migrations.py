"""
Database migration system for schema versioning.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..core.exceptions import PersistenceError
from .database import DatabaseManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    """Represents a database migration."""
    version: int
    name: str
    up_sql: str
    description: str = ""


MIGRATIONS: List[Migration] = [
    Migration(
        version=1,
        name="create_people_tables",
        up_sql="""
            CREATE TABLE IF NOT EXISTS students (
                id TEXT PRIMARY KEY,
                user_id TEXT UNIQUE NOT NULL,
                first_name TEXT NOT NULL,
                last_name TEXT NOT NULL,
                email TEXT NOT NULL,
                major TEXT,
                status TEXT NOT NULL DEFAULT 'Active',
                gpa REAL,
                completed_credits INTEGER NOT NULL DEFAULT 0,
                total_graded_credits INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1
            );
            CREATE TABLE IF NOT EXISTS instructors (
                id TEXT PRIMARY KEY,
                user_id TEXT UNIQUE NOT NULL,
                first_name TEXT NOT NULL,
                last_name TEXT NOT NULL,
                email TEXT NOT NULL,
                department TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1
            )
        """,
        description="Students and instructors",
    ),
    Migration(
        version=2,
        name="create_course_tables",
        up_sql="""
            CREATE TABLE IF NOT EXISTS courses (
                id TEXT PRIMARY KEY,
                code TEXT NOT NULL,
                name TEXT NOT NULL,
                department TEXT NOT NULL DEFAULT '',
                description TEXT NOT NULL DEFAULT '',
                credits INTEGER NOT NULL CHECK (credits > 0),
                capacity INTEGER NOT NULL CHECK (capacity > 0),
                current_enrollment INTEGER NOT NULL DEFAULT 0
                    CHECK (current_enrollment >= 0 AND current_enrollment <= capacity),
                semester TEXT NOT NULL,
                year INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1
            );
            CREATE TABLE IF NOT EXISTS course_instructors (
                course_id TEXT NOT NULL REFERENCES courses(id),
                instructor_id TEXT NOT NULL REFERENCES instructors(id),
                PRIMARY KEY (course_id, instructor_id)
            );
            CREATE TABLE IF NOT EXISTS enrollments (
                id TEXT PRIMARY KEY,
                student_id TEXT NOT NULL REFERENCES students(id),
                course_id TEXT NOT NULL REFERENCES courses(id),
                semester TEXT NOT NULL,
                year INTEGER NOT NULL,
                status TEXT NOT NULL DEFAULT 'Active',
                grade TEXT,
                enrolled_at TEXT NOT NULL,
                deleted_at TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1
            );
            CREATE INDEX IF NOT EXISTS idx_enrollments_student_term
                ON enrollments(student_id, semester, year);
            CREATE INDEX IF NOT EXISTS idx_enrollments_course ON enrollments(course_id)
        """,
        description="Courses, instructor assignments and enrollments",
    ),
    Migration(
        version=3,
        name="create_quiz_tables",
        up_sql="""
            CREATE TABLE IF NOT EXISTS quizzes (
                id TEXT PRIMARY KEY,
                course_id TEXT NOT NULL REFERENCES courses(id),
                title TEXT NOT NULL,
                description TEXT,
                due_date TEXT,
                total_points INTEGER NOT NULL DEFAULT 100,
                passing_score REAL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1
            );
            CREATE TABLE IF NOT EXISTS quiz_questions (
                id TEXT PRIMARY KEY,
                quiz_id TEXT NOT NULL REFERENCES quizzes(id),
                question_text TEXT NOT NULL,
                correct_answer TEXT NOT NULL,
                points INTEGER NOT NULL DEFAULT 10,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1
            );
            CREATE TABLE IF NOT EXISTS quiz_submissions (
                id TEXT PRIMARY KEY,
                quiz_id TEXT NOT NULL REFERENCES quizzes(id),
                student_id TEXT NOT NULL REFERENCES students(id),
                score REAL,
                submitted_at TEXT NOT NULL,
                graded_at TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                UNIQUE (quiz_id, student_id)
            );
            CREATE TABLE IF NOT EXISTS quiz_answers (
                id TEXT PRIMARY KEY,
                quiz_id TEXT NOT NULL REFERENCES quizzes(id),
                student_id TEXT NOT NULL REFERENCES students(id),
                question_id TEXT NOT NULL REFERENCES quiz_questions(id),
                answer TEXT NOT NULL,
                is_correct INTEGER,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1
            );
            CREATE INDEX IF NOT EXISTS idx_quiz_answers_owner ON quiz_answers(quiz_id, student_id)
        """,
        description="Quizzes, questions, submissions and answers",
    ),
    Migration(
        version=4,
        name="create_activity_log",
        up_sql="""
            CREATE TABLE IF NOT EXISTS activity_log (
                id TEXT PRIMARY KEY,
                action TEXT NOT NULL,
                entity_type TEXT NOT NULL,
                target_id TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                actor_id TEXT,
                actor_role TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1
            );
            CREATE INDEX IF NOT EXISTS idx_activity_log_created_at ON activity_log(created_at)
        """,
        description="Activity log",
    ),
]


class MigrationManager:
    """Manages database migrations and schema versioning."""

    def __init__(self, database: DatabaseManager, migrations: Optional[List[Migration]] = None):
        self._database = database
        self._migrations = sorted(migrations if migrations is not None else MIGRATIONS,
                                  key=lambda m: m.version)
        self._ensure_migrations_table()

    def _ensure_migrations_table(self) -> None:
        """Ensure the migrations table exists."""
        self._database.execute_update("""
            CREATE TABLE IF NOT EXISTS migrations (
                version INTEGER PRIMARY KEY,
                name TEXT UNIQUE NOT NULL,
                applied_at TEXT NOT NULL,
                description TEXT
            )
        """)

    def _get_applied_versions(self) -> Dict[int, str]:
        results = self._database.execute_query("SELECT version, name FROM migrations ORDER BY version")
        return {row["version"]: row["name"] for row in results}

    def get_pending_migrations(self) -> List[Migration]:
        """Get migrations that haven't been applied yet."""
        applied = self._get_applied_versions()
        return [m for m in self._migrations if m.version not in applied]

    def apply_migration(self, migration: Migration) -> None:
        """Apply a migration and record it, atomically."""
        try:
            with self._database.transaction():
                self._database.execute_script(migration.up_sql)
                self._database.execute_update(
                    "INSERT INTO migrations (version, name, applied_at, description) VALUES (?, ?, ?, ?)",
                    (migration.version, migration.name,
                     datetime.now(timezone.utc).isoformat(), migration.description),
                )
        except PersistenceError as e:
            raise PersistenceError(f"Failed to apply migration {migration.name}: {e.message}")
        logger.info("Applied migration %03d_%s", migration.version, migration.name)

    def migrate_up(self, target_version: Optional[int] = None) -> List[Migration]:
        """Apply pending migrations up to target version."""
        applied_migrations = []
        for migration in self.get_pending_migrations():
            if target_version is not None and migration.version > target_version:
                break
            self.apply_migration(migration)
            applied_migrations.append(migration)
        return applied_migrations

    def get_migration_status(self) -> Dict[str, Any]:
        """Get migration status information."""
        applied = self._get_applied_versions()
        return {
            "total_migrations": len(self._migrations),
            "applied_migrations": len(applied),
            "pending_migrations": len(self._migrations) - len(applied),
            "current_version": max((m.version for m in self._migrations), default=0),
            "applied_version": max(applied, default=0),
        }
