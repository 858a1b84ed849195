import sqlite3

import pytest

from athena.core.entities import Course
from athena.core.exceptions import ConfigurationError, PersistenceError, TransientStorageError
from athena.persistence import MIGRATIONS, DatabaseFactory, MigrationManager, SQLiteDatabase
from athena.persistence.database import translate_error
from athena.persistence.repositories import CourseRepository


@pytest.fixture
def database(tmp_db):
    db = SQLiteDatabase(tmp_db, timeout=1.0)
    MigrationManager(db).migrate_up()
    return db


@pytest.fixture
def courses(database):
    return CourseRepository(database)


def _course(capacity=2, current=0):
    return Course(code="CS101", name="Intro", credits=3, capacity=capacity,
                  semester="Fall", year=2025, current_enrollment=current)


def test_migrations_create_tables(database):
    for table in ("students", "instructors", "courses", "course_instructors", "enrollments",
                  "quizzes", "quiz_questions", "quiz_submissions", "quiz_answers", "activity_log"):
        assert database.table_exists(table)


def test_migrations_are_idempotent(database):
    manager = MigrationManager(database)
    assert manager.migrate_up() == []
    status = manager.get_migration_status()
    assert status["pending_migrations"] == 0
    assert status["applied_version"] == MIGRATIONS[-1].version


def test_migrate_up_to_target_version(tmp_db):
    manager = MigrationManager(SQLiteDatabase(tmp_db))
    applied = manager.migrate_up(target_version=2)
    assert [m.version for m in applied] == [1, 2]
    assert [m.version for m in manager.get_pending_migrations()] == [3, 4]


def test_factory_rejects_unknown_type():
    with pytest.raises(ConfigurationError):
        DatabaseFactory.create_database("oracle")


def test_insert_and_find_round_trip(courses):
    course = courses.insert(_course())
    loaded = courses.find_by_id(course.id)
    assert loaded == course
    assert loaded.capacity == 2
    assert loaded.created_at == course.created_at


def test_find_where_filters_and_orders(courses):
    courses.insert(Course(code="B200", name="B", credits=3, capacity=5, semester="Fall", year=2025))
    courses.insert(Course(code="A100", name="A", credits=4, capacity=5, semester="Fall", year=2025))
    courses.insert(Course(code="C300", name="C", credits=3, capacity=5, semester="Spring", year=2026))
    fall = courses.find_where(order_by="code", semester="Fall")
    assert [c.code for c in fall] == ["A100", "B200"]
    assert courses.count(credits=3) == 2


def test_find_where_rejects_unknown_columns(courses):
    with pytest.raises(PersistenceError):
        courses.find_where(nonexistent="x")


def test_update_fields_bumps_version(courses):
    course = courses.insert(_course())
    assert courses.update_fields(course.id, name="Renamed")
    loaded = courses.find_by_id(course.id)
    assert loaded.name == "Renamed"
    assert loaded.version == course.version + 1


def test_atomic_increment_respects_ceiling(courses):
    course = courses.insert(_course(capacity=1))
    assert courses.atomic_increment(course.id, "current_enrollment", 1, ceiling_field="capacity")
    assert not courses.atomic_increment(course.id, "current_enrollment", 1, ceiling_field="capacity")
    assert courses.find_by_id(course.id).current_enrollment == 1


def test_atomic_decrement_is_floored(courses):
    course = courses.insert(_course(capacity=3, current=0))
    assert courses.atomic_increment(course.id, "current_enrollment", -1)
    assert courses.find_by_id(course.id).current_enrollment == 0


def test_atomic_increment_missing_row(courses):
    assert not courses.atomic_increment("missing", "current_enrollment", 1)


def test_occupancy_check_constraint(courses):
    course = courses.insert(_course(capacity=1))
    with pytest.raises(PersistenceError):
        courses.update_fields(course.id, current_enrollment=2)


def test_transaction_rolls_back_on_error(database, courses):
    with pytest.raises(RuntimeError):
        with database.transaction():
            courses.insert(_course())
            raise RuntimeError("boom")
    assert courses.find_where() == []


def test_nested_transaction_joins_outer(database, courses):
    with pytest.raises(RuntimeError):
        with database.transaction():
            with database.transaction():
                courses.insert(_course())
            assert database.in_transaction
            raise RuntimeError("boom")
    assert courses.find_where() == []
    assert not database.in_transaction


def test_translate_error_classifies_busy_as_transient():
    error = translate_error(sqlite3.OperationalError("database is locked"), "Update failed")
    assert isinstance(error, TransientStorageError)
    assert error.details["retryable"] is True
    assert not isinstance(translate_error(sqlite3.IntegrityError("UNIQUE"), "x"), TransientStorageError)


def test_write_lock_timeout_is_transient(tmp_db, database):
    blocker = sqlite3.connect(tmp_db, isolation_level=None)
    blocker.execute("BEGIN IMMEDIATE")
    try:
        impatient = SQLiteDatabase(tmp_db, timeout=0.1)
        with pytest.raises(TransientStorageError):
            with impatient.transaction():
                pass
    finally:
        blocker.execute("ROLLBACK")
        blocker.close()
