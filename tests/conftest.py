import itertools

import pytest

from athena.config import load_config
from athena.core.academics import Term
from athena.main import AthenaPlatform

_counter = itertools.count(1)


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    return str(tmp_path / "test_athena.db")


@pytest.fixture
def make_config(tmp_db):
    def _make(**overrides):
        config = load_config(environ={})
        config['database_path'] = tmp_db
        config.update(overrides)
        return config
    return _make


@pytest.fixture
def platform(make_config):
    return AthenaPlatform(make_config())


@pytest.fixture
def immediate_platform(make_config):
    return AthenaPlatform(make_config(quiz_grading_mode="immediate"))


@pytest.fixture
def fall():
    return Term("Fall", 2025)


@pytest.fixture
def make_student(platform):
    def _make(first_name="Test", last_name="Student", user_id=None):
        n = next(_counter)
        return platform.directory_service.create_student(
            user_id or f"user-{n}", first_name, last_name, f"student{n}@university.edu")
    return _make


@pytest.fixture
def make_course(platform):
    def _make(credits=3, capacity=30, semester="Fall", year=2025, code=None):
        n = next(_counter)
        return platform.directory_service.create_course(
            code or f"C{n:03d}", f"Course {n}", credits, capacity, semester, year)
    return _make
