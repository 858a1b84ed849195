import json

import pytest

from athena.config import DEFAULT_CONFIG, load_config, term_rules_from_config
from athena.core.academics import Term
from athena.core.exceptions import ConfigurationError, CreditLimitExceededError
from athena.main import AthenaPlatform


def test_defaults():
    config = load_config(environ={})
    assert config == DEFAULT_CONFIG
    assert config is not DEFAULT_CONFIG
    assert config['quiz_grading_mode'] == "deferred"
    assert config['term_credit_caps'] == {"standard": 18, "compressed": 10}


def test_file_then_environment(tmp_path):
    path = tmp_path / "athena.json"
    path.write_text(json.dumps({"database_path": "from_file.db", "quiz_grading_mode": "immediate",
                                "port": 9001}))
    config = load_config(str(path), environ={"ATHENA_DATABASE_PATH": "from_env.db"})
    assert config['database_path'] == "from_env.db"
    assert config['quiz_grading_mode'] == "immediate"
    assert config['port'] == 9001


def test_environment_grading_mode_is_validated():
    with pytest.raises(ConfigurationError):
        load_config(environ={"ATHENA_QUIZ_GRADING_MODE": "whenever"})


@pytest.mark.parametrize("caps", [{"standard": 0, "compressed": 10}, {"standard": 18}, "18"])
def test_invalid_caps(tmp_path, caps):
    path = tmp_path / "athena.json"
    path.write_text(json.dumps({"term_credit_caps": caps}))
    with pytest.raises(ConfigurationError):
        load_config(str(path), environ={})


def test_unreadable_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(str(tmp_path / "missing.json"), environ={})
    bad = tmp_path / "bad.json"
    bad.write_text("[1, 2]")
    with pytest.raises(ConfigurationError):
        load_config(str(bad), environ={})


def test_term_rules_from_config():
    config = load_config(environ={})
    config['term_credit_caps'] = {"standard": 21, "compressed": 9}
    config['compressed_semesters'] = ["Summer", "Winter"]
    rules = term_rules_from_config(config)
    assert rules.credit_cap(Term("Winter", 2026)) == 9
    assert rules.credit_cap(Term("Fall", 2026)) == 21


def test_platform_uses_configured_caps(make_config):
    platform = AthenaPlatform(make_config(term_credit_caps={"standard": 6, "compressed": 3}))
    directory = platform.directory_service
    student = directory.create_student("u-1", "Cap", "Tester", "cap@university.edu")
    fall = Term("Fall", 2025)
    course = directory.create_course("CS1", "One", 4, 10, "Fall", 2025)
    platform.enrollment_service.request_enrollment(student.id, course.id, fall)
    other = directory.create_course("CS2", "Two", 3, 10, "Fall", 2025)
    with pytest.raises(CreditLimitExceededError) as excinfo:
        platform.enrollment_service.request_enrollment(student.id, other.id, fall)
    assert excinfo.value.details['max_credits'] == 6
