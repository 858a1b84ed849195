"""
Configuration loading for the Athena platform.

Values come from ``DEFAULT_CONFIG``, then an optional JSON file, then
``ATHENA_*`` environment variables.
"""

import copy
import json
import os
from typing import Any, Dict, Mapping, Optional

from .core.academics import TermRules
from .core.enums import GradingMode, TermType
from .core.exceptions import ConfigurationError

DEFAULT_CONFIG: Dict[str, Any] = {
    'database_type': 'sqlite',
    'database_path': 'athena.db',
    'database_timeout': 5.0,
    'lock_timeout': 5.0,
    'term_credit_caps': {
        TermType.STANDARD.value: 18,
        TermType.COMPRESSED.value: 10,
    },
    'compressed_semesters': ['Summer'],
    'quiz_grading_mode': GradingMode.DEFERRED.value,
    'default_passing_score': 60,
    'host': '0.0.0.0',
    'port': 8000,
    'log_level': 'INFO',
}

ENV_OVERRIDES = {
    'ATHENA_DATABASE_PATH': 'database_path',
    'ATHENA_QUIZ_GRADING_MODE': 'quiz_grading_mode',
    'ATHENA_LOG_LEVEL': 'log_level',
}


def load_config(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Build and validate the effective configuration."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    if path:
        try:
            with open(path, 'r') as f:
                overrides = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Could not read configuration file {path}: {e}")
        if not isinstance(overrides, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a JSON object")
        config.update(overrides)

    environ = os.environ if environ is None else environ
    for variable, key in ENV_OVERRIDES.items():
        if environ.get(variable):
            config[key] = environ[variable]

    validate_config(config)
    return config


def validate_config(config: Dict[str, Any]) -> None:
    mode = config.get('quiz_grading_mode')
    if mode not in {m.value for m in GradingMode}:
        raise ConfigurationError(f"Unknown quiz_grading_mode: {mode}",
                                 details={'allowed': [m.value for m in GradingMode]})

    caps = config.get('term_credit_caps')
    if not isinstance(caps, dict):
        raise ConfigurationError("term_credit_caps must be a mapping of term type to credit cap")
    for term_type in TermType:
        cap = caps.get(term_type.value)
        if not isinstance(cap, int) or isinstance(cap, bool) or cap <= 0:
            raise ConfigurationError(f"Credit cap for {term_type.value} terms must be a positive integer",
                                     details={'term_type': term_type.value, 'cap': cap})

    if not isinstance(config.get('compressed_semesters'), (list, tuple)):
        raise ConfigurationError("compressed_semesters must be a list of semester names")

    for key in ('database_timeout', 'lock_timeout'):
        value = config.get(key)
        if not isinstance(value, (int, float)) or value <= 0:
            raise ConfigurationError(f"{key} must be a positive number", details={key: value})

    passing = config.get('default_passing_score')
    if not isinstance(passing, (int, float)) or not 0 <= passing <= 100:
        raise ConfigurationError("default_passing_score must be between 0 and 100",
                                 details={'default_passing_score': passing})


def term_rules_from_config(config: Dict[str, Any]) -> TermRules:
    return TermRules(
        credit_caps=dict(config['term_credit_caps']),
        compressed_semesters=tuple(config['compressed_semesters']),
    )
