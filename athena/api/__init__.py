"""
API module for the REST interface and its access checks.
"""

from .rest_api import AthenaRestAPI
from .authorization import CAPABILITIES, Identity, require_capability

__all__ = [
    "AthenaRestAPI",
    "CAPABILITIES",
    "Identity",
    "require_capability",
]
