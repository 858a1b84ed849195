"""
Custom exceptions for the Athena portal.
"""

from typing import Optional, Any, Dict


class AthenaException(Exception):
    """Base exception for all Athena-related errors."""

    error_kind = "error"

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.error_kind
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Structured form rendered by the API layer."""
        body = {"error_kind": self.error_code, "message": self.message}
        body.update(self.details)
        return body


class ValidationError(AthenaException):
    """Raised when input is missing or malformed."""
    error_kind = "validation_error"


class AuthorizationError(AthenaException):
    """Raised when the caller lacks an identity or the required role."""
    error_kind = "forbidden"

    def __init__(self, message: str, authenticated: bool = True, **kwargs):
        super().__init__(message, **kwargs)
        self.authenticated = authenticated
        if not authenticated:
            self.error_code = "unauthorized"


class ResourceNotFoundError(AthenaException):
    """Raised when a requested resource is not found."""
    error_kind = "not_found"


class BusinessRejection(AthenaException):
    """Raised when a request is well-formed but refused by a business rule."""
    error_kind = "business_rejection"


class DuplicateEnrollmentError(BusinessRejection):
    """Raised when the student already holds an enrollment for the course and term."""
    error_kind = "duplicate_enrollment"


class CourseFullError(BusinessRejection):
    """Raised when a course has no free seats."""
    error_kind = "course_full"


class CreditLimitExceededError(BusinessRejection):
    """Raised when an enrollment would push the term credit load over the cap."""
    error_kind = "credit_limit_exceeded"


class InvalidTransitionError(BusinessRejection):
    """Raised when an enrollment status change is not allowed."""
    error_kind = "invalid_transition"


class PersistenceError(AthenaException):
    """Raised when persistence operations fail."""
    error_kind = "persistence_error"


class TransientStorageError(PersistenceError):
    """Raised when the store is busy or timed out. The whole operation may be retried."""
    error_kind = "transient_storage_error"


class ConcurrencyError(TransientStorageError):
    """Raised when an in-process resource lock cannot be acquired in time."""
    error_kind = "transient_storage_error"


class ConfigurationError(AthenaException):
    """Raised when configuration is invalid."""
    error_kind = "configuration_error"
