"""
Role-based access checks for the REST API.

The caller's identity is asserted by the upstream auth gateway through the
``X-User-Id`` and ``X-User-Role`` headers. Every route declares the
capability it needs; the mapping of capabilities to roles lives here only.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Optional

from fastapi import Depends, Header

from ..core.enums import Role
from ..core.exceptions import AuthorizationError

ALL_ROLES: FrozenSet[Role] = frozenset(Role)
STAFF: FrozenSet[Role] = frozenset({Role.INSTRUCTOR, Role.ADMIN})

CAPABILITIES: Dict[str, FrozenSet[Role]] = {
    'enroll': frozenset({Role.ADMIN, Role.STUDENT}),
    'manage_enrollments': frozenset({Role.ADMIN}),
    'view_enrollments': ALL_ROLES,
    'view_summary': ALL_ROLES,
    'submit_quiz': frozenset({Role.ADMIN, Role.STUDENT}),
    'grade_quiz': STAFF,
    'review_answers': ALL_ROLES,
    'manage_students': frozenset({Role.ADMIN}),
    'manage_courses': frozenset({Role.ADMIN}),
    'view_courses': ALL_ROLES,
    'view_roster': STAFF,
    'instructor_stats': frozenset({Role.INSTRUCTOR}),
    'author_quizzes': STAFF,
    'view_quizzes': ALL_ROLES,
    'admin': frozenset({Role.ADMIN}),
}


@dataclass(frozen=True)
class Identity:
    """Authenticated caller."""
    user_id: str
    role: Role

    @property
    def is_student(self) -> bool:
        return self.role == Role.STUDENT

    @property
    def is_instructor(self) -> bool:
        return self.role == Role.INSTRUCTOR

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF

    def as_actor(self) -> Dict[str, Any]:
        return {'user_id': self.user_id, 'role': self.role.value}


def get_identity(x_user_id: Optional[str] = Header(default=None),
                 x_user_role: Optional[str] = Header(default=None)) -> Identity:
    """Read the caller identity from the gateway headers."""
    if not x_user_id or not x_user_role:
        raise AuthorizationError("Authentication required", authenticated=False)
    try:
        role = Role(x_user_role)
    except ValueError:
        raise AuthorizationError(f"Unknown role: {x_user_role}", authenticated=False,
                                 details={'allowed_roles': [r.value for r in Role]})
    return Identity(user_id=x_user_id, role=role)


def check_capability(identity: Identity, capability: str) -> None:
    allowed = CAPABILITIES.get(capability)
    if allowed is None:
        raise KeyError(f"Unknown capability: {capability}")
    if identity.role not in allowed:
        raise AuthorizationError(
            "Insufficient permissions",
            details={'capability': capability, 'role': identity.role.value},
        )


def require_capability(capability: str) -> Callable[..., Identity]:
    """FastAPI dependency factory: the caller must hold ``capability``."""
    if capability not in CAPABILITIES:
        raise KeyError(f"Unknown capability: {capability}")

    def dependency(identity: Identity = Depends(get_identity)) -> Identity:
        check_capability(identity, capability)
        return identity

    return dependency


def ensure_own_record(identity: Identity, student_id: str, own_student_id: Optional[str]) -> None:
    """Students may only act on the student record linked to their user id."""
    if identity.is_student and own_student_id != student_id:
        raise AuthorizationError("Students may only access their own records",
                                 details={'student_id': student_id})
