"""
Core interfaces and abstract base classes for the Athena portal.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, TypeVar, Generic


T = TypeVar('T')


class EnrollmentPolicy(ABC):
    """Abstract base class for admission policies."""

    # Policies that inspect the course run only once the course is known to exist.
    requires_course: bool = True

    @abstractmethod
    def can_enroll(self, context: 'AdmissionContext') -> bool:
        """Check whether the request in context is admissible under this policy."""
        pass

    @abstractmethod
    def rejection(self, context: 'AdmissionContext') -> 'BusinessRejection':
        """Build the structured rejection reported when can_enroll is False."""
        pass

    @abstractmethod
    def get_policy_name(self) -> str:
        """Get the name of this policy."""
        pass


class Repository(ABC, Generic[T]):
    """Abstract base class for repositories over the persistence gateway."""

    @abstractmethod
    def insert(self, entity: T) -> T:
        """Insert a new entity."""
        pass

    @abstractmethod
    def find_by_id(self, entity_id: str) -> Optional[T]:
        """Find entity by ID."""
        pass

    @abstractmethod
    def find_where(self, order_by: Optional[str] = None, **filters: Any) -> List[T]:
        """Find all entities whose columns equal the given filters."""
        pass

    @abstractmethod
    def update_fields(self, entity_id: str, **fields: Any) -> bool:
        """Update selected columns of an entity."""
        pass

    @abstractmethod
    def atomic_increment(self, entity_id: str, field: str, delta: int, floor: int = 0,
                         ceiling_field: Optional[str] = None) -> bool:
        """Add delta to a numeric column in one conditional statement."""
        pass


class ActivityRecorder(ABC):
    """Sink for activity-log entries."""

    @abstractmethod
    def record(self, action: Any, entity_type: str, target_id: str, description: str = "",
               actor: Optional[Dict[str, Any]] = None) -> None:
        pass
