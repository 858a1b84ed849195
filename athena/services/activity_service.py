"""
Activity log recording and retrieval.
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.entities import ActivityLogEntry
from ..core.enums import AuditAction
from ..core.exceptions import ValidationError
from ..core.interfaces import ActivityRecorder
from ..persistence.repositories import ActivityLogRepository

logger = logging.getLogger(__name__)

MAX_ACTIVITY_PAGE = 500


class ActivityService(ActivityRecorder):
    """Writes activity entries through the caller's open transaction, if any."""

    def __init__(self, activity_repository: ActivityLogRepository):
        self._activity_repository = activity_repository

    def record(self, action: AuditAction, entity_type: str, target_id: str, description: str = "",
               actor: Optional[Dict[str, Any]] = None) -> ActivityLogEntry:
        actor = actor or {}
        entry = ActivityLogEntry(
            action=action,
            entity_type=entity_type,
            target_id=target_id,
            description=description,
            actor_id=actor.get('user_id'),
            actor_role=actor.get('role'),
        )
        self._activity_repository.insert(entry)
        logger.debug("Activity %s %s %s", action.value, entity_type, target_id)
        return entry

    def list_activities(self, limit: int = 50) -> List[ActivityLogEntry]:
        """Most recent entries first."""
        if not 1 <= limit <= MAX_ACTIVITY_PAGE:
            raise ValidationError(f"limit must be between 1 and {MAX_ACTIVITY_PAGE}", details={'limit': limit})
        return self._activity_repository.recent(limit)
