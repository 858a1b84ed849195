"""
Concurrency management and thread safety components.
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from ..core.exceptions import ConcurrencyError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class LockInfo:
    """Information about a held lock."""
    resource_id: str
    holder_id: int
    acquired_at: float
    depth: int = 1


class ConcurrencyManager:
    """Per-resource in-process locks with a bounded acquire timeout.

    Locks are reentrant for the holding thread. They only serialize threads
    of this process; cross-process safety comes from the database
    transaction each service opens inside the lock.
    """

    def __init__(self, lock_timeout: float = 5.0):
        if lock_timeout <= 0:
            raise ValidationError("lock_timeout must be positive", details={'lock_timeout': lock_timeout})
        self._lock_timeout = lock_timeout
        self._resource_locks: Dict[str, threading.RLock] = {}
        # acquires in flight or held per resource; the lock is dropped at zero
        self._lock_users: Dict[str, int] = {}
        self._lock_holders: Dict[str, LockInfo] = {}
        self._lock = threading.Lock()

    @staticmethod
    def course_key(course_id: str) -> str:
        return f"course:{course_id}"

    @staticmethod
    def submission_key(quiz_id: str, student_id: str) -> str:
        return f"quiz:{quiz_id}:{student_id}"

    def _checkout(self, resource_id: str) -> threading.RLock:
        with self._lock:
            if resource_id not in self._resource_locks:
                self._resource_locks[resource_id] = threading.RLock()
                self._lock_users[resource_id] = 0
            self._lock_users[resource_id] += 1
            return self._resource_locks[resource_id]

    def _checkin(self, resource_id: str) -> threading.RLock:
        """Caller must hold ``self._lock``."""
        resource_lock = self._resource_locks[resource_id]
        self._lock_users[resource_id] -= 1
        if self._lock_users[resource_id] == 0:
            del self._lock_users[resource_id]
            del self._resource_locks[resource_id]
        return resource_lock

    def acquire_lock(self, resource_id: str, timeout: Optional[float] = None) -> LockInfo:
        """Acquire a lock on a resource or raise ConcurrencyError after the timeout."""
        wait = self._lock_timeout if timeout is None else timeout
        resource_lock = self._checkout(resource_id)
        if not resource_lock.acquire(timeout=wait):
            with self._lock:
                self._checkin(resource_id)
            logger.warning("Timed out after %.2fs waiting for lock on %s", wait, resource_id)
            raise ConcurrencyError(
                f"Timed out waiting for lock on {resource_id}",
                details={'resource_id': resource_id, 'retryable': True},
            )

        with self._lock:
            info = self._lock_holders.get(resource_id)
            if info is not None and info.holder_id == threading.get_ident():
                info.depth += 1
            else:
                info = LockInfo(resource_id=resource_id, holder_id=threading.get_ident(),
                                acquired_at=time.monotonic())
                self._lock_holders[resource_id] = info
            return info

    def release_lock(self, resource_id: str) -> None:
        """Release one level of a lock held by the calling thread."""
        with self._lock:
            info = self._lock_holders.get(resource_id)
            if info is None or info.holder_id != threading.get_ident():
                raise ConcurrencyError(f"Lock on {resource_id} is not held by this thread")
            info.depth -= 1
            if info.depth == 0:
                del self._lock_holders[resource_id]
            resource_lock = self._checkin(resource_id)
        resource_lock.release()

    @contextmanager
    def lock(self, resource_id: str, timeout: Optional[float] = None) -> Iterator[LockInfo]:
        """Context manager for acquiring and releasing locks."""
        info = self.acquire_lock(resource_id, timeout)
        try:
            yield info
        finally:
            self.release_lock(resource_id)

    def get_lock_info(self, resource_id: str) -> Optional[LockInfo]:
        """Get information about the current holder of a resource lock."""
        with self._lock:
            return self._lock_holders.get(resource_id)

    def is_locked(self, resource_id: str) -> bool:
        return self.get_lock_info(resource_id) is not None

    def tracked_resources(self) -> int:
        """Number of resources with a lock currently held or awaited."""
        with self._lock:
            return len(self._resource_locks)
