"""
Per-schedule exclusive access for the booking write path.

One lock exists per (provider_id, date) while it is held or awaited, and is
discarded after the last user releases it. Writers hold it for the
re-read + conflict check + write unit of work; readers never take it.
Acquisition is bounded: waiting longer than the timeout raises
ScheduleLockTimeout, which callers treat as "retry the same request".
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from booking_engine.errors import ScheduleLockTimeout
from booking_engine.repository.base import ScheduleKey

logger = logging.getLogger(__name__)


class _KeyLock:
    """A schedule lock plus the number of threads holding or waiting on it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class ScheduleLockManager:
    def __init__(self, timeout_seconds: float = 5.0) -> None:
        self._timeout = timeout_seconds
        self._locks: dict[ScheduleKey, _KeyLock] = {}
        self._lock_lock = threading.Lock()  # Lock for managing locks dict

    def _checkout(self, key: ScheduleKey) -> threading.Lock:
        """Get or create the lock for a schedule key and register a user."""
        with self._lock_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _KeyLock()
            entry.users += 1
            return entry.lock

    def _checkin(self, key: ScheduleKey) -> None:
        """Drop a user; the key's lock is discarded once nobody holds or waits on it."""
        with self._lock_lock:
            entry = self._locks[key]
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, *keys: ScheduleKey, timeout: Optional[float] = None) -> Iterator[None]:
        """
        Hold every given schedule key for the duration of the block.

        Keys are acquired in sorted order so multi-key holders cannot deadlock.
        The timeout bounds the total wait across all keys.
        """
        budget = self._timeout if timeout is None else timeout
        deadline = time.monotonic() + budget
        checked_out: list[ScheduleKey] = []
        acquired: list[threading.Lock] = []
        try:
            for key in sorted(set(keys)):
                lock = self._checkout(key)
                checked_out.append(key)
                remaining = max(0.0, deadline - time.monotonic())
                if not lock.acquire(timeout=remaining):
                    logger.warning("Timed out after %.2fs waiting for schedule %s", budget, key)
                    raise ScheduleLockTimeout(
                        f"Schedule for provider {key[0]} on {key[1].isoformat()} is busy; "
                        "retry the request"
                    )
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in checked_out:
                self._checkin(key)

    def is_locked(self, key: ScheduleKey) -> bool:
        with self._lock_lock:
            entry = self._locks.get(key)
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        """Number of schedule keys currently held or awaited."""
        with self._lock_lock:
            return len(self._locks)
