"""
Concurrency helpers for the sync workers.

KeyedLocks serializes work touching the same aggregate (lock key convention
"<aggregate>:<id>", e.g. "college:3f2a..."). RetryPolicy is the exponential
backoff applied to transient store errors.
"""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Optional

from core_sync.config import SYNC_MAX_RETRIES, SYNC_RETRY_BASE_DELAY, SYNC_RETRY_MAX_DELAY


class KeyedLocks:
    """
    One mutex per key, created on demand and dropped when nobody holds or
    waits for it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}

    @contextmanager
    def hold(self, key: Optional[str]):
        if key is None:
            yield
            return

        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] = self._users.get(key, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]

    def active_keys(self) -> int:
        with self._guard:
            return len(self._locks)


@dataclass
class RetryPolicy:
    """
    Exponential backoff.

    Delay = min(base_delay * (multiplier ** attempt), max_delay)
    """

    max_retries: int = SYNC_MAX_RETRIES
    base_delay: float = SYNC_RETRY_BASE_DELAY
    max_delay: float = SYNC_RETRY_MAX_DELAY
    multiplier: float = 2.0

    def next_delay(self, attempt: int) -> float:
        return min(self.base_delay * (self.multiplier ** attempt), self.max_delay)

    def should_retry(self, attempt: int) -> bool:
        """attempt is the zero-based number of retries already made."""
        return attempt < self.max_retries

    def sleep(self, attempt: int) -> None:
        delay = self.next_delay(attempt)
        if delay > 0:
            time.sleep(delay)
