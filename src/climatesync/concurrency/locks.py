"""
Per-key async locks

Serializes work on one key (an alert key, a model name) without blocking
unrelated keys.
"""

import asyncio
import logging
from collections.abc import Hashable
from contextlib import asynccontextmanager
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)


class KeyedLockManager(Generic[K]):
    """
    Lazily created asyncio.Lock per key

    Locks are never removed while the manager lives; the key space is
    bounded by the monitored locations times the alert types.
    """

    def __init__(self, name: str = "keyed"):
        self.name = name
        self._locks: dict[K, asyncio.Lock] = {}
        self._contentions = 0

    def get_lock(self, key: K) -> asyncio.Lock:
        """Get or create the lock for a key"""
        lock = self._locks.get(key)
        if lock is None:
            # No await between lookup and insert, so this is race-free on one loop
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def acquire(self, key: K):
        """Hold the lock for ``key`` for the duration of the block"""
        lock = self.get_lock(key)
        if lock.locked():
            self._contentions += 1
            logger.debug(f"Lock manager '{self.name}' waiting on key {key!r}")
        async with lock:
            yield

    @property
    def contentions(self) -> int:
        """Number of acquisitions that had to wait for another holder"""
        return self._contentions

    def __len__(self) -> int:
        return len(self._locks)
