"""
Bounded admission for concurrent analyses

Each analysis holds one slot for its whole fan-out. Waiting for a slot
counts against the caller's deadline, so the acquire timeout is whatever
is left of it.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class SemaphoreStats:
    """Point-in-time view of one semaphore"""

    name: str
    capacity: int
    in_use: int
    waiting: int
    peak_in_use: int
    total_acquisitions: int
    total_timeouts: int
    average_hold_ms: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class AsyncSemaphore:
    """asyncio.Semaphore that counts waiters, holders and timeouts"""

    def __init__(self, capacity: int, name: str = "semaphore"):
        if capacity < 1:
            raise ValueError(f"Semaphore '{name}' needs at least one slot, got {capacity}")
        self.name = name
        self.capacity = capacity
        self._slots = asyncio.Semaphore(capacity)

        self._in_use = 0
        self._waiting = 0
        self._peak = 0
        self._acquisitions = 0
        self._timeouts = 0
        self._held_ms = 0.0

    @asynccontextmanager
    async def acquire(self, timeout: Optional[float] = None):
        """
        Hold one slot for the duration of the block

        Raises:
            asyncio.TimeoutError: If no slot frees up within ``timeout`` seconds
        """
        self._waiting += 1
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout)
        except asyncio.TimeoutError:
            self._timeouts += 1
            logger.warning(f"No free '{self.name}' slot within {timeout:.2f}s")
            raise
        finally:
            self._waiting -= 1

        self._in_use += 1
        self._acquisitions += 1
        self._peak = max(self._peak, self._in_use)
        started = time.perf_counter()
        try:
            yield
        finally:
            self._held_ms += (time.perf_counter() - started) * 1000
            self._in_use -= 1
            self._slots.release()

    def locked(self) -> bool:
        """True when every slot is taken"""
        return self._slots.locked()

    def get_stats(self) -> SemaphoreStats:
        return SemaphoreStats(
            name=self.name,
            capacity=self.capacity,
            in_use=self._in_use,
            waiting=self._waiting,
            peak_in_use=self._peak,
            total_acquisitions=self._acquisitions,
            total_timeouts=self._timeouts,
            average_hold_ms=round(self._held_ms / self._acquisitions, 3) if self._acquisitions else 0.0,
        )
