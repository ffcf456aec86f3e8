"""
Concurrency control for climatesync

Provides a statistics-aware semaphore for bounding concurrent analyses and
per-key locks for serializing alert state transitions.
"""

from .locks import KeyedLockManager
from .semaphore import AsyncSemaphore, SemaphoreStats

__all__ = [
    "AsyncSemaphore",
    "SemaphoreStats",
    "KeyedLockManager",
]
