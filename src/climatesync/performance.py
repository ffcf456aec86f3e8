"""
Per-model performance tracking

Keeps a running-average record per model name. Updates are serialized per
record so concurrent analyses only contend when they touch the same model.
"""

import logging
import threading
from typing import Optional

from .models import PerformanceRecord, utc_now
from .observability.metrics import get_metrics

logger = logging.getLogger(__name__)


class PerformanceTracker:
    """
    Thread-safe running statistics for model invocations

    A registry lock guards only the creation of per-model locks; record
    updates hold just the lock of the model being updated.
    """

    def __init__(self):
        self._records: dict[str, PerformanceRecord] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, model_name: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(model_name)
            if lock is None:
                lock = threading.Lock()
                self._locks[model_name] = lock
                self._records[model_name] = PerformanceRecord(model_name=model_name)
            return lock

    def record(
        self,
        model_name: str,
        response_time_ms: float,
        confidence: float,
        success: bool,
    ) -> PerformanceRecord:
        """
        Fold one invocation into the model's running averages

        Args:
            model_name: Registered model name
            response_time_ms: Elapsed wall time of the call
            confidence: Result confidence (0 for failures)
            success: Whether the call produced a result

        Returns:
            A copy of the updated record
        """
        with self._lock_for(model_name):
            record = self._records[model_name]
            calls = record.total_calls + 1

            record.total_calls = calls
            if success:
                record.successful_calls += 1
            record.average_response_time_ms += (
                response_time_ms - record.average_response_time_ms
            ) / calls
            record.average_confidence += (confidence - record.average_confidence) / calls
            record.last_updated = utc_now()

            snapshot = record.model_copy()

        metrics = get_metrics()
        if metrics:
            metrics.record_model_invocation(model_name, success, response_time_ms)

        if not success:
            logger.debug(
                f"Model {model_name} failure recorded "
                f"({snapshot.successful_calls}/{snapshot.total_calls} successful)"
            )

        return snapshot

    def get(self, model_name: str) -> Optional[PerformanceRecord]:
        """Get a copy of one model's record"""
        with self._registry_lock:
            lock = self._locks.get(model_name)
        if lock is None:
            return None
        with lock:
            return self._records[model_name].model_copy()

    def snapshot(self) -> dict[str, PerformanceRecord]:
        """Get copies of all records"""
        with self._registry_lock:
            names = list(self._locks)
        result = {}
        for name in names:
            record = self.get(name)
            if record is not None:
                result[name] = record
        return result

    def reset(self) -> None:
        with self._registry_lock:
            self._records.clear()
            self._locks.clear()
