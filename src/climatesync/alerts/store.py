"""
Active alert state

Holds at most one active alert per (location, alert type). The decision
between create, duplicate, supersede and clear is taken and applied under
the key's lock, so two concurrent evaluations of the same key cannot both
decide an alert is new.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from ..concurrency import KeyedLockManager
from ..models import Alert, AlertKey
from .evaluator import AlertEvaluator, Evaluation

logger = logging.getLogger(__name__)


class TransitionKind(str, Enum):
    CREATED = "created"
    DUPLICATE = "duplicate"
    SUPERSEDED = "superseded"
    CLEARED = "cleared"
    NOOP = "noop"


@dataclass
class Transition:
    """
    Result of applying one evaluation to the store

    ``current`` is the active alert after the transition, ``retired`` holds
    alerts deactivated by it (an expired predecessor and/or the superseded or
    cleared alert).
    """

    kind: TransitionKind
    key: AlertKey
    current: Optional[Alert] = None
    retired: list[Alert] = field(default_factory=list)

    @property
    def emitted(self) -> Optional[Alert]:
        """Alert that is new and must be broadcast, if any"""
        if self.kind in (TransitionKind.CREATED, TransitionKind.SUPERSEDED):
            return self.current
        return None


class AlertStore:
    """In-process registry of active alerts with a bounded history"""

    def __init__(self, evaluator: AlertEvaluator, history_limit: int = 500):
        self.evaluator = evaluator
        self._active: dict[AlertKey, Alert] = {}
        self._history: deque[Alert] = deque(maxlen=history_limit)
        self._locks: KeyedLockManager[AlertKey] = KeyedLockManager("alerts")

    def _retire(self, alert: Alert, now: datetime, reason: str) -> Alert:
        retired = alert.deactivate(now, reason)
        self._active.pop(alert.key, None)
        self._history.append(retired)
        logger.info(
            f"{alert.alert_type.value} alert for {alert.location_id} "
            f"({alert.level.value}) deactivated: {reason}"
        )
        return retired

    async def apply(self, evaluation: Evaluation, now: datetime) -> Transition:
        """Decide and apply the state transition for one evaluation"""
        key = evaluation.key
        async with self._locks.acquire(key):
            retired: list[Alert] = []
            current = self._active.get(key)

            if current is not None and current.is_expired(now):
                retired.append(self._retire(current, now, "expired"))
                current = None

            if evaluation.level is None:
                if current is None:
                    return Transition(TransitionKind.NOOP, key, retired=retired)
                retired.append(self._retire(current, now, "cleared"))
                return Transition(TransitionKind.CLEARED, key, retired=retired)

            if current is not None and current.level == evaluation.level:
                return Transition(TransitionKind.DUPLICATE, key, current=current, retired=retired)

            kind = TransitionKind.CREATED
            if current is not None:
                retired.append(self._retire(current, now, "superseded"))
                kind = TransitionKind.SUPERSEDED

            alert = self.evaluator.build_alert(evaluation, now)
            self._active[key] = alert
            logger.info(
                f"{alert.alert_type.value} alert for {alert.location_id} "
                f"raised at {alert.level.value} ({kind.value})"
            )
            return Transition(kind, key, current=alert, retired=retired)

    async def sweep(self, now: datetime) -> list[Alert]:
        """
        Deactivate every active alert past its expiry

        Each alert is deactivated exactly once; repeated sweeps find nothing.
        """
        expired = []
        for key in [k for k, alert in self._active.items() if alert.is_expired(now)]:
            async with self._locks.acquire(key):
                alert = self._active.get(key)
                # Re-check under the lock; an apply may have replaced it
                if alert is not None and alert.is_expired(now):
                    expired.append(self._retire(alert, now, "expired"))
        if expired:
            logger.info(f"Alert sweep expired {len(expired)} alert(s)")
        return expired

    def get(self, key: AlertKey) -> Optional[Alert]:
        return self._active.get(key)

    def get_active(self, location_id: Optional[str] = None) -> list[Alert]:
        alerts = sorted(self._active.values(), key=lambda alert: alert.created_at)
        if location_id is None:
            return alerts
        return [alert for alert in alerts if alert.location_id == location_id]

    @property
    def history(self) -> list[Alert]:
        """Deactivated alerts, oldest first"""
        return list(self._history)

    @property
    def lock_contentions(self) -> int:
        """Applies and sweeps that waited on another writer for the same key"""
        return self._locks.contentions

    def __len__(self) -> int:
        return len(self._active)
