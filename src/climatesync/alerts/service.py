"""
Alert service

Evaluates observations, applies transitions to the store, persists every
state change and broadcasts newly raised alerts once each. Delivery and
storage failures are logged and never undo a transition.
"""

import logging
from typing import Any, Optional

from ..clock import Clock, SystemClock
from ..models import Alert, Observation
from ..observability import add_event, get_metrics, trace_async
from ..ports import Broadcaster, PersistenceGateway
from .evaluator import AlertEvaluator
from .store import AlertStore, Transition

logger = logging.getLogger(__name__)

ALERT_EVENT = "alert_update"


def alert_topic(location_id: str) -> str:
    return f"weather_{location_id}"


def alert_payload(alert: Alert) -> dict[str, Any]:
    """Broadcast payload for a newly raised alert"""
    return {
        "event": ALERT_EVENT,
        "alert_id": alert.alert_id,
        "type": alert.alert_type.value,
        "level": alert.level.value,
        "location_id": alert.location_id,
        "location": alert.location_name or alert.location_id,
        "message": alert.message,
        "timestamp": alert.created_at.isoformat(),
        "expires_at": alert.expires_at.isoformat(),
        "data": {
            "triggering_value": alert.triggering_value,
            "threshold_value": alert.threshold_value,
            "heat_index": alert.heat_index,
        },
    }


class AlertService:
    """Observation in, deduplicated alerts out"""

    def __init__(
        self,
        evaluator: AlertEvaluator,
        store: AlertStore,
        broadcaster: Optional[Broadcaster] = None,
        persistence: Optional[PersistenceGateway] = None,
        clock: Optional[Clock] = None,
    ):
        self.evaluator = evaluator
        self.store = store
        self.broadcaster = broadcaster
        self.persistence = persistence
        self.clock = clock or SystemClock()

    @trace_async("alerts.analyze_observation")
    async def analyze_observation(self, observation: Observation) -> list[Alert]:
        """
        Evaluate one observation and apply the resulting transitions

        Returns:
            Alerts newly raised by this observation (created or superseding)
        """
        now = self.clock.now()
        emitted = []

        for evaluation in self.evaluator.evaluate(observation):
            transition = await self.store.apply(evaluation, now)
            self._record(transition)

            for retired in transition.retired:
                await self._persist(retired)

            alert = transition.emitted
            if alert is not None:
                await self._persist(alert)
                await self._broadcast(alert)
                emitted.append(alert)

        self._update_active_gauge()
        return emitted

    async def sweep_expired(self) -> list[Alert]:
        """Deactivate expired alerts and persist their final state"""
        expired = await self.store.sweep(self.clock.now())
        for alert in expired:
            await self._persist(alert)
        metrics = get_metrics()
        if metrics:
            for alert in expired:
                metrics.record_alert_transition(alert.alert_type.value, "expired")
        self._update_active_gauge()
        return expired

    def get_active_alerts(self, location_id: Optional[str] = None) -> list[Alert]:
        return self.store.get_active(location_id)

    def _record(self, transition: Transition) -> None:
        add_event(
            "alert.transition",
            {"alert.key": f"{transition.key.location_id}:{transition.key.alert_type.value}",
             "alert.transition": transition.kind.value},
        )
        metrics = get_metrics()
        if not metrics:
            return
        metrics.record_alert_transition(
            transition.key.alert_type.value, transition.kind.value
        )
        if transition.emitted is not None:
            metrics.record_alert_emitted(
                transition.emitted.alert_type.value, transition.emitted.level.value
            )

    def _update_active_gauge(self) -> None:
        metrics = get_metrics()
        if metrics:
            metrics.set_active_alerts(len(self.store))

    async def _persist(self, alert: Alert) -> None:
        if self.persistence is None:
            return
        try:
            await self.persistence.store_alert(alert)
        except Exception as e:
            logger.error(f"Failed to persist alert {alert.alert_id}: {e}")

    async def _broadcast(self, alert: Alert) -> None:
        if self.broadcaster is None:
            return
        try:
            await self.broadcaster.publish(alert_topic(alert.location_id), alert_payload(alert))
        except Exception as e:
            logger.error(f"Failed to broadcast alert {alert.alert_id}: {e}")
