"""
In-memory adapters for development and tests

Stand-ins for the weather provider, storage engine and realtime transport
so the service can run without external systems.
"""

import asyncio
import json
import logging
from collections import defaultdict, deque
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from ..models import Advisory, Alert, Observation, utc_now

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised by the static provider for unknown locations"""


class StaticWeatherProvider:
    """
    Serves preloaded observations

    ``fetch_current`` returns the latest observation per location; history
    is everything before it.
    """

    def __init__(self, observations: Optional[Iterable[Observation]] = None):
        self._observations: dict[str, list[Observation]] = defaultdict(list)
        for observation in observations or []:
            self.add(observation)

    def add(self, observation: Observation) -> None:
        series = self._observations[observation.location_id]
        series.append(observation)
        series.sort(key=lambda item: item.observed_at)

    async def fetch_current(self, location_id: str) -> Observation:
        series = self._observations.get(location_id)
        if not series:
            raise ProviderError(f"No observations for location {location_id}")
        return series[-1]

    async def fetch_history(self, location_id: str, days: int) -> list[Observation]:
        series = self._observations.get(location_id, [])
        if len(series) < 2:
            return []
        latest = series[-1].observed_at
        return [
            item
            for item in series[:-1]
            if (latest - item.observed_at).total_seconds() <= days * 86400
        ]


class AdvisoryRecord(BaseModel):
    kind: Literal["advisory"] = "advisory"
    location_id: str
    advisory: Advisory


class AlertRecord(BaseModel):
    kind: Literal["alert"] = "alert"
    alert: Alert


StoredRecord = Annotated[Union[AdvisoryRecord, AlertRecord], Field(discriminator="kind")]


class InMemoryPersistenceGateway:
    """
    Persistence gateway backed by JSON strings

    Every write is serialized as a tagged record and every read is validated
    back through the record schema, so nothing stored is an untyped blob.
    """

    def __init__(self):
        self._records: list[str] = []
        self._latest_advisory: dict[str, int] = {}
        self._adapter = TypeAdapter(StoredRecord)
        self._lock = asyncio.Lock()

    async def store_advisory(self, location_id: str, advisory: Advisory) -> None:
        record = AdvisoryRecord(location_id=location_id, advisory=advisory)
        async with self._lock:
            self._records.append(record.model_dump_json())
            self._latest_advisory[location_id] = len(self._records) - 1

    async def store_alert(self, alert: Alert) -> None:
        record = AlertRecord(alert=alert)
        async with self._lock:
            self._records.append(record.model_dump_json())

    async def query_recent_advisory(self, location_id: str) -> Optional[Advisory]:
        async with self._lock:
            index = self._latest_advisory.get(location_id)
            if index is None:
                return None
            raw = self._records[index]
        record = self._adapter.validate_json(raw)
        return record.advisory

    def records(self) -> list[Union[AdvisoryRecord, AlertRecord]]:
        """All stored records, oldest first"""
        return [self._adapter.validate_json(raw) for raw in self._records]

    def alerts(self, alert_id: Optional[str] = None) -> list[Alert]:
        """Every stored alert version, optionally for one alert id"""
        return [
            record.alert
            for record in self.records()
            if isinstance(record, AlertRecord)
            and (alert_id is None or record.alert.alert_id == alert_id)
        ]


Subscriber = Callable[[str, dict[str, Any]], Awaitable[None]]


class InMemoryBroadcaster:
    """
    Fire-and-forget broadcaster with a bounded event log

    Subscriber errors are logged and do not reach the publisher.
    """

    def __init__(self, max_events: int = 1000):
        self.events: deque[dict[str, Any]] = deque(maxlen=max_events)
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)

    def subscribe(self, topic: str, callback: Subscriber) -> None:
        self._subscribers[topic].append(callback)

    def unsubscribe(self, topic: str, callback: Subscriber) -> None:
        callbacks = self._subscribers.get(topic, [])
        if callback in callbacks:
            callbacks.remove(callback)

    async def publish(self, topic: str, payload: Mapping[str, Any]) -> None:
        # Round-trip through JSON so subscribers never share mutable state
        message = json.loads(json.dumps(dict(payload), default=str))
        self.events.append({"topic": topic, "payload": message, "published_at": utc_now()})

        for callback in list(self._subscribers.get(topic, [])):
            try:
                await callback(topic, message)
            except Exception as e:
                logger.warning(f"Subscriber on {topic} failed: {e}")

    def events_for(self, topic: str) -> list[dict[str, Any]]:
        return [event["payload"] for event in self.events if event["topic"] == topic]
