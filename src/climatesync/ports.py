"""
Collaborator interfaces consumed by the core

The core never knows which weather provider, storage engine or transport
sits behind these protocols.
"""

from collections.abc import Sequence
from typing import Any, Optional, Protocol, runtime_checkable

from .models import Advisory, Alert, Observation, ThresholdLevel


@runtime_checkable
class WeatherProvider(Protocol):
    """Source of weather observations"""

    async def fetch_current(self, location_id: str) -> Observation:
        ...

    async def fetch_history(self, location_id: str, days: int) -> list[Observation]:
        ...


@runtime_checkable
class PersistenceGateway(Protocol):
    """
    Storage for advisories and alerts

    Implementations must provide read-after-write consistency for the
    caller's own recent writes.
    """

    async def store_advisory(self, location_id: str, advisory: Advisory) -> None:
        ...

    async def store_alert(self, alert: Alert) -> None:
        ...

    async def query_recent_advisory(self, location_id: str) -> Optional[Advisory]:
        ...


@runtime_checkable
class Broadcaster(Protocol):
    """Fire-and-forget notification to subscribers"""

    async def publish(self, topic: str, payload: dict[str, Any]) -> None:
        ...


@runtime_checkable
class ThresholdConfigSource(Protocol):
    """Provides threshold ladders at startup"""

    def load_thresholds(self) -> Sequence[ThresholdLevel]:
        ...
