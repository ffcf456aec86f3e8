"""
Adapters for external systems

In-process implementations of the collaborator protocols:
- StaticWeatherProvider: preloaded observations
- InMemoryPersistenceGateway: JSON-serialized tagged records
- InMemoryBroadcaster: bounded event log with per-topic subscribers
- StaticThresholdSource / YamlThresholdSource: threshold ladders
"""

from .memory import (
    AdvisoryRecord,
    AlertRecord,
    InMemoryBroadcaster,
    InMemoryPersistenceGateway,
    ProviderError,
    StaticWeatherProvider,
)
from .thresholds import StaticThresholdSource, YamlThresholdSource, parse_thresholds

__all__ = [
    "StaticWeatherProvider",
    "InMemoryPersistenceGateway",
    "InMemoryBroadcaster",
    "ProviderError",
    "AdvisoryRecord",
    "AlertRecord",
    "StaticThresholdSource",
    "YamlThresholdSource",
    "parse_thresholds",
]
