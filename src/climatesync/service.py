"""
Service wiring

Assembles the tracker, orchestrator, alerting and scheduler around the
injected collaborators and owns their lifecycle.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from .adapters import (
    InMemoryBroadcaster,
    InMemoryPersistenceGateway,
    StaticWeatherProvider,
    YamlThresholdSource,
)
from .alerts import AlertEvaluator, AlertService, AlertStore, load_thresholds
from .clock import Clock, SystemClock
from .config import ClimateSyncConfig, get_config
from .orchestrator import Orchestrator
from .observability import initialize_observability, shutdown_observability
from .performance import PerformanceTracker
from .pipeline import LocationPipeline
from .ports import Broadcaster, PersistenceGateway, ThresholdConfigSource, WeatherProvider
from .scheduler import Scheduler

logger = logging.getLogger(__name__)


@dataclass
class ClimateSyncService:
    """Fully wired advisory and alerting service"""

    config: ClimateSyncConfig
    tracker: PerformanceTracker
    orchestrator: Orchestrator
    alert_service: AlertService
    pipeline: LocationPipeline
    scheduler: Scheduler
    started: bool = field(default=False, init=False)
    owns_telemetry: bool = field(default=False, init=False)

    @classmethod
    def build(
        cls,
        config: Optional[ClimateSyncConfig] = None,
        weather_provider: Optional[WeatherProvider] = None,
        persistence: Optional[PersistenceGateway] = None,
        broadcaster: Optional[Broadcaster] = None,
        threshold_source: Optional[ThresholdConfigSource] = None,
        clock: Optional[Clock] = None,
        orchestrator: Optional[Orchestrator] = None,
    ) -> "ClimateSyncService":
        """
        Wire every component

        Collaborators that are not given fall back to in-memory adapters.
        Thresholds come from ``threshold_source``, then from
        ``alerts.thresholds_file``, then from the defaults.
        """
        config = config or get_config()
        clock = clock or SystemClock()
        weather_provider = weather_provider or StaticWeatherProvider()
        persistence = persistence or InMemoryPersistenceGateway()
        broadcaster = broadcaster or InMemoryBroadcaster()

        if threshold_source is None and config.alerts.thresholds_file:
            threshold_source = YamlThresholdSource(config.alerts.thresholds_file)

        tracker = orchestrator.tracker if orchestrator else PerformanceTracker()
        orchestrator = orchestrator or Orchestrator.from_config(config, tracker=tracker)

        evaluator = AlertEvaluator(
            load_thresholds(threshold_source),
            ttl_seconds=config.alerts.ttl_seconds,
            default_ttl_seconds=config.alerts.default_ttl_seconds,
        )
        store = AlertStore(evaluator, history_limit=config.alerts.history_limit)
        alert_service = AlertService(
            evaluator, store, broadcaster=broadcaster, persistence=persistence, clock=clock
        )

        pipeline = LocationPipeline(
            weather_provider,
            orchestrator,
            alert_service,
            persistence=persistence,
            config=config.scheduler,
            deadline=config.orchestrator.analysis_deadline,
        )
        scheduler = Scheduler(pipeline, config=config.scheduler, clock=clock)

        return cls(
            config=config,
            tracker=tracker,
            orchestrator=orchestrator,
            alert_service=alert_service,
            pipeline=pipeline,
            scheduler=scheduler,
        )

    async def start(self) -> None:
        """
        Initialize the models and start the refresh loop

        Raises:
            InitializationError: If any model cannot be initialized
        """
        if self.started:
            return
        self.owns_telemetry = initialize_observability(self.config.telemetry)
        try:
            await self.orchestrator.initialize()
        except Exception:
            self._release_telemetry()
            raise
        if self.config.scheduler.enabled:
            self.scheduler.start()
        else:
            logger.info("Scheduler disabled; refreshes run on demand only")
        self.started = True
        logger.info("ClimateSync service started")

    async def stop(self) -> None:
        if not self.started:
            return
        await self.scheduler.stop()
        self._release_telemetry()
        self.started = False
        logger.info("ClimateSync service stopped")

    def _release_telemetry(self) -> None:
        if self.owns_telemetry:
            shutdown_observability()
            self.owns_telemetry = False

    def health(self) -> dict[str, Any]:
        return {
            **self.orchestrator.get_system_health(),
            "scheduler": self.scheduler.status(),
            "active_alerts": len(self.alert_service.store),
            "alert_lock_contentions": self.alert_service.store.lock_contentions,
        }
