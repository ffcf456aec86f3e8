"""Per-location refresh job run by the scheduler"""

import logging
from collections.abc import Mapping
from typing import Optional

from .alerts import AlertService
from .config import SchedulerConfig
from .models import Advisory, AnalysisRequest, FarmProfile, Location
from .observability import set_attribute, trace_async
from .orchestrator import Orchestrator
from .ports import PersistenceGateway, WeatherProvider

logger = logging.getLogger(__name__)


class LocationPipeline:
    """
    Sweep, fetch, alert, analyze and store for one location

    A provider failure on the current observation propagates so the
    scheduler can count the location as failed; a missing history only
    weakens the analysis.
    """

    def __init__(
        self,
        weather_provider: WeatherProvider,
        orchestrator: Orchestrator,
        alert_service: AlertService,
        persistence: Optional[PersistenceGateway] = None,
        config: Optional[SchedulerConfig] = None,
        deadline: Optional[float] = None,
        locations: Optional[Mapping[str, Location]] = None,
        farm_profiles: Optional[Mapping[str, FarmProfile]] = None,
    ):
        self.weather_provider = weather_provider
        self.orchestrator = orchestrator
        self.alert_service = alert_service
        self.persistence = persistence
        self.config = config or SchedulerConfig()
        self.deadline = deadline
        self.locations = dict(locations or {})
        self.farm_profiles = dict(farm_profiles or {})

    @trace_async("pipeline.refresh", record_args=True)
    async def __call__(self, location_id: str) -> Advisory:
        return await self.refresh(location_id)

    async def refresh(self, location_id: str) -> Advisory:
        set_attribute("location.id", location_id)
        await self.alert_service.sweep_expired()

        observation = await self.weather_provider.fetch_current(location_id)

        try:
            history = await self.weather_provider.fetch_history(
                location_id, self.config.history_days
            )
        except Exception as e:
            logger.warning(f"History unavailable for {location_id}, continuing without: {e}")
            history = []

        await self.alert_service.analyze_observation(observation)

        location = self.locations.get(location_id) or Location(
            id=location_id, name=observation.location_name or location_id
        )
        request = AnalysisRequest(
            location=location,
            observation=observation,
            history=history,
            farm_profile=self.farm_profiles.get(location_id, FarmProfile()),
            scope=self.config.analysis_scope,
        )
        advisory = await self.orchestrator.run_analysis(request, deadline=self.deadline)

        if self.persistence is not None:
            await self.persistence.store_advisory(location_id, advisory)

        logger.info(
            f"Refreshed {location_id}: {advisory.status.value}, "
            f"risk {advisory.risk_assessment.overall_risk_level}"
        )
        return advisory
