"""
Pytest configuration and shared fixtures for climatesync tests

Provides a controllable clock, stub models, sample observations and
in-memory collaborators.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pytest

from climatesync.adapters import InMemoryBroadcaster, InMemoryPersistenceGateway
from climatesync.alerts import AlertEvaluator, AlertService, AlertStore
from climatesync.config import ClimateSyncConfig
from climatesync.models import (
    AnalysisRequest,
    EmptyPrediction,
    FarmProfile,
    Location,
    Observation,
)
from climatesync.predictors import PredictionContext, PredictorBase

START = datetime(2025, 6, 1, 6, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock whose time only moves when told to; sleeps return at once"""

    def __init__(self, start: datetime = START):
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
        await asyncio.sleep(0)


class StubPredictor(PredictorBase):
    """Configurable model for orchestrator tests"""

    def __init__(
        self,
        name: str,
        prediction=None,
        confidence: float = 0.8,
        delay: float = 0.0,
        error: Optional[Exception] = None,
        depends_on: tuple[str, ...] = (),
        timeout: float = 5.0,
        config: Optional[ClimateSyncConfig] = None,
    ):
        self.name = name
        self.depends_on = tuple(depends_on)
        super().__init__(config or ClimateSyncConfig())
        self.prediction = prediction or EmptyPrediction()
        self.confidence = confidence
        self.delay = delay
        self.error = error
        self.timeout = timeout
        self.contexts: list[PredictionContext] = []

    async def _predict(self, context: PredictionContext):
        self.contexts.append(context)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.prediction, self.confidence

    def get_timeout(self) -> float:
        return self.timeout


@pytest.fixture
def test_config():
    """Provide a test configuration with safe defaults"""
    config = ClimateSyncConfig()
    config.telemetry.enabled = False
    config.scheduler.cold_start_delay = 30.0
    config.scheduler.inter_item_delay = 1.0
    return config


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def delhi():
    return Location(id="delhi", name="Delhi", latitude=28.61, longitude=77.21)


@pytest.fixture
def make_observation():
    """Factory for observations at Delhi"""

    def _make(rainfall: float = 0.0, temperature: Optional[float] = 30.0, **kwargs) -> Observation:
        values = {
            "location_id": "delhi",
            "location_name": "Delhi",
            "observed_at": START,
            "temperature": temperature,
            "humidity": 55.0,
            "rainfall": rainfall,
        }
        values.update(kwargs)
        return Observation(**values)

    return _make


@pytest.fixture
def sample_request(delhi, make_observation):
    return AnalysisRequest(
        location=delhi,
        observation=make_observation(rainfall=2.0, temperature=31.0),
        farm_profile=FarmProfile(size=5.0, soil_type="loam", current_crops=["rice"]),
        time_horizon_days=7,
    )


@pytest.fixture
def sample_request_data():
    """Provide sample request data as dictionary"""
    return {
        "location": {"id": "delhi", "name": "Delhi", "latitude": 28.61, "longitude": 77.21},
        "observation": {
            "location_id": "delhi",
            "location_name": "Delhi",
            "temperature": 31.0,
            "humidity": 55.0,
            "rainfall": 2.0,
        },
        "farm_profile": {"size": 5.0, "soil_type": "loam", "current_crops": ["rice"]},
        "scope": "full",
    }


@pytest.fixture
def broadcaster():
    return InMemoryBroadcaster()


@pytest.fixture
def persistence():
    return InMemoryPersistenceGateway()


@pytest.fixture
def evaluator():
    return AlertEvaluator()


@pytest.fixture
def alert_store(evaluator):
    return AlertStore(evaluator)


@pytest.fixture
def alert_service(evaluator, alert_store, broadcaster, persistence, fake_clock):
    return AlertService(
        evaluator, alert_store, broadcaster=broadcaster, persistence=persistence, clock=fake_clock
    )


@pytest.fixture
def temp_dir(tmp_path) -> Path:
    """Provide a temporary directory for testing"""
    return tmp_path


@pytest.fixture
def thresholds_file(temp_dir):
    path = temp_dir / "thresholds.yml"
    path.write_text(
        """
thresholds:
  FLOOD: {LOW: 4, MEDIUM: 8, HIGH: 16, CRITICAL: 40}
  HEAT:
    unit: "°C"
    levels: {LOW: 36, MEDIUM: 41, HIGH: 46, CRITICAL: 51}
""",
        encoding="utf-8",
    )
    return path


def pytest_configure(config):
    """Configure custom pytest markers"""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line(
        "markers", "integration: Integration tests across multiple components"
    )
