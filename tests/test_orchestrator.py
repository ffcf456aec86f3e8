"""
Test suite for the orchestrator

Tests execution planning, failure isolation, timeouts, the analysis
deadline and the module-level entry point.
"""

from itertools import combinations

import pytest

from climatesync.config import ClimateSyncConfig, set_config
from climatesync.errors import InitializationError, NotInitializedError
from climatesync.models import (
    AdvisoryStatus,
    AnalysisScope,
    EnergyPlan,
    ResultStatus,
    SoilAssessment,
    WeatherForecast,
)
from climatesync.orchestrator import Orchestrator, build_execution_plan, run_analysis
from climatesync.performance import PerformanceTracker

from conftest import StubPredictor

MODEL_NAMES = ["weather", "soil", "crop", "irrigation", "energy", "alert"]
DEPENDENCIES = {"irrigation": ("soil", "weather"), "energy": ("weather",), "alert": ("weather",)}


def stub_models(failing=(), **overrides):
    models = []
    for name in MODEL_NAMES:
        kwargs = {"depends_on": DEPENDENCIES.get(name, ())}
        if name in failing:
            kwargs["error"] = RuntimeError(f"{name} exploded")
        kwargs.update(overrides.get(name, {}))
        models.append(StubPredictor(name, **kwargs))
    return models


async def ready(models, config=None, tracker=None):
    orchestrator = Orchestrator(models, tracker=tracker, config=config or ClimateSyncConfig())
    await orchestrator.initialize()
    return orchestrator


class TestExecutionPlan:
    """Test dependency layering"""

    def test_two_phases(self):
        plan = build_execution_plan({model.name: model for model in stub_models()})
        assert plan == [["weather", "soil", "crop"], ["irrigation", "energy", "alert"]]

    def test_unregistered_dependency_ignored(self):
        models = [StubPredictor("irrigation", depends_on=("soil", "weather"))]
        assert build_execution_plan({m.name: m for m in models}) == [["irrigation"]]

    def test_cycle_rejected(self):
        models = [StubPredictor("a", depends_on=("b",)), StubPredictor("b", depends_on=("a",))]
        with pytest.raises(InitializationError, match="cycle"):
            build_execution_plan({m.name: m for m in models})


class TestLifecycle:
    """Test initialization requirements"""

    @pytest.mark.asyncio
    async def test_run_before_initialize(self, sample_request):
        orchestrator = Orchestrator(stub_models(), config=ClimateSyncConfig())
        with pytest.raises(NotInitializedError):
            await orchestrator.run_analysis(sample_request)

    @pytest.mark.asyncio
    async def test_initialize_failure_propagates(self):
        class Unloadable(StubPredictor):
            async def _load(self):
                raise OSError("model file missing")

        orchestrator = Orchestrator(
            [StubPredictor("weather"), Unloadable("soil")], config=ClimateSyncConfig()
        )
        with pytest.raises(InitializationError, match="model file missing"):
            await orchestrator.initialize()
        assert not orchestrator.initialized

    def test_duplicate_names_rejected(self):
        with pytest.raises(InitializationError):
            Orchestrator([StubPredictor("soil"), StubPredictor("soil")], config=ClimateSyncConfig())


class TestResilience:
    """Failing models never fail the analysis"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("size", [1, 3, 6])
    async def test_any_subset_failing(self, sample_request, size):
        for failing in list(combinations(MODEL_NAMES, size))[:4]:
            tracker = PerformanceTracker()
            orchestrator = await ready(stub_models(failing=failing), tracker=tracker)

            advisory = await orchestrator.run_analysis(sample_request)

            assert 0.0 <= advisory.overall_confidence <= 1.0
            assert 0 <= advisory.overall_score <= 100
            for name in failing:
                assert advisory.results[name].status == ResultStatus.FAILED
                assert tracker.get(name).total_calls == 1
                assert tracker.get(name).successful_calls == 0
            assert set(advisory.system_metrics.models_failed) == set(failing)

    @pytest.mark.asyncio
    async def test_all_models_failed(self, sample_request):
        orchestrator = await ready(stub_models(failing=MODEL_NAMES))

        advisory = await orchestrator.run_analysis(sample_request)

        assert advisory.status == AdvisoryStatus.ALL_MODELS_FAILED
        assert advisory.overall_confidence == 0.1
        assert advisory.overall_score == 70
        assert advisory.action_priorities == []

    @pytest.mark.asyncio
    async def test_weather_throws_soil_reports(self, sample_request):
        """Score and confidence come from the soil model alone"""
        models = [
            StubPredictor("weather", error=RuntimeError("provider offline")),
            StubPredictor("soil", prediction=SoilAssessment(health_score=55), confidence=0.9),
        ]
        orchestrator = await ready(models)

        advisory = await orchestrator.run_analysis(sample_request)

        assert advisory.status == AdvisoryStatus.PARTIAL
        assert advisory.overall_score == 55
        assert advisory.overall_confidence == pytest.approx(0.9)
        soil_actions = [a for a in advisory.action_priorities if a.category == "soil_management"]
        assert [a.priority for a in soil_actions] == ["high"]

    @pytest.mark.asyncio
    async def test_timeout_becomes_placeholder(self, sample_request):
        models = [
            StubPredictor("weather", delay=0.5, timeout=0.05),
            StubPredictor("soil", prediction=SoilAssessment(health_score=80)),
        ]
        tracker = PerformanceTracker()
        orchestrator = await ready(models, tracker=tracker)

        advisory = await orchestrator.run_analysis(sample_request, deadline=5.0)

        assert advisory.status == AdvisoryStatus.PARTIAL
        assert advisory.results["weather"].metadata["reason"] == "timeout"
        assert tracker.get("weather").successful_calls == 0


class TestDependencies:
    @pytest.mark.asyncio
    async def test_phase_two_sees_only_successful_upstream(self, sample_request):
        models = stub_models(
            failing=["soil"],
            weather={"prediction": WeatherForecast(trend="warming")},
        )
        orchestrator = await ready(models)

        await orchestrator.run_analysis(sample_request)

        irrigation = next(m for m in models if m.name == "irrigation")
        [ctx] = irrigation.contexts
        assert set(ctx.upstream) == {"weather"}
        assert ctx.upstream["weather"].predictions.trend == "warming"

    @pytest.mark.asyncio
    async def test_scope_limits_models(self, sample_request):
        models = stub_models()
        orchestrator = await ready(models)
        request = sample_request.model_copy(update={"scope": [AnalysisScope.SOIL]})

        advisory = await orchestrator.run_analysis(request)

        assert list(advisory.results) == ["soil"]
        assert all(not m.contexts for m in models if m.name != "soil")


class TestDeadline:
    """Whole-call deadline handling"""

    @pytest.mark.asyncio
    async def test_deadline_returns_partial_advisory(self, sample_request):
        models = stub_models(
            soil={"prediction": SoilAssessment(health_score=40), "confidence": 0.8},
            crop={"delay": 2.0},
        )
        tracker = PerformanceTracker()
        orchestrator = await ready(models, tracker=tracker)

        advisory = await orchestrator.run_analysis(sample_request, deadline=0.2)

        assert advisory.status == AdvisoryStatus.DEADLINE_EXCEEDED
        assert advisory.results["crop"].is_placeholder
        assert advisory.results["crop"].status == ResultStatus.FAILED
        assert advisory.results["crop"].metadata["reason"] == "cancelled at deadline"
        for name in ["irrigation", "energy", "alert"]:
            assert advisory.results[name].status == ResultStatus.SKIPPED
            assert tracker.get(name) is None
        # 2 of 6 completed at 0.8 confidence each
        assert advisory.overall_confidence == pytest.approx(0.27, abs=0.01)
        assert tracker.get("crop").total_calls == 1

    @pytest.mark.asyncio
    async def test_deadline_confidence_floor(self, sample_request):
        models = [StubPredictor("weather", delay=2.0)]
        orchestrator = await ready(models)

        advisory = await orchestrator.run_analysis(sample_request, deadline=0.05)

        assert advisory.status == AdvisoryStatus.DEADLINE_EXCEEDED
        assert advisory.overall_confidence == 0.1


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_levels(self, sample_request):
        orchestrator = await ready(stub_models())
        await orchestrator.run_analysis(sample_request)
        assert orchestrator.get_system_health()["status"] == "healthy"

        failing = await ready(stub_models(failing=["weather", "soil", "crop", "energy"]))
        await failing.run_analysis(sample_request)
        health = failing.get_system_health()
        assert health["status"] == "critical"
        assert health["execution_plan"][0] == ["weather", "soil", "crop"]

        degraded = await ready(stub_models(failing=["weather", "soil"]))
        await degraded.run_analysis(sample_request)
        assert degraded.get_system_health()["status"] == "degraded"


class TestEntryPoint:
    @pytest.mark.asyncio
    async def test_run_analysis_dict(self, sample_request_data):
        set_config(ClimateSyncConfig())
        try:
            result = await run_analysis(sample_request_data)
        finally:
            set_config(None)

        assert result["location_id"] == "delhi"
        assert result["status"] in {"SUCCESS", "PARTIAL"}
        assert set(result["results"]) == {"weather", "soil", "crop", "irrigation", "energy", "alert"}
        assert 0 <= result["overall_score"] <= 100
        assert result["results"]["energy"]["predictions"]["kind"] == "energy"

    def test_energy_plan_kind(self):
        assert EnergyPlan().kind == "energy"
