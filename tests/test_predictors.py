"""
Test suite for the prediction models

Tests the registry, the base class contract and the built-in heuristics.
"""

import pytest

from climatesync.config import ClimateSyncConfig
from climatesync.errors import InitializationError, InsufficientDataError, PredictionError
from climatesync.models import (
    AnalysisRequest,
    CropRecommendations,
    HazardOutlook,
    IrrigationPlan,
    ModelResult,
    SoilAssessment,
    WeatherForecast,
)
from climatesync.predictors import (
    AlertPredictor,
    CropPredictor,
    EnergyPredictor,
    IrrigationPredictor,
    PredictionContext,
    PredictorBase,
    SoilPredictor,
    WeatherPredictor,
    registry,
)


def context(request, **upstream):
    return PredictionContext(request=request, upstream=upstream)


async def run(predictor_class, request, config=None, **upstream):
    predictor = predictor_class(config or ClimateSyncConfig())
    await predictor.initialize()
    return await predictor.predict(context(request, **upstream))


class TestRegistry:
    """Test predictor registration and creation"""

    def test_builtin_models_registered(self):
        assert {"weather", "soil", "crop", "irrigation", "energy", "alert"} <= set(registry.names())
        assert registry.lookup("soil") is SoilPredictor
        assert "pest" not in registry

    def test_create_enabled_respects_config(self):
        config = ClimateSyncConfig()
        config.models.enabled = ["weather", "soil", "weather"]
        config.models.soil.enabled = False

        predictors = registry.create_enabled_predictors(config)

        assert [predictor.name for predictor in predictors] == ["weather"]

    def test_unknown_enabled_model_fails_startup(self):
        config = ClimateSyncConfig()
        config.models.enabled = ["weather", "wether"]

        with pytest.raises(InitializationError, match="wether"):
            registry.create_enabled_predictors(config)

    def test_name_clash_rejected(self):
        class Impostor(SoilPredictor):
            pass

        with pytest.raises(ValueError, match="soil"):
            registry.register(Impostor)
        assert registry.lookup("soil") is SoilPredictor

    def test_dependencies_declared(self):
        assert IrrigationPredictor.depends_on == ("soil", "weather")
        assert EnergyPredictor.depends_on == ("weather",)
        assert AlertPredictor.depends_on == ("weather",)
        assert WeatherPredictor.depends_on == ()


class TestPredictorBase:
    """Test the shared predict contract"""

    @pytest.mark.asyncio
    async def test_predict_before_initialize(self, sample_request):
        predictor = WeatherPredictor(ClimateSyncConfig())
        with pytest.raises(PredictionError, match="not initialized"):
            await predictor.predict(context(sample_request))

    @pytest.mark.asyncio
    async def test_missing_required_field(self, delhi, make_observation):
        request = AnalysisRequest(location=delhi, observation=make_observation(temperature=None))
        predictor = SoilPredictor(ClimateSyncConfig())
        await predictor.initialize()

        with pytest.raises(InsufficientDataError, match="temperature"):
            await predictor.predict(context(request))
        assert predictor.get_metrics()["failures"] == 1

    @pytest.mark.asyncio
    async def test_initialize_failure_is_wrapped(self):
        class Broken(PredictorBase):
            name = "broken"

            async def _load(self):
                raise RuntimeError("weights missing")

            async def _predict(self, context):
                raise AssertionError

        with pytest.raises(InitializationError, match="weights missing"):
            await Broken(ClimateSyncConfig()).initialize()

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_prediction_error(self, sample_request):
        class Faulty(PredictorBase):
            name = "faulty"

            async def _predict(self, context):
                raise ZeroDivisionError("division by zero")

        predictor = Faulty(ClimateSyncConfig())
        await predictor.initialize()
        with pytest.raises(PredictionError, match="ZeroDivisionError"):
            await predictor.predict(context(sample_request))


class TestBuiltinModels:
    """Test built-in heuristics produce bounded, typed results"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "predictor_class,prediction_type",
        [
            (WeatherPredictor, WeatherForecast),
            (SoilPredictor, SoilAssessment),
            (CropPredictor, CropRecommendations),
            (IrrigationPredictor, IrrigationPlan),
            (AlertPredictor, HazardOutlook),
        ],
    )
    async def test_result_shape(self, sample_request, predictor_class, prediction_type):
        result = await run(predictor_class, sample_request)

        assert isinstance(result, ModelResult)
        assert isinstance(result.predictions, prediction_type)
        assert 0.0 <= result.confidence <= 1.0
        assert result.model_type == predictor_class.name

    @pytest.mark.asyncio
    async def test_weather_forecast_horizon_and_trend(self, sample_request, make_observation):
        history = [
            make_observation(temperature=25.0 + day, observed_at=sample_request.observation.observed_at.replace(day=day))
            for day in range(1, 8)
        ]
        request = sample_request.model_copy(update={"history": history})

        result = await run(WeatherPredictor, request)

        assert len(result.predictions.forecast) == 7
        assert result.predictions.trend == "warming"
        assert result.confidence == pytest.approx(0.76)

    @pytest.mark.asyncio
    async def test_irrigation_uses_upstream_soil(self, sample_request):
        dry = ModelResult(
            model_type="soil",
            predictions=SoilAssessment(health_score=70, moisture_level=20),
            confidence=0.8,
        )
        result = await run(IrrigationPredictor, sample_request, soil=dry)

        assert result.predictions.should_irrigate
        assert result.predictions.soil_moisture_used == 20
        assert result.predictions.recommended_amount_mm == pytest.approx(40.0)

    @pytest.mark.asyncio
    async def test_irrigation_defaults_without_upstream(self, sample_request):
        result = await run(IrrigationPredictor, sample_request)

        assert result.predictions.soil_moisture_used == 50.0
        assert result.confidence == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_alert_outlook_from_forecast(self, sample_request, make_observation):
        request = sample_request.model_copy(
            update={"observation": make_observation(rainfall=25.0, temperature=30.0)}
        )
        weather = await run(WeatherPredictor, request)

        result = await run(AlertPredictor, request, weather=weather)

        outlook = result.predictions
        assert outlook.overall_risk_level == "high"
        assert outlook.hours_to_next_event == 0.0
        assert [hazard.alert_type.value for hazard in outlook.hazards] == ["FLOOD"]

    @pytest.mark.asyncio
    async def test_alert_outlook_custom_thresholds(self, sample_request, thresholds_file):
        config = ClimateSyncConfig()
        config.alerts.thresholds_file = str(thresholds_file)

        result = await run(AlertPredictor, sample_request, config=config)

        # 2mm/h stays below the custom 4mm/h LOW rung
        assert result.predictions.overall_risk_level == "none"
        assert result.predictions.hours_to_next_event is None
