"""
Irrigation planning model

Depends on the soil model for current moisture and on the weather model for
expected rainfall; both have fallbacks when the dependency failed.
"""

from ..models import IrrigationPlan, SoilAssessment, WeatherForecast
from .base import PredictionContext, PredictorBase, register_predictor

DEFAULT_MOISTURE = 50.0
TARGET_MOISTURE = 60.0
RAIN_CAPTURE = 0.8  # share of forecast rain that reaches the root zone
LOOKAHEAD_DAYS = 3
COST_PER_MM_ACRE = 2.5


@register_predictor
class IrrigationPredictor(PredictorBase):
    name = "irrigation"
    depends_on = ("soil", "weather")

    async def _predict(self, context: PredictionContext) -> tuple[IrrigationPlan, float]:
        farm = context.request.farm_profile
        soil = context.upstream_prediction("soil", SoilAssessment)
        weather = context.upstream_prediction("weather", WeatherForecast)

        moisture = DEFAULT_MOISTURE
        if soil is not None and soil.moisture_level is not None:
            moisture = soil.moisture_level

        expected_rain = 0.0
        hot_days = 0
        if weather is not None:
            upcoming = weather.forecast[:LOOKAHEAD_DAYS]
            expected_rain = sum(day.rainfall for day in upcoming)
            hot_days = sum(1 for day in upcoming if day.temperature > 32)

        deficit = max(0.0, TARGET_MOISTURE - moisture)
        amount = round(max(0.0, deficit - expected_rain * RAIN_CAPTURE), 1)

        # Evaporation losses grow on hot days
        efficiency = max(0.5, 0.9 - 0.05 * hot_days)

        confidence = 0.85
        if soil is None:
            confidence -= 0.15
        if weather is None:
            confidence -= 0.1

        return (
            IrrigationPlan(
                should_irrigate=amount > 0,
                recommended_amount_mm=amount,
                efficiency=round(efficiency, 2),
                estimated_cost=round(amount * max(farm.size, 0.0) * COST_PER_MM_ACRE, 2),
                soil_moisture_used=moisture,
            ),
            confidence,
        )
