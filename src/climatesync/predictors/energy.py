"""Energy efficiency model"""

from statistics import mean

from ..models import EnergyPlan, WeatherForecast
from .base import PredictionContext, PredictorBase, register_predictor

BASE_EFFICIENCY = 85.0
COOLING_THRESHOLD = 28.0
PRICE_PER_KWH = 0.12


@register_predictor
class EnergyPredictor(PredictorBase):
    name = "energy"
    depends_on = ("weather",)

    async def _predict(self, context: PredictionContext) -> tuple[EnergyPlan, float]:
        request = context.request
        weather = context.upstream_prediction("weather", WeatherForecast)

        if weather is not None and weather.forecast:
            temperatures = [day.temperature for day in weather.forecast]
        elif request.observation.temperature is not None:
            temperatures = [request.observation.temperature]
        else:
            temperatures = [25.0]

        cooling_load = max(0.0, mean(temperatures) - COOLING_THRESHOLD) * 2.5
        equipment_penalty = len(request.farm_profile.equipment) * 1.5
        efficiency = max(0.0, min(100.0, BASE_EFFICIENCY - cooling_load - equipment_penalty))

        savings_kwh = round((100 - efficiency) * 0.4 * max(request.farm_profile.size, 0.0), 1)
        confidence = 0.8 if weather is not None else 0.6

        return (
            EnergyPlan(
                current_efficiency=round(efficiency, 1),
                estimated_savings_kwh=savings_kwh,
                estimated_savings_cost=round(savings_kwh * PRICE_PER_KWH, 2),
            ),
            confidence,
        )
