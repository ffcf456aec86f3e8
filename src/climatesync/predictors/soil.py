"""Soil condition model"""

from ..models import SoilAssessment
from .base import PredictionContext, PredictorBase, register_predictor

SOIL_PH = {
    "loam": 6.5,
    "clay": 7.2,
    "sandy": 6.0,
    "silt": 6.8,
    "black": 7.5,
    "alluvial": 7.0,
}
DEFAULT_PH = 6.8
OPTIMAL_TEMPERATURE = 24.0
OPTIMAL_MOISTURE = 55.0


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


@register_predictor
class SoilPredictor(PredictorBase):
    name = "soil"
    required_fields = ("temperature",)

    async def _predict(self, context: PredictionContext) -> tuple[SoilAssessment, float]:
        observation = context.request.observation
        humidity = observation.humidity if observation.humidity is not None else 60.0

        moisture = _clamp(humidity * 0.6 + observation.rainfall * 2.0)
        ph = SOIL_PH.get(context.request.farm_profile.soil_type.lower(), DEFAULT_PH)

        temperature_penalty = max(0.0, abs(observation.temperature - OPTIMAL_TEMPERATURE) - 6) * 2.5
        moisture_penalty = abs(moisture - OPTIMAL_MOISTURE) * 0.5
        ph_penalty = abs(ph - 6.5) * 10
        health = _clamp(95 - temperature_penalty - moisture_penalty - ph_penalty)

        if health < 50:
            nutrient_status = "deficient"
        elif health < 75:
            nutrient_status = "adequate"
        else:
            nutrient_status = "rich"

        confidence = 0.8 if observation.humidity is not None else 0.65
        return (
            SoilAssessment(
                health_score=round(health, 1),
                moisture_level=round(moisture, 1),
                ph=ph,
                nutrient_status=nutrient_status,
            ),
            confidence,
        )
