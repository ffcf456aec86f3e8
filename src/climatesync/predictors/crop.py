"""
Crop suitability model

Scores a small crop catalog against current temperature and humidity and
returns the best matches.
"""

from ..models import CropRecommendations, CropSuitability
from .base import PredictionContext, PredictorBase, register_predictor

# crop -> (min temp, max temp, min humidity, max humidity)
CROP_PROFILES: dict[str, tuple[float, float, float, float]] = {
    "rice": (20.0, 35.0, 60.0, 90.0),
    "wheat": (10.0, 25.0, 40.0, 70.0),
    "maize": (18.0, 32.0, 50.0, 80.0),
    "cotton": (21.0, 35.0, 40.0, 70.0),
    "sugarcane": (20.0, 38.0, 55.0, 85.0),
    "millet": (25.0, 40.0, 20.0, 60.0),
    "pulses": (15.0, 30.0, 40.0, 70.0),
}
TOP_N = 3
CURRENT_CROP_BONUS = 5.0


def _distance(value: float, low: float, high: float) -> float:
    if value < low:
        return low - value
    if value > high:
        return value - high
    return 0.0


@register_predictor
class CropPredictor(PredictorBase):
    name = "crop"
    required_fields = ("temperature",)

    async def _predict(self, context: PredictionContext) -> tuple[CropRecommendations, float]:
        observation = context.request.observation
        humidity = observation.humidity if observation.humidity is not None else 60.0
        current = {crop.lower() for crop in context.request.farm_profile.current_crops}

        scored = []
        for crop, (t_min, t_max, h_min, h_max) in CROP_PROFILES.items():
            score = 100.0
            score -= _distance(observation.temperature, t_min, t_max) * 5
            score -= _distance(humidity, h_min, h_max) * 1.5
            if crop in current:
                score += CURRENT_CROP_BONUS
            scored.append(CropSuitability(crop=crop, suitability_score=round(max(0.0, min(100.0, score)), 1)))

        scored.sort(key=lambda item: item.suitability_score, reverse=True)
        confidence = 0.75 if observation.humidity is not None else 0.6
        return CropRecommendations(recommendations=scored[:TOP_N]), confidence
