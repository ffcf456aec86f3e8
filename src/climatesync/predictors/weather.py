"""
Weather forecast model

Projects the current observation forward using the temperature trend found
in recent history and a decaying rainfall persistence.
"""

import logging

from ..models import WeatherDay, WeatherForecast
from .base import PredictionContext, PredictorBase, register_predictor

logger = logging.getLogger(__name__)

RAINFALL_DECAY = 0.6
MAX_DAILY_TREND = 2.0  # °C per day
DEFAULT_HUMIDITY = 60.0


def temperature_trend(temperatures: list[float]) -> float:
    """Mean day-over-day change, clamped to a plausible range"""
    if len(temperatures) < 2:
        return 0.0
    slope = (temperatures[-1] - temperatures[0]) / (len(temperatures) - 1)
    return max(-MAX_DAILY_TREND, min(MAX_DAILY_TREND, slope))


@register_predictor
class WeatherPredictor(PredictorBase):
    name = "weather"
    required_fields = ("temperature",)

    async def _predict(self, context: PredictionContext) -> tuple[WeatherForecast, float]:
        request = context.request
        observation = request.observation

        history = sorted(request.history, key=lambda item: item.observed_at)
        temperatures = [item.temperature for item in history if item.temperature is not None]
        slope = temperature_trend(temperatures)

        if slope > 0.2:
            trend = "warming"
        elif slope < -0.2:
            trend = "cooling"
        else:
            trend = "stable"

        humidity = observation.humidity if observation.humidity is not None else DEFAULT_HUMIDITY
        forecast = [
            WeatherDay(
                day=day,
                temperature=round(observation.temperature + slope * day, 1),
                rainfall=round(observation.rainfall * RAINFALL_DECAY**day, 2),
                humidity=humidity,
            )
            for day in range(1, request.time_horizon_days + 1)
        ]

        # Longer horizons are less certain; a week of history helps
        confidence = 0.85 - 0.02 * request.time_horizon_days
        if len(temperatures) >= 7:
            confidence += 0.05

        logger.debug(
            f"Weather forecast for {observation.location_id}: {trend} "
            f"({slope:+.2f}°C/day over {len(temperatures)} samples)"
        )
        return WeatherForecast(forecast=forecast, trend=trend), confidence
