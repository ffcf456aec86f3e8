"""
Hazard outlook model

Classifies the current observation and the weather forecast against the
threshold ladders to anticipate alerts before they are raised.
"""

import logging
from typing import Optional

from ..alerts.thresholds import ThresholdLadder, default_ladders, load_thresholds
from ..models import AlertLevel, AlertType, Hazard, HazardOutlook, WeatherForecast
from .base import PredictionContext, PredictorBase, register_predictor

logger = logging.getLogger(__name__)

RISK_NAMES = {
    AlertLevel.LOW: "low",
    AlertLevel.MEDIUM: "medium",
    AlertLevel.HIGH: "high",
    AlertLevel.CRITICAL: "critical",
}


@register_predictor
class AlertPredictor(PredictorBase):
    name = "alert"
    depends_on = ("weather",)

    ladders: dict[AlertType, ThresholdLadder]

    async def _load(self) -> None:
        thresholds_file = self.config.alerts.thresholds_file
        if thresholds_file:
            from ..adapters.thresholds import YamlThresholdSource

            self.ladders = load_thresholds(YamlThresholdSource(thresholds_file))
        else:
            self.ladders = default_ladders()

    async def _predict(self, context: PredictionContext) -> tuple[HazardOutlook, float]:
        observation = context.request.observation
        weather = context.upstream_prediction("weather", WeatherForecast)

        # Day 0 is the current observation
        series: list[tuple[int, dict[str, Optional[float]]]] = [
            (0, {"rainfall": observation.rainfall, "temperature": observation.temperature})
        ]
        if weather is not None:
            series.extend(
                (day.day, {"rainfall": day.rainfall, "temperature": day.temperature})
                for day in weather.forecast
            )

        hazards = []
        for alert_type, ladder in self.ladders.items():
            worst: Optional[Hazard] = None
            for day, values in series:
                value = values.get(ladder.metric)
                if value is None:
                    continue
                level = ladder.classify(value)
                if level is None:
                    continue
                if worst is None or level.rank > worst.level.rank:
                    worst = Hazard(alert_type=alert_type, level=level, expected_value=value, day=day)
            if worst is not None:
                hazards.append(worst)

        overall = "none"
        hours_to_next_event = None
        if hazards:
            top = max(hazards, key=lambda hazard: hazard.level.rank)
            overall = RISK_NAMES[top.level]
            hours_to_next_event = float(min(hazard.day for hazard in hazards) * 24)

        confidence = 0.8 if weather is not None else 0.65
        return (
            HazardOutlook(
                overall_risk_level=overall,
                hazards=hazards,
                hours_to_next_event=hours_to_next_event,
            ),
            confidence,
        )
