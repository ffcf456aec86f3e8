"""
Alert evaluation

Classifies an observation against the threshold ladders and builds alert
records. Evaluation holds no state; deduplication and supersession are the
store's job.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..models import Alert, AlertKey, AlertLevel, AlertType, Observation
from .thresholds import ThresholdLadder, default_ladders

DEFAULT_TTL_SECONDS = 60 * 60
DEFAULT_TTL_BY_TYPE = {AlertType.FLOOD: 2 * 60 * 60, AlertType.HEAT: 4 * 60 * 60}
DEFAULT_HUMIDITY = 50.0

FLOOD_MESSAGES = {
    AlertLevel.LOW: "Light rainfall detected in {place}. Current: {value:.1f}mm/h. "
    "Monitor weather conditions.",
    AlertLevel.MEDIUM: "Moderate rainfall in {place}. Current: {value:.1f}mm/h. "
    "Potential flooding in low-lying areas.",
    AlertLevel.HIGH: "Heavy rainfall in {place}. Current: {value:.1f}mm/h. "
    "Flooding likely in vulnerable areas. Exercise caution.",
    AlertLevel.CRITICAL: "Extreme rainfall in {place}. Current: {value:.1f}mm/h. "
    "Severe flooding expected. Avoid travel and seek higher ground.",
}

HEAT_MESSAGES = {
    AlertLevel.LOW: "High temperature in {place}. Current: {value:.1f}°C. "
    "Stay hydrated and avoid prolonged sun exposure.",
    AlertLevel.MEDIUM: "Very high temperature in {place}. Current: {value:.1f}°C. "
    "Limit outdoor activities during peak hours.",
    AlertLevel.HIGH: "Dangerous heat in {place}. Current: {value:.1f}°C. "
    "High risk of heat exhaustion. Stay indoors if possible.",
    AlertLevel.CRITICAL: "Extreme heat in {place}. Current: {value:.1f}°C. "
    "Emergency heat conditions. Seek air conditioning immediately.",
}

MESSAGES = {AlertType.FLOOD: FLOOD_MESSAGES, AlertType.HEAT: HEAT_MESSAGES}


def heat_index(temperature: float, humidity: Optional[float]) -> float:
    """
    Apparent temperature in °C (Rothfusz regression)

    Below 80°F the regression is not valid and the air temperature is returned.
    """
    rh = DEFAULT_HUMIDITY if humidity is None else humidity
    t = temperature * 9 / 5 + 32
    if t < 80:
        return round(temperature, 1)

    hi = (
        -42.379
        + 2.04901523 * t
        + 10.14333127 * rh
        - 0.22475541 * t * rh
        - 0.00683783 * t * t
        - 0.05481717 * rh * rh
        + 0.00122874 * t * t * rh
        + 0.00085282 * t * rh * rh
        - 0.00000199 * t * t * rh * rh
    )
    return round((hi - 32) * 5 / 9, 1)


@dataclass(frozen=True)
class Evaluation:
    """Outcome of classifying one metric for one location"""

    alert_type: AlertType
    location_id: str
    location_name: Optional[str]
    value: float
    level: Optional[AlertLevel]
    threshold: Optional[float]
    humidity: Optional[float] = None

    @property
    def key(self) -> AlertKey:
        return AlertKey(self.location_id, self.alert_type)

    @property
    def triggered(self) -> bool:
        return self.level is not None


class AlertEvaluator:
    """Turns observations into evaluations and evaluations into alerts"""

    def __init__(
        self,
        ladders: Optional[Mapping[AlertType, ThresholdLadder]] = None,
        ttl_seconds: Optional[Mapping[str, int]] = None,
        default_ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ):
        self.ladders = dict(ladders) if ladders is not None else default_ladders()
        self.default_ttl_seconds = default_ttl_seconds
        self._ttl = {t.value: seconds for t, seconds in DEFAULT_TTL_BY_TYPE.items()}
        if ttl_seconds:
            self._ttl.update(ttl_seconds)

    def ttl_for(self, alert_type: AlertType) -> timedelta:
        return timedelta(seconds=self._ttl.get(alert_type.value, self.default_ttl_seconds))

    def evaluate(self, observation: Observation) -> list[Evaluation]:
        """
        Classify every ladder whose metric the observation carries

        A missing metric yields no evaluation for that type, so an active
        alert is never cleared because a reading is absent.
        """
        evaluations = []
        for alert_type, ladder in self.ladders.items():
            value = observation.metric(ladder.metric)
            if value is None:
                continue
            level = ladder.classify(value)
            evaluations.append(
                Evaluation(
                    alert_type=alert_type,
                    location_id=observation.location_id,
                    location_name=observation.location_name,
                    value=float(value),
                    level=level,
                    threshold=ladder.threshold_for(level) if level is not None else None,
                    humidity=observation.humidity,
                )
            )
        return evaluations

    def build_alert(self, evaluation: Evaluation, now: datetime) -> Alert:
        """Create an active alert for a triggered evaluation"""
        if evaluation.level is None or evaluation.threshold is None:
            raise ValueError(f"Evaluation for {evaluation.key} did not trigger")

        place = evaluation.location_name or evaluation.location_id
        message = MESSAGES[evaluation.alert_type][evaluation.level].format(
            place=place, value=evaluation.value
        )

        index = None
        if evaluation.alert_type == AlertType.HEAT:
            index = heat_index(evaluation.value, evaluation.humidity)

        return Alert(
            alert_type=evaluation.alert_type,
            location_id=evaluation.location_id,
            location_name=evaluation.location_name,
            level=evaluation.level,
            triggering_value=evaluation.value,
            threshold_value=evaluation.threshold,
            heat_index=index,
            message=message,
            created_at=now,
            expires_at=now + self.ttl_for(evaluation.alert_type),
        )
