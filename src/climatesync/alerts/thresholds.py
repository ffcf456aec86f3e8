"""
Threshold ladders

A ladder is the ordered set of severity cutoffs for one alert type. Values
must be strictly increasing from LOW to CRITICAL; a value triggers a level
when it meets or exceeds that level's threshold.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Optional

from ..errors import ThresholdConfigError
from ..models import ALERT_METRICS, AlertLevel, AlertType, ThresholdLevel, ordered_levels
from ..ports import ThresholdConfigSource

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLDS: dict[AlertType, dict[AlertLevel, float]] = {
    AlertType.FLOOD: {
        AlertLevel.LOW: 5.0,
        AlertLevel.MEDIUM: 10.0,
        AlertLevel.HIGH: 20.0,
        AlertLevel.CRITICAL: 50.0,
    },
    AlertType.HEAT: {
        AlertLevel.LOW: 35.0,
        AlertLevel.MEDIUM: 40.0,
        AlertLevel.HIGH: 45.0,
        AlertLevel.CRITICAL: 50.0,
    },
}


class ThresholdLadder:
    """Ordered LOW < MEDIUM < HIGH < CRITICAL cutoffs for one alert type"""

    def __init__(
        self,
        alert_type: AlertType,
        levels: Mapping[AlertLevel, float],
        unit: Optional[str] = None,
    ):
        self.alert_type = alert_type
        self.unit = unit if unit is not None else ALERT_METRICS[alert_type][1]

        missing = [level.value for level in ordered_levels() if level not in levels]
        if missing:
            raise ThresholdConfigError(
                f"{alert_type.value} ladder is missing levels: {', '.join(missing)}"
            )

        self._rungs: list[tuple[AlertLevel, float]] = [
            (level, float(levels[level])) for level in ordered_levels()
        ]
        for (lower, low_value), (upper, high_value) in zip(self._rungs, self._rungs[1:]):
            if high_value <= low_value:
                raise ThresholdConfigError(
                    f"{alert_type.value} ladder must increase strictly: "
                    f"{upper.value}={high_value} is not above {lower.value}={low_value}"
                )

    @property
    def metric(self) -> str:
        """Observation field this ladder is evaluated against"""
        return ALERT_METRICS[self.alert_type][0]

    def classify(self, value: float) -> Optional[AlertLevel]:
        """Return the highest level whose threshold ``value`` meets, or None"""
        result = None
        for level, threshold in self._rungs:
            if value >= threshold:
                result = level
            else:
                break
        return result

    def threshold_for(self, level: AlertLevel) -> float:
        for rung_level, threshold in self._rungs:
            if rung_level == level:
                return threshold
        raise KeyError(level)

    def to_levels(self) -> list[ThresholdLevel]:
        return [
            ThresholdLevel(
                alert_type=self.alert_type, level=level, value=value, unit=self.unit
            )
            for level, value in self._rungs
        ]

    def as_dict(self) -> dict[str, float]:
        return {level.value: value for level, value in self._rungs}

    def __repr__(self) -> str:
        return f"ThresholdLadder({self.alert_type.value}, {self.as_dict()})"


def default_ladders() -> dict[AlertType, ThresholdLadder]:
    """Build ladders from the hard-coded defaults"""
    return {
        alert_type: ThresholdLadder(alert_type, levels)
        for alert_type, levels in DEFAULT_THRESHOLDS.items()
    }


def build_ladders(levels: Iterable[ThresholdLevel]) -> dict[AlertType, ThresholdLadder]:
    """
    Group threshold rungs into ladders

    Raises:
        ThresholdConfigError: If a ladder repeats a level or violates ordering
    """
    grouped: dict[AlertType, dict[AlertLevel, float]] = {}
    units: dict[AlertType, str] = {}

    for rung in levels:
        rungs = grouped.setdefault(rung.alert_type, {})
        if rung.level in rungs:
            raise ThresholdConfigError(
                f"Duplicate {rung.level.value} threshold for {rung.alert_type.value}"
            )
        rungs[rung.level] = rung.value
        if rung.unit:
            units[rung.alert_type] = rung.unit

    return {
        alert_type: ThresholdLadder(alert_type, rungs, units.get(alert_type))
        for alert_type, rungs in grouped.items()
    }


def load_thresholds(
    source: Optional[ThresholdConfigSource] = None,
) -> dict[AlertType, ThresholdLadder]:
    """
    Load threshold ladders from a source, falling back to defaults

    Each alert type falls back independently: a broken HEAT ladder does not
    discard a valid FLOOD ladder. Alert types the source does not mention keep
    their defaults.
    """
    ladders = default_ladders()
    if source is None:
        return ladders

    try:
        levels = list(source.load_thresholds())
    except Exception as e:
        logger.warning(f"Threshold source failed, using default thresholds: {e}")
        return ladders

    if not levels:
        logger.warning("Threshold source returned no thresholds, using defaults")
        return ladders

    by_type: dict[AlertType, list[ThresholdLevel]] = {}
    for rung in levels:
        by_type.setdefault(rung.alert_type, []).append(rung)

    for alert_type, rungs in by_type.items():
        try:
            ladders.update(build_ladders(rungs))
        except ThresholdConfigError as e:
            logger.warning(
                f"Invalid {alert_type.value} thresholds, using defaults: {e}"
            )

    logger.info(
        "Alert thresholds loaded: "
        + ", ".join(f"{t.value}={ladder.as_dict()}" for t, ladder in ladders.items())
    )
    return ladders
