"""
Threshold configuration sources

The YAML layout mirrors the ladder shape:

    thresholds:
      FLOOD: {LOW: 5, MEDIUM: 10, HIGH: 20, CRITICAL: 50}
      HEAT:
        unit: "°C"
        levels: {LOW: 35, MEDIUM: 40, HIGH: 45, CRITICAL: 50}
"""

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import ValidationError

from ..errors import ThresholdConfigError
from ..models import ThresholdLevel

logger = logging.getLogger(__name__)


def parse_thresholds(data: Mapping[str, Any]) -> list[ThresholdLevel]:
    """
    Convert a ``{type: {level: value}}`` mapping into threshold rungs

    Raises:
        ThresholdConfigError: If a type, level or value is not recognized
    """
    levels = []
    for alert_type, entry in data.items():
        unit = ""
        if isinstance(entry, Mapping) and "levels" in entry:
            unit = entry.get("unit", "") or ""
            entry = entry["levels"]
        if not isinstance(entry, Mapping):
            raise ThresholdConfigError(f"Thresholds for {alert_type} must be a mapping")
        for level, value in entry.items():
            try:
                levels.append(
                    ThresholdLevel(
                        alert_type=str(alert_type).upper(),
                        level=str(level).upper(),
                        value=value,
                        unit=unit,
                    )
                )
            except ValidationError as e:
                raise ThresholdConfigError(
                    f"Invalid threshold {alert_type}.{level}={value!r}: {e}"
                ) from e
    return levels


class StaticThresholdSource:
    """Thresholds held in memory, from rungs or a nested mapping"""

    def __init__(self, thresholds: Union[Iterable[ThresholdLevel], Mapping[str, Any]]):
        if isinstance(thresholds, Mapping):
            self._levels = parse_thresholds(thresholds)
        else:
            self._levels = list(thresholds)

    def load_thresholds(self) -> list[ThresholdLevel]:
        return list(self._levels)


class YamlThresholdSource:
    """Thresholds read from a YAML file on every load"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load_thresholds(self) -> list[ThresholdLevel]:
        if not self.path.exists():
            raise ThresholdConfigError(f"Threshold file not found: {self.path}")

        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ThresholdConfigError(f"Invalid YAML in {self.path}: {e}") from e

        if not isinstance(data, Mapping):
            raise ThresholdConfigError(f"{self.path} must contain a mapping")

        section = data.get("thresholds", data)
        if not isinstance(section, Mapping):
            raise ThresholdConfigError(f"'thresholds' in {self.path} must be a mapping")

        levels = parse_thresholds(section)
        logger.debug(f"Loaded {len(levels)} threshold levels from {self.path}")
        return levels
