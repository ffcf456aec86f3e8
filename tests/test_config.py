"""
Test suite for configuration system

Tests ClimateSyncConfig and its sections for defaults, YAML loading and
environment overrides.
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from climatesync.config import (
    DEFAULT_LOCATIONS,
    DEFAULT_MODELS,
    AlertsConfig,
    ClimateSyncConfig,
    ModelConfig,
    ModelsConfig,
    OrchestratorConfig,
    SchedulerConfig,
    get_config,
    set_config,
)


class TestSectionDefaults:
    """Test default values of each config section"""

    def test_models_defaults(self):
        config = ModelsConfig()
        assert config.enabled == DEFAULT_MODELS
        assert config.weather.timeout == 5.0
        assert config.alert.enabled is True

    def test_unknown_model_falls_back(self):
        """Unknown model names get a default ModelConfig"""
        config = ModelsConfig()
        assert config.get_model_config("pest") == ModelConfig()
        assert config.get_model_config("enabled") == ModelConfig()

    def test_orchestrator_defaults(self):
        config = OrchestratorConfig()
        assert config.analysis_deadline == 30.0
        assert config.confidence_floor == 0.1
        assert config.max_concurrent_analyses == 5

    def test_alert_ttls(self):
        config = AlertsConfig()
        assert config.ttl_seconds["FLOOD"] == 2 * 60 * 60
        assert config.ttl_seconds["HEAT"] == 4 * 60 * 60
        assert config.default_ttl_seconds == 60 * 60

    def test_scheduler_defaults(self):
        config = SchedulerConfig()
        assert config.interval_seconds == 1800
        assert config.cold_start_delay == 30
        assert config.inter_item_delay == 1.0
        assert config.max_locations == 10
        assert config.locations == DEFAULT_LOCATIONS


class TestClimateSyncConfig:
    """Test main configuration"""

    @pytest.mark.parametrize("ttl", [0, -60])
    def test_rejects_non_positive_alert_ttl(self, ttl):
        """A bad TTL fails at load instead of on the first alert"""
        with pytest.raises(ValidationError, match="FLOOD"):
            ClimateSyncConfig(alerts={"ttl_seconds": {"FLOOD": ttl}})

    def test_alert_ttl_from_yaml(self, temp_dir):
        config_file = temp_dir / "climatesync.yml"
        config_file.write_text("alerts:\n  ttl_seconds:\n    FLOOD: 0\n")

        with pytest.raises(ValidationError):
            ClimateSyncConfig.load_from_file(str(config_file))

    def test_load_from_missing_file(self, temp_dir):
        """A missing file yields defaults"""
        config = ClimateSyncConfig.load_from_file(str(temp_dir / "absent.yml"))
        assert config.orchestrator.analysis_deadline == 30.0

    def test_load_from_file(self, temp_dir):
        config_file = temp_dir / "climatesync.yml"
        config_file.write_text(
            """
log_level: DEBUG
models:
  enabled: [weather, soil]
  weather:
    timeout: 2.5
orchestrator:
  analysis_deadline: 12
scheduler:
  locations: [Pune, Jaipur]
  interval_seconds: 600
alerts:
  thresholds_file: thresholds.yml
"""
        )

        config = ClimateSyncConfig.load_from_file(str(config_file))

        assert config.log_level == "DEBUG"
        assert config.models.enabled == ["weather", "soil"]
        assert config.models.get_model_config("weather").timeout == 2.5
        assert config.orchestrator.analysis_deadline == 12
        assert config.scheduler.locations == ["Pune", "Jaipur"]
        assert config.scheduler.interval_seconds == 600
        assert config.alerts.thresholds_file == "thresholds.yml"

    def test_environment_override(self):
        with patch.dict(os.environ, {"CLIMATESYNC_LOG_LEVEL": "WARNING"}):
            config = ClimateSyncConfig()
        assert config.log_level == "WARNING"

    def test_global_config(self):
        custom = ClimateSyncConfig(log_level="ERROR")
        set_config(custom)
        try:
            assert get_config() is custom
        finally:
            set_config(None)
