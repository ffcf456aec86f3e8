"""
Configuration management for climatesync

Provides pydantic-based configuration with environment variable support
and YAML file loading capabilities.
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict

from .observability.config import TelemetryConfig

DEFAULT_MODELS = ["weather", "soil", "crop", "irrigation", "energy", "alert"]
DEFAULT_LOCATIONS = ["Delhi", "Mumbai", "Chennai"]


class ModelConfig(BaseModel):
    """Individual prediction model configuration"""

    enabled: bool = True
    timeout: float = Field(default=5.0, gt=0)


class ModelsConfig(BaseModel):
    """All prediction models configuration"""

    enabled: list[str] = Field(default_factory=lambda: list(DEFAULT_MODELS))
    weather: ModelConfig = Field(default_factory=ModelConfig)
    soil: ModelConfig = Field(default_factory=ModelConfig)
    crop: ModelConfig = Field(default_factory=ModelConfig)
    irrigation: ModelConfig = Field(default_factory=ModelConfig)
    energy: ModelConfig = Field(default_factory=ModelConfig)
    alert: ModelConfig = Field(default_factory=ModelConfig)

    def get_model_config(self, name: str) -> ModelConfig:
        """Get configuration for a model, falling back to defaults"""
        model_config = getattr(self, name, None)
        if isinstance(model_config, ModelConfig):
            return model_config
        return ModelConfig()


class OrchestratorConfig(BaseModel):
    """Analysis orchestration settings"""

    analysis_deadline: float = Field(default=30.0, gt=0)
    confidence_floor: float = Field(default=0.1, ge=0.0, le=1.0)
    max_concurrent_analyses: int = Field(default=5, gt=0)


class AlertsConfig(BaseModel):
    """Alert evaluation and expiry settings"""

    # Fast-moving hazards expire sooner than slow-moving ones
    ttl_seconds: dict[str, PositiveInt] = Field(
        default_factory=lambda: {"FLOOD": 2 * 60 * 60, "HEAT": 4 * 60 * 60}
    )
    default_ttl_seconds: int = Field(default=60 * 60, gt=0)
    thresholds_file: Optional[str] = None
    history_limit: int = Field(default=500, gt=0)


class SchedulerConfig(BaseModel):
    """Background refresh loop settings"""

    enabled: bool = True
    interval_seconds: float = Field(default=30 * 60, gt=0)
    cold_start_delay: float = Field(default=30.0, ge=0)
    inter_item_delay: float = Field(default=1.0, ge=0)
    max_locations: int = Field(default=10, gt=0)
    locations: list[str] = Field(default_factory=lambda: list(DEFAULT_LOCATIONS))
    history_days: int = Field(default=7, ge=0)
    analysis_scope: list[str] = Field(default_factory=lambda: ["full"])


class ClimateSyncConfig(BaseSettings):
    """Main climatesync configuration"""

    model_config = SettingsConfigDict(
        env_prefix="CLIMATESYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    models: ModelsConfig = Field(default_factory=ModelsConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    alerts: AlertsConfig = Field(default_factory=AlertsConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    log_level: str = "INFO"

    @classmethod
    def load_from_file(cls, config_path: str = "climatesync.yml") -> "ClimateSyncConfig":
        """Load configuration from YAML file with environment variable override"""
        import yaml

        config_file = Path(config_path)
        config_data = {}

        if config_file.exists():
            with open(config_file, encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}

        return cls(**config_data)


# Global configuration instance
_config: Optional[ClimateSyncConfig] = None


def get_config() -> ClimateSyncConfig:
    """Get the global configuration instance"""
    global _config
    if _config is None:
        _config = ClimateSyncConfig.load_from_file()
    return _config


def set_config(config: ClimateSyncConfig) -> None:
    """Set the global configuration instance"""
    global _config
    _config = config
