"""
Telemetry settings

Nested under ``ClimateSyncConfig.telemetry``; environment overrides use the
``CLIMATESYNC_TELEMETRY__`` prefix, for example
``CLIMATESYNC_TELEMETRY__TRACING__OTLP_ENDPOINT=http://collector:4317``.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from .. import __version__

# Model calls finish in milliseconds, a scheduler batch over ten locations
# can run for minutes
DURATION_BUCKETS = [0.005, 0.025, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0]


class TracingConfig(BaseModel):
    """OpenTelemetry span export"""

    enabled: bool = True
    service_name: str = "climatesync"
    otlp_endpoint: Optional[str] = Field(
        default=None, description="OTLP gRPC collector, spans stay in-process when unset"
    )
    otlp_insecure: bool = True
    sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)


class MetricsConfig(BaseModel):
    """Prometheus collectors"""

    enabled: bool = True
    port: Optional[int] = Field(
        default=None,
        ge=1024,
        le=65535,
        description="Serve /metrics on this port; collectors are still updated when unset",
    )
    deployment_label: Optional[str] = Field(
        default=None, description="Value of a 'deployment' label added to every series"
    )
    duration_buckets: list[float] = Field(default_factory=lambda: list(DURATION_BUCKETS))


class LoggingConfig(BaseModel):
    """Root logging handler"""

    enabled: bool = True
    level: str = "INFO"
    format: Literal["json", "text"] = "json"
    correlate_traces: bool = Field(
        default=True, description="Stamp records with the active trace and span ids"
    )


class TelemetryConfig(BaseModel):
    """Tracing, metrics and logging for the service process"""

    enabled: bool = True
    environment: str = "development"

    tracing: TracingConfig = Field(default_factory=TracingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def resource_attributes(self) -> dict[str, str]:
        return {
            "service.name": self.tracing.service_name,
            "service.version": __version__,
            "deployment.environment": self.environment,
        }

    @property
    def exports_spans(self) -> bool:
        return self.enabled and self.tracing.enabled and bool(self.tracing.otlp_endpoint)

    @property
    def serves_metrics(self) -> bool:
        return self.enabled and self.metrics.enabled and self.metrics.port is not None

    @property
    def metric_labels(self) -> dict[str, str]:
        if self.metrics.deployment_label:
            return {"deployment": self.metrics.deployment_label}
        return {}
