"""
Prometheus metrics collection for climatesync

Provides metrics for analysis runs, per-model invocations, alert transitions
and scheduler batches.
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    start_http_server,
)

from .. import __version__
from .config import TelemetryConfig

logger = logging.getLogger(__name__)


@dataclass
class MetricsCollector:
    """
    Central metrics collector for climatesync operations

    Every metric lives in a private registry so several collectors can
    coexist in one process (tests, embedded services).
    """

    config: TelemetryConfig
    registry: CollectorRegistry = field(default_factory=CollectorRegistry)
    _metrics_server: Optional[threading.Thread] = field(default=None, init=False)

    # Analysis metrics
    analysis_requests_total: Counter = field(init=False)
    analysis_duration: Histogram = field(init=False)

    # Model metrics
    model_invocations_total: Counter = field(init=False)
    model_duration: Histogram = field(init=False)

    # Alert metrics
    alert_transitions_total: Counter = field(init=False)
    alerts_emitted_total: Counter = field(init=False)
    active_alerts: Gauge = field(init=False)

    # Scheduler metrics
    scheduler_runs_total: Counter = field(init=False)
    scheduler_location_failures_total: Counter = field(init=False)

    system_info: Info = field(init=False)

    def __post_init__(self):
        """Initialize all metrics after dataclass creation"""
        self._initialize_metrics()

        if self.config.serves_metrics:
            self._start_metrics_server()

    def _initialize_metrics(self):
        """Initialize all Prometheus metrics"""
        labels = list(self.config.metric_labels)
        buckets = self.config.metrics.duration_buckets

        self.analysis_requests_total = Counter(
            "climatesync_analysis_requests_total",
            "Total number of advisory analysis requests",
            labelnames=["status"] + labels,
            registry=self.registry,
        )

        self.analysis_duration = Histogram(
            "climatesync_analysis_duration_seconds",
            "Duration of advisory analysis runs",
            labelnames=labels,
            buckets=buckets,
            registry=self.registry,
        )

        self.model_invocations_total = Counter(
            "climatesync_model_invocations_total",
            "Total number of model predict invocations",
            labelnames=["model", "outcome"] + labels,
            registry=self.registry,
        )

        self.model_duration = Histogram(
            "climatesync_model_duration_seconds",
            "Duration of model predict invocations",
            labelnames=["model"] + labels,
            buckets=buckets,
            registry=self.registry,
        )

        self.alert_transitions_total = Counter(
            "climatesync_alert_transitions_total",
            "Alert state transitions by kind",
            labelnames=["alert_type", "transition"] + labels,
            registry=self.registry,
        )

        self.alerts_emitted_total = Counter(
            "climatesync_alerts_emitted_total",
            "Alerts created and broadcast",
            labelnames=["alert_type", "level"] + labels,
            registry=self.registry,
        )

        self.active_alerts = Gauge(
            "climatesync_active_alerts",
            "Number of currently active alerts",
            labelnames=labels,
            registry=self.registry,
        )

        self.scheduler_runs_total = Counter(
            "climatesync_scheduler_runs_total",
            "Scheduler batch runs by outcome",
            labelnames=["outcome"] + labels,
            registry=self.registry,
        )

        self.scheduler_location_failures_total = Counter(
            "climatesync_scheduler_location_failures_total",
            "Locations that failed inside a scheduler batch",
            labelnames=labels,
            registry=self.registry,
        )

        self.system_info = Info(
            "climatesync_system", "System information", registry=self.registry
        )
        self.system_info.info(
            {
                "version": __version__,
                "environment": self.config.environment,
            }
        )

        logger.info("Prometheus metrics initialized")

    def _start_metrics_server(self):
        """Start HTTP server for metrics endpoint"""
        try:
            start_http_server(port=self.config.metrics.port, registry=self.registry)
            logger.info(f"Metrics server started on port {self.config.metrics.port}")
        except Exception as e:
            logger.error(f"Failed to start metrics server: {e}")

    def _get_default_labels(self) -> dict[str, str]:
        return dict(self.config.metric_labels)

    @contextmanager
    def time_analysis(self):
        """Context manager to time one analysis run"""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start_time
            labels = self._get_default_labels()
            if labels:
                self.analysis_duration.labels(**labels).observe(duration)
            else:
                self.analysis_duration.observe(duration)

    def record_analysis(self, status: str):
        """Record a completed analysis with its advisory status"""
        labels = {**self._get_default_labels(), "status": status}
        self.analysis_requests_total.labels(**labels).inc()

    def record_model_invocation(self, model: str, success: bool, duration_ms: float):
        """Record one model predict call"""
        outcome = "success" if success else "failure"
        labels = {**self._get_default_labels(), "model": model, "outcome": outcome}
        self.model_invocations_total.labels(**labels).inc()

        duration_labels = {**self._get_default_labels(), "model": model}
        self.model_duration.labels(**duration_labels).observe(duration_ms / 1000)

    def record_alert_transition(self, alert_type: str, transition: str):
        """Record an alert store transition"""
        labels = {
            **self._get_default_labels(),
            "alert_type": alert_type,
            "transition": transition,
        }
        self.alert_transitions_total.labels(**labels).inc()

    def record_alert_emitted(self, alert_type: str, level: str):
        """Record an alert that was created and broadcast"""
        labels = {**self._get_default_labels(), "alert_type": alert_type, "level": level}
        self.alerts_emitted_total.labels(**labels).inc()

    def set_active_alerts(self, count: int):
        labels = self._get_default_labels()
        if labels:
            self.active_alerts.labels(**labels).set(count)
        else:
            self.active_alerts.set(count)

    def record_scheduler_run(self, outcome: str, failed_locations: int = 0):
        """Record a scheduler batch and its per-location failures"""
        labels = {**self._get_default_labels(), "outcome": outcome}
        self.scheduler_runs_total.labels(**labels).inc()

        if failed_locations:
            failure_labels = self._get_default_labels()
            if failure_labels:
                self.scheduler_location_failures_total.labels(**failure_labels).inc(
                    failed_locations
                )
            else:
                self.scheduler_location_failures_total.inc(failed_locations)

    def get_metrics_text(self) -> str:
        """Get metrics in Prometheus text format"""
        return generate_latest(self.registry).decode("utf-8")


# Global metrics instance
_metrics: Optional[MetricsCollector] = None


def initialize_metrics(config: TelemetryConfig) -> None:
    """Initialize global metrics collector"""
    global _metrics
    if not config.enabled or not config.metrics.enabled:
        logger.info("Metrics collection is disabled")
        return
    _metrics = MetricsCollector(config)


def get_metrics() -> Optional[MetricsCollector]:
    """Get the global metrics collector"""
    return _metrics


def reset_metrics() -> None:
    """Drop the global metrics collector"""
    global _metrics
    _metrics = None
