"""
Process-wide observability setup

``initialize_observability`` is called once by the service on start; the
analysis core only talks to the helpers in ``tracer`` and ``metrics``, which
stay no-ops when setup never ran.
"""

import logging
import sys
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from pythonjsonlogger import jsonlogger

from .config import TelemetryConfig
from .metrics import initialize_metrics, reset_metrics
from .tracer import initialize_tracing, reset_tracing

logger = logging.getLogger(__name__)

JSON_FIELDS = "%(asctime)s %(name)s %(levelname)s %(message)s"
TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_config: Optional[TelemetryConfig] = None
_provider: Optional[TracerProvider] = None
_handler: Optional[logging.Handler] = None


class TraceContextFilter(logging.Filter):
    """Stamps each record with the active trace and span ids, or empty strings"""

    def filter(self, record: logging.LogRecord) -> bool:
        context = trace.get_current_span().get_span_context()
        if context.is_valid:
            record.trace_id = format(context.trace_id, "032x")
            record.span_id = format(context.span_id, "016x")
        else:
            record.trace_id = ""
            record.span_id = ""
        return True


def build_log_handler(config: TelemetryConfig) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if config.logging.format == "json":
        handler.setFormatter(jsonlogger.JsonFormatter(JSON_FIELDS))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    if config.logging.correlate_traces:
        handler.addFilter(TraceContextFilter())
    return handler


def initialize_observability(config: TelemetryConfig) -> bool:
    """
    Set up logging, tracing and metrics according to ``config``

    Each part is set up independently; a part that fails is logged and the
    rest still start.

    Returns:
        False if observability was already initialized or is disabled
    """
    global _config, _provider, _handler

    if _config is not None:
        logger.debug("Observability already initialized")
        return False
    if not config.enabled:
        logger.info("Telemetry disabled")
        return False
    _config = config

    if config.logging.enabled:
        _handler = build_log_handler(config)
        root = logging.getLogger()
        root.addHandler(_handler)
        root.setLevel(config.logging.level)

    if config.tracing.enabled:
        try:
            _provider = initialize_tracing(config)
        except Exception as e:
            logger.error(f"Tracing setup failed: {e}")

    if config.metrics.enabled:
        try:
            initialize_metrics(config)
        except Exception as e:
            logger.error(f"Metrics setup failed: {e}")

    logger.info(f"Observability initialized for {config.environment}")
    return True


def is_observability_initialized() -> bool:
    return _config is not None


def shutdown_observability() -> None:
    """Flush spans and drop the global collectors"""
    global _config, _provider, _handler

    if _config is None:
        return
    if _provider is not None:
        _provider.shutdown()
    if _handler is not None:
        logging.getLogger().removeHandler(_handler)
    reset_tracing()
    reset_metrics()
    _config = _provider = _handler = None
    logger.info("Observability shut down")
