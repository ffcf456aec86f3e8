"""
OpenTelemetry tracing

Spans cover analysis runs, the model fan-out, alert evaluation and each
scheduler batch. Until ``initialize_tracing`` runs every helper here is a
no-op.
"""

import functools
import logging
import time
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from typing import Any, Optional, ParamSpec, TypeVar

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.trace import Status, StatusCode

from .. import __version__
from .config import TelemetryConfig

logger = logging.getLogger(__name__)

_tracer: Optional[trace.Tracer] = None

P = ParamSpec("P")
T = TypeVar("T")

SpanValue = (str, int, float, bool)


def initialize_tracing(config: TelemetryConfig) -> TracerProvider:
    """Install a tracer provider, exporting over OTLP when an endpoint is set"""
    global _tracer

    provider = TracerProvider(
        resource=Resource.create(config.resource_attributes()),
        sampler=TraceIdRatioBased(config.tracing.sample_rate),
    )
    if config.exports_spans:
        exporter = OTLPSpanExporter(
            endpoint=config.tracing.otlp_endpoint,
            insecure=config.tracing.otlp_insecure,
        )
        provider.add_span_processor(BatchSpanProcessor(exporter))
        logger.info(f"Exporting spans to {config.tracing.otlp_endpoint}")

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer("climatesync", __version__)
    logger.info(f"Tracing initialized (sample_rate={config.tracing.sample_rate})")
    return provider


def reset_tracing() -> None:
    global _tracer
    _tracer = None


def get_tracer() -> trace.Tracer:
    return _tracer if _tracer is not None else trace.NoOpTracer()


@contextmanager
def trace_operation(name: str, attributes: Optional[dict[str, Any]] = None) -> Iterator[trace.Span]:
    """Run the block inside a span, marking the span failed if it raises"""
    with get_tracer().start_as_current_span(name, attributes=attributes or None) as span:
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise


def trace_async(
    operation_name: Optional[str] = None,
    record_args: bool = False,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """
    Wrap a coroutine function in a span

    With ``record_args`` every str, int, float or bool argument is added to
    the span as ``arg.<position>`` or ``arg.<keyword>``.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        name = operation_name or func.__qualname__

        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            attributes = {}
            if record_args:
                attributes.update(
                    {f"arg.{i}": a for i, a in enumerate(args) if isinstance(a, SpanValue)}
                )
                attributes.update(
                    {f"arg.{k}": v for k, v in kwargs.items() if isinstance(v, SpanValue)}
                )

            started = time.perf_counter()
            with trace_operation(name, attributes) as span:
                try:
                    return await func(*args, **kwargs)
                finally:
                    span.set_attribute(
                        "duration_ms", round((time.perf_counter() - started) * 1000, 3)
                    )

        return wrapper

    return decorator


def add_event(name: str, attributes: Optional[dict[str, Any]] = None) -> None:
    """Attach an event to the active span, if one is recording"""
    span = trace.get_current_span()
    if span.is_recording():
        span.add_event(name, attributes or {})


def set_attribute(key: str, value: Any) -> None:
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attribute(key, value)
