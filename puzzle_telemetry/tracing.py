"""
OpenTelemetry trace pipeline for process startup.

Provides:
- new_exporter(): OTLP gRPC span exporter configured from OTEL_EXPORTER_OTLP_*
- init_provider(): TracerProvider with always-on sampling, exporter only in remote mode
- new_tracer_provider(): resource + batching exporter builder for finer control
- install_globals(): one-shot install of the default tracer provider and
  W3C trace-context propagator
- new_metric_reader() / new_meter_provider(): Prometheus-backed metrics
- add_trace_context / record_span_event: structlog processors correlating
  log entries with the active span

Local mode (empty EXEC_ENV) still produces spans, they are just never shipped:

    provider = init_provider(resource, exec_env="")
    install_globals(provider)
    tracer = provider.get_tracer("my_service")

    with tracer.start_as_current_span("process_batch") as span:
        span.set_attribute("batch_size", len(batch))
        ...
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable

from opentelemetry import metrics, propagate, trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.sdk.trace.sampling import ALWAYS_ON
from opentelemetry.trace import StatusCode, Tracer
from opentelemetry.trace.propagation import get_current_span
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from puzzle_telemetry.errors import ExporterConstructionError

logger = logging.getLogger(__name__)

# Instrumentation scope used for spans emitted by the bootstrap itself
TELEMETRY_KEY = "puzzleTelemetry"

# Set once the default tracer provider and propagator are installed
_globals_installed = False

# Keys already rendered by structlog; not copied onto span events
_SPAN_EVENT_SKIP_KEYS = frozenset({
    "event",
    "level",
    "logger",
    "timestamp",
    "trace_id",
    "span_id",
})

ExporterFactory = Callable[[], SpanExporter]


def new_exporter() -> SpanExporter:
    """
    Construct the OTLP gRPC span exporter.

    Endpoint, headers, compression and credentials come from the standard
    OTEL_EXPORTER_OTLP_* environment variables and are not validated here.

    Raises:
        ExporterConstructionError: If the exporter cannot be constructed.
    """
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter,
        )

        return OTLPSpanExporter()
    except Exception as exc:
        raise ExporterConstructionError(str(exc)) from exc


def init_provider(
    resource: Resource,
    exec_env: str,
    exporter_factory: ExporterFactory | None = None,
) -> TracerProvider:
    """
    Build the process TracerProvider.

    The provider always samples. A batching exporter is attached only when
    ``exec_env`` is non-empty; otherwise the exporter factory is never called.

    Args:
        resource: Resource descriptor attached to every span.
        exec_env: Deployment tag (EXEC_ENV).
        exporter_factory: Exporter constructor, ``new_exporter`` by default.
            Pass a custom one for testing (e.g., returning InMemorySpanExporter).

    Returns:
        The configured, not yet installed, TracerProvider.

    Raises:
        ExporterConstructionError: If the exporter factory fails in remote mode.
    """
    provider = TracerProvider(sampler=ALWAYS_ON, resource=resource)
    if not exec_env:
        return provider

    factory = exporter_factory or new_exporter
    try:
        exporter = factory()
    except ExporterConstructionError:
        raise
    except Exception as exc:
        raise ExporterConstructionError(str(exc)) from exc

    provider.add_span_processor(BatchSpanProcessor(exporter))
    return provider


def new_tracer_provider(
    exporter: SpanExporter,
    resource: Resource,
    *,
    install: bool = True,
) -> TracerProvider:
    """
    Build a TracerProvider that batches spans to ``exporter``.

    Lower-level alternative to ``init_provider`` for callers that construct
    their own exporter and resource.
    """
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    if install:
        install_globals(provider)
    return provider


def install_globals(provider: TracerProvider) -> bool:
    """
    Install ``provider`` as the default tracer provider and set the W3C
    trace-context propagator.

    Only the first call has an effect.

    Returns:
        True if the provider was installed, False if a provider had already
        been installed by an earlier call.
    """
    global _globals_installed

    if _globals_installed:
        logger.debug("Tracer provider already installed, keeping the existing one")
        return False

    trace.set_tracer_provider(provider)
    propagate.set_global_textmap(TraceContextTextMapPropagator())
    _globals_installed = True
    return True


def is_installed() -> bool:
    """Check whether install_globals() has run."""
    return _globals_installed


@contextmanager
def traced(
    tracer: Tracer,
    name: str,
    attributes: dict[str, Any] | None = None,
):
    """
    Context manager that creates a span and records exceptions.

    Usage:
        with traced(tracer, "warmup", {"cache": "users"}):
            ...
    """
    with tracer.start_as_current_span(name) as span:
        if attributes:
            for k, v in attributes.items():
                span.set_attribute(k, v)
        try:
            yield span
        except Exception as exc:
            span.set_status(StatusCode.ERROR, str(exc))
            span.record_exception(exc)
            raise


# ── Metrics ──────────────────────────────────────────────────────────


def new_metric_reader() -> MetricReader:
    """
    Construct a Prometheus metric reader.

    The reader registers with the prometheus_client default registry; expose
    it with ``prometheus_client.start_http_server``.
    """
    from opentelemetry.exporter.prometheus import PrometheusMetricReader

    return PrometheusMetricReader()


def new_meter_provider(
    reader: MetricReader,
    resource: Resource,
    *,
    install: bool = False,
) -> MeterProvider:
    """Build a MeterProvider collecting through ``reader``."""
    provider = MeterProvider(resource=resource, metric_readers=[reader])
    if install:
        metrics.set_meter_provider(provider)
    return provider


# ── Structlog processors for trace correlation ───────────────────────


def add_trace_context(
    logger_: Any, method: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """
    Structlog processor that injects trace_id and span_id into log entries.

    Add to structlog's processor chain so that every log message includes
    the active trace context for log-trace correlation.
    """
    span = get_current_span()
    ctx = span.get_span_context()

    if ctx.is_valid:
        event_dict["trace_id"] = f"{ctx.trace_id:032x}"
        event_dict["span_id"] = f"{ctx.span_id:016x}"

    return event_dict


def record_span_event(
    logger_: Any, method: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """
    Structlog processor that mirrors each log entry as a "log" event on the
    active span.

    The event carries ``log.severity``, ``log.message`` and every primitive
    field of the entry. Nothing is recorded when no span is recording.
    """
    span = get_current_span()
    if not span.is_recording():
        return event_dict

    severity = str(event_dict.get("level", method)).upper()
    attributes: dict[str, Any] = {
        "log.severity": severity,
        "log.message": str(event_dict.get("event", "")),
    }
    for key, value in event_dict.items():
        if key in _SPAN_EVENT_SKIP_KEYS:
            continue
        if isinstance(value, (str, bool, int, float)):
            attributes[key] = value

    span.add_event("log", attributes=attributes)
    return event_dict
