"""
Structured logging on top of structlog and stdlib logging.

Stdlib ``logging`` owns the sinks, levels and formatters and is configured
from a ``logging.config.dictConfig`` document. structlog owns the event
pipeline: it adds level, logger name, timestamp and the active trace context,
mirrors each entry onto the current span, then renders JSON (production) or
pretty console output.

Usage:
    logger = build_logger(PRODUCTION_LOGGING, name="checkout")
    handle = LoggerHandle(logger)
    handle.info("Processing order", order_id="123")
"""

from __future__ import annotations

import copy
import logging
import logging.config
from typing import TYPE_CHECKING, Any, Mapping

import structlog
from opentelemetry import context as otel_context
from opentelemetry.context import Context
from opentelemetry.sdk.trace import TracerProvider
from structlog.types import Processor

from puzzle_telemetry.errors import LoggerBuildError
from puzzle_telemetry.tracing import TELEMETRY_KEY, add_trace_context, record_span_event
from puzzle_telemetry.waiting import WaitingLogs

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from puzzle_telemetry.cascade import CascadeStage

# Span wrapping the replay of buffered startup diagnostics
INIT_SPAN_NAME = "logger/initialization"

# Optional top-level key of a logging config selecting the structlog renderer
RENDERER_KEY = "renderer"
RENDERERS = frozenset({"json", "console"})

# Fixed production defaults: JSON lines on stdout at INFO
PRODUCTION_LOGGING: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(message)s"},
    },
    "handlers": {
        "stdout": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
            "stream": "ext://sys.stdout",
            "level": "INFO",
        },
    },
    "root": {
        "handlers": ["stdout"],
        "level": "INFO",
    },
}


def build_processors(renderer: str = "json") -> list[Processor]:
    """Return the structlog processor chain ending in ``renderer``."""
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        add_trace_context,
        record_span_event,
    ]

    if renderer == "console":
        return shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]
    return shared_processors + [
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def configure_structlog(renderer: str = "json") -> None:
    """Route structlog through stdlib logging with the given renderer."""
    structlog.configure(
        processors=build_processors(renderer),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_logger(
    config: Mapping[str, Any],
    name: str | None = None,
) -> structlog.stdlib.BoundLogger:
    """
    Build a structured logger from a dictConfig document.

    ``version`` defaults to 1 and ``disable_existing_loggers`` to False so a
    minimal document only has to list handlers and levels.

    Args:
        config: dictConfig document, optionally with a top-level
            ``renderer`` key ("json" or "console").
        name: Logger name (root logger if omitted).

    Raises:
        LoggerBuildError: If the document is rejected by dictConfig or names
            an unknown renderer.
    """
    document = copy.deepcopy(dict(config))
    renderer = document.pop(RENDERER_KEY, "json")
    if not isinstance(renderer, str) or renderer not in RENDERERS:
        raise LoggerBuildError(
            f"Invalid renderer {renderer!r}. Must be one of: {sorted(RENDERERS)}"
        )

    document.setdefault("version", 1)
    document.setdefault("disable_existing_loggers", False)
    try:
        logging.config.dictConfig(document)
    except Exception as exc:
        raise LoggerBuildError(str(exc)) from exc

    configure_structlog(renderer)
    return structlog.get_logger(name)


def build_production_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Build a logger with the fixed production defaults."""
    return build_logger(PRODUCTION_LOGGING, name)


class LoggerHandle:
    """
    Trace-aware wrapper around a structlog logger.

    Every method accepts an optional OpenTelemetry ``context``; when given it
    is attached for the duration of the call, so the entry carries that
    context's trace_id/span_id and is recorded on its span. Without it the
    current context is used.

    Usage:
        handle.info("Cache warmed", entries=1200)
        handle.warning("Slow query", context=ctx, elapsed_ms=812)
    """

    def __init__(self, logger: Any, stage: CascadeStage | None = None) -> None:
        self._logger = logger
        self.stage = stage

    @property
    def logger(self) -> Any:
        """The wrapped structlog logger."""
        return self._logger

    def bind(self, **fields: Any) -> LoggerHandle:
        """Return a new handle whose entries all carry ``fields``."""
        return LoggerHandle(self._logger.bind(**fields), stage=self.stage)

    def debug(self, event: str, *, context: Context | None = None, **fields: Any) -> None:
        self._emit("debug", event, context, fields)

    def info(self, event: str, *, context: Context | None = None, **fields: Any) -> None:
        self._emit("info", event, context, fields)

    def warning(self, event: str, *, context: Context | None = None, **fields: Any) -> None:
        self._emit("warning", event, context, fields)

    def error(self, event: str, *, context: Context | None = None, **fields: Any) -> None:
        self._emit("error", event, context, fields)

    def exception(self, event: str, *, context: Context | None = None, **fields: Any) -> None:
        self._emit("exception", event, context, fields)

    def _emit(
        self,
        method: str,
        event: str,
        context: Context | None,
        fields: dict[str, Any],
    ) -> None:
        token = otel_context.attach(context) if context is not None else None
        try:
            getattr(self._logger, method)(event, **fields)
        finally:
            if token is not None:
                otel_context.detach(token)


def replay(
    handle: LoggerHandle,
    waiting: WaitingLogs,
    tracer_provider: TracerProvider | None = None,
) -> int:
    """
    Emit every buffered startup diagnostic through ``handle``, in order.

    Plain entries are logged at info level; entries carrying an error are
    logged at warning level with ``error`` and ``error_kind`` fields. With a
    tracer provider the replay runs inside an ``logger/initialization`` span so
    the entries share one trace.

    Returns:
        Number of entries replayed.
    """
    if tracer_provider is None:
        return _emit_waiting(handle, waiting)

    tracer = tracer_provider.get_tracer(TELEMETRY_KEY)
    with tracer.start_as_current_span(INIT_SPAN_NAME):
        return _emit_waiting(handle, waiting)


def _emit_waiting(handle: LoggerHandle, waiting: WaitingLogs) -> int:
    count = 0
    for entry in waiting.drain():
        if entry.error is None:
            handle.info(entry.message)
        else:
            handle.warning(
                entry.message,
                error=str(entry.error),
                error_kind=type(entry.error).__name__,
            )
        count += 1
    return count
