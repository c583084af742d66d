"""
Process startup entry points.

``init`` wires everything together, in this order:

    .env overlay → settings → resource → tracer provider (+ exporter in
    remote mode) → global install → logger cascade → diagnostic replay

Nothing recoverable is raised to the caller; problems are replayed as
warning log entries inside the ``logger/initialization`` span. The process
exits with status 1 only when the exporter cannot be built in remote mode or
when no logger at all can be built.

Usage:
    from puzzle_telemetry import init

    logger, tracer_provider = init("checkout", "1.4.2")
    logger.info("Service starting", port=8080)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from opentelemetry.sdk.trace import TracerProvider

from puzzle_telemetry.cascade import new_logger
from puzzle_telemetry.config.settings import (
    DEFAULT_ENV_FILE,
    load_env_overlay,
    load_settings,
)
from puzzle_telemetry.errors import AlreadyInstalledError, ExporterConstructionError
from puzzle_telemetry.logger import LoggerHandle
from puzzle_telemetry.resource import new_resource
from puzzle_telemetry.tracing import ExporterFactory, init_provider, install_globals
from puzzle_telemetry.waiting import WaitingLogs, flush_and_exit


def init(
    service_name: str,
    version: str,
    *,
    attributes: Mapping[str, Any] | None = None,
    env_file: str | Path | None = DEFAULT_ENV_FILE,
    exporter_factory: ExporterFactory | None = None,
    waiting: WaitingLogs | None = None,
) -> tuple[LoggerHandle, TracerProvider]:
    """
    Initialize tracing and logging for this process.

    Call once, at startup.

    Args:
        service_name: Logical service name (appears in the trace backend).
        version: Service version.
        attributes: Extra resource attributes attached to all telemetry.
        env_file: ``.env`` overlay to load first; ``None`` skips it.
        exporter_factory: Span exporter constructor used in remote mode
            (OTLP gRPC by default).
        waiting: Diagnostics collected by the caller before ``init`` (for
            example an overlay it loaded itself); replayed with the rest.

    Returns:
        The logger handle and the tracer provider.
    """
    if waiting is None:
        waiting = WaitingLogs()
    load_env_overlay(waiting, env_file)
    settings = load_settings(waiting)

    resource = new_resource(
        service_name,
        version,
        settings.exec_env,
        attributes,
        waiting=waiting,
    )

    try:
        provider = init_provider(resource, settings.exec_env, exporter_factory)
    except ExporterConstructionError as exc:
        waiting.append("Failed to init exporter", error=exc)
        flush_and_exit(waiting)

    if not install_globals(provider):
        waiting.append(
            "Tracer provider already installed, keeping the existing one",
            error=AlreadyInstalledError("init called more than once"),
        )

    handle = new_logger(
        waiting,
        settings.log_config_path,
        name=service_name,
        tracer_provider=provider,
    )
    return handle, provider


def init_logger(
    name: str | None = None,
    *,
    env_file: str | Path | None = DEFAULT_ENV_FILE,
) -> LoggerHandle:
    """
    Initialize logging only, without tracing.

    Runs the same overlay loading and logger cascade as ``init`` and replays
    buffered diagnostics outside of any span.
    """
    waiting = WaitingLogs()
    load_env_overlay(waiting, env_file)
    settings = load_settings(waiting)
    return new_logger(waiting, settings.log_config_path, name=name)
