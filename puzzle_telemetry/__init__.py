"""Telemetry bootstrap - structured logging wired to OpenTelemetry tracing."""

from puzzle_telemetry.bootstrap import init, init_logger
from puzzle_telemetry.cascade import CascadeStage, new_logger
from puzzle_telemetry.errors import (
    AlreadyInstalledError,
    ConfigParseError,
    ConfigReadError,
    ExporterConstructionError,
    LoggerBuildError,
    ResourceMergeError,
    TelemetryError,
)
from puzzle_telemetry.logger import LoggerHandle
from puzzle_telemetry.resource import new_resource
from puzzle_telemetry.tracing import (
    init_provider,
    install_globals,
    new_exporter,
    new_meter_provider,
    new_metric_reader,
    new_tracer_provider,
)
from puzzle_telemetry.waiting import WaitingLog, WaitingLogs

__all__ = [
    "init",
    "init_logger",
    "new_logger",
    "new_resource",
    "init_provider",
    "install_globals",
    "new_exporter",
    "new_tracer_provider",
    "new_metric_reader",
    "new_meter_provider",
    "CascadeStage",
    "LoggerHandle",
    "WaitingLog",
    "WaitingLogs",
    "TelemetryError",
    "ConfigReadError",
    "ConfigParseError",
    "LoggerBuildError",
    "ExporterConstructionError",
    "ResourceMergeError",
    "AlreadyInstalledError",
]
