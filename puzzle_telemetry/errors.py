"""Errors raised while bootstrapping telemetry.

Only ``ExporterConstructionError`` and an exhausted logger cascade are fatal.
Every other error is buffered as a ``WaitingLog`` entry and replayed once a
logger exists.
"""


class TelemetryError(Exception):
    """Base class for telemetry bootstrap errors."""


class ConfigReadError(TelemetryError):
    """Raised when the logger configuration file cannot be read."""


class ConfigParseError(TelemetryError):
    """Raised when the logger configuration file is not a JSON object."""


class LoggerBuildError(TelemetryError):
    """Raised when a logger cannot be built from a configuration."""


class ExporterConstructionError(TelemetryError):
    """Raised when the span exporter cannot be constructed."""


class ResourceMergeError(TelemetryError):
    """Raised when the default and identity resources cannot be merged."""


class AlreadyInstalledError(TelemetryError):
    """Raised when the process-wide tracer provider is already installed."""
