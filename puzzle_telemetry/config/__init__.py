"""Environment configuration for the telemetry bootstrap."""

from puzzle_telemetry.config.settings import (
    TelemetrySettings,
    load_env_overlay,
    load_settings,
)

__all__ = ["TelemetrySettings", "load_env_overlay", "load_settings"]
