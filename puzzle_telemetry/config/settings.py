"""Telemetry settings using Pydantic Settings for environment-based configuration."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from puzzle_telemetry.waiting import WaitingLogs

DEFAULT_ENV_FILE = ".env"


class TelemetrySettings(BaseSettings):
    """
    Startup configuration for the telemetry bootstrap.

    All settings are read from environment variables. No prefix is used so the
    deployment can keep its standard names (EXEC_ENV, LOG_CONFIG_PATH).
    Exporter transport (endpoint, headers, TLS) is read by the OTLP exporter
    itself from the OTEL_EXPORTER_OTLP_* variables.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
    )

    # Deployment tag; empty means local mode (no remote exporter)
    exec_env: str = ""

    # Optional JSON logging configuration (logging.config.dictConfig schema)
    log_config_path: str | None = None

    metrics_port: int = Field(default=9464, ge=1, le=65535)

    @property
    def remote_export(self) -> bool:
        """Check if spans should be shipped to a remote collector."""
        return self.exec_env != ""

    @property
    def log_config_configured(self) -> bool:
        """Check if a logging configuration file was requested."""
        return bool(self.log_config_path)


def load_env_overlay(
    waiting: WaitingLogs,
    path: str | Path | None = DEFAULT_ENV_FILE,
) -> bool:
    """
    Load a ``.env`` overlay into the process environment, best effort.

    Values from the file override variables that are already set. A missing,
    unreadable or empty file is not an error and records nothing.

    Args:
        waiting: Buffer receiving the "Loaded .env file" entry on success.
        path: Overlay file location. ``None`` disables overlay loading.

    Returns:
        True if at least one variable was loaded.
    """
    if path is None:
        return False

    try:
        loaded = load_dotenv(dotenv_path=path, override=True)
    except (OSError, ValueError):
        # Unreadable or undecodable overlay: same as no overlay
        return False

    if loaded:
        waiting.append("Loaded .env file")
    return loaded


def load_settings(waiting: WaitingLogs) -> TelemetrySettings:
    """
    Read settings from the environment without raising.

    Invalid values are buffered as a warning entry and defaults are used
    instead. The deployment tag and config path are plain strings and are
    always taken from the environment as-is.
    """
    try:
        return TelemetrySettings()
    except ValidationError as exc:
        waiting.append("Failed to load settings, using defaults", error=exc)
        return TelemetrySettings.model_construct(
            exec_env=os.environ.get("EXEC_ENV", ""),
            log_config_path=os.environ.get("LOG_CONFIG_PATH") or None,
        )
