"""Logger construction fallback cascade.

Stages are tried strictly in order, each falling through to the next on
failure::

    CONFIG_FILE ──ok──▶ CONFIG_BUILD ──ok──▶ logger
         │                   │
       fail                fail
         ▼                   ▼
    DEFAULT_PRODUCTION ──ok──▶ logger
         │
       fail ──▶ print buffered diagnostics, exit(1)

Without LOG_CONFIG_PATH the cascade starts directly at DEFAULT_PRODUCTION.
Every recoverable failure is buffered in ``WaitingLogs`` and replayed once the
logger is live.
"""

import enum
import json
import logging
from pathlib import Path
from typing import Any, Callable

from opentelemetry.sdk.trace import TracerProvider

from puzzle_telemetry.errors import ConfigParseError, ConfigReadError, LoggerBuildError
from puzzle_telemetry.logger import (
    LoggerHandle,
    build_logger,
    build_production_logger,
    replay,
)
from puzzle_telemetry.waiting import WaitingLogs, flush_and_exit

logger = logging.getLogger(__name__)

ProductionFactory = Callable[[str | None], Any]


class CascadeStage(enum.Enum):
    """Logger construction stages, in the order they are attempted."""

    CONFIG_FILE = "config_file"
    CONFIG_BUILD = "config_build"
    DEFAULT_PRODUCTION = "default_production"


def read_log_config(path: str | Path) -> dict[str, Any]:
    """Read and parse a JSON logging configuration.

    Raises:
        ConfigReadError: If the file cannot be read.
        ConfigParseError: If the content is not a JSON object.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigReadError(f"{path}: {exc}") from exc

    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigParseError(f"{path}: {exc}") from exc

    if not isinstance(document, dict):
        raise ConfigParseError(
            f"{path}: expected a JSON object, got {type(document).__name__}"
        )
    return document


def run_cascade(
    waiting: WaitingLogs,
    log_config_path: str | None,
    *,
    name: str | None = None,
    production_factory: ProductionFactory = build_production_logger,
) -> tuple[Any, CascadeStage]:
    """Walk the cascade until a logger is built.

    Args:
        waiting: Buffer receiving one entry per failed stage.
        log_config_path: JSON logging config location; falsy skips the
            config stages.
        name: Logger name.
        production_factory: Builder for the last-resort stage.

    Returns:
        The structlog logger and the stage that produced it.

    Exits the process with status 1, after printing every buffered entry to
    stdout, if the production stage fails too.
    """
    stage = CascadeStage.CONFIG_FILE if log_config_path else CascadeStage.DEFAULT_PRODUCTION
    config: dict[str, Any] = {}

    while True:
        if stage is CascadeStage.CONFIG_FILE:
            try:
                config = read_log_config(log_config_path)
            except ConfigReadError as exc:
                waiting.append("Failed to read logging config file", error=exc)
                stage = CascadeStage.DEFAULT_PRODUCTION
            except ConfigParseError as exc:
                waiting.append("Failed to parse logging config file", error=exc)
                stage = CascadeStage.DEFAULT_PRODUCTION
            else:
                stage = CascadeStage.CONFIG_BUILD

        elif stage is CascadeStage.CONFIG_BUILD:
            try:
                return build_logger(config, name), stage
            except LoggerBuildError as exc:
                waiting.append("Failed to init logger with config", error=exc)
                stage = CascadeStage.DEFAULT_PRODUCTION

        else:
            try:
                return production_factory(name), stage
            except Exception as exc:
                error = exc if isinstance(exc, LoggerBuildError) else LoggerBuildError(str(exc))
                waiting.append("Failed to init logger with default config", error=error)
                flush_and_exit(waiting)


def new_logger(
    waiting: WaitingLogs,
    log_config_path: str | None = None,
    *,
    name: str | None = None,
    tracer_provider: TracerProvider | None = None,
    production_factory: ProductionFactory = build_production_logger,
) -> LoggerHandle:
    """Build the logger through the cascade and replay buffered diagnostics.

    With ``tracer_provider`` the replay runs inside the initialization span.
    """
    structured, stage = run_cascade(
        waiting,
        log_config_path,
        name=name,
        production_factory=production_factory,
    )
    handle = LoggerHandle(structured, stage=stage)
    count = replay(handle, waiting, tracer_provider)
    logger.debug("Logger ready: stage=%s replayed=%d", stage.value, count)
    return handle
