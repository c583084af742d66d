"""Pytest fixtures for puzzle-telemetry tests."""

import json
import logging
from typing import Any, Generator
from unittest.mock import Mock

import pytest
import structlog
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from puzzle_telemetry import tracing
from puzzle_telemetry.resource import new_resource

# Variables the bootstrap reads or that .env overlays in tests may set
TELEMETRY_ENV_VARS = ("EXEC_ENV", "LOG_CONFIG_PATH", "METRICS_PORT", "PUZZLE_TEST_VALUE")


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Run each test in an empty directory with telemetry variables unset.

    Setting then deleting registers every variable with monkeypatch, so
    values written by load_dotenv are removed again after the test.
    """
    for name in TELEMETRY_ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Undo structlog and stdlib logging configuration after each test."""
    yield
    structlog.reset_defaults()
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.WARNING)


@pytest.fixture(autouse=True)
def global_install(monkeypatch: pytest.MonkeyPatch) -> dict[str, Mock]:
    """Keep install_globals() from touching the real OpenTelemetry globals.

    The SDK only accepts one global tracer provider per process, so the
    setters are replaced and the one-shot guard is reset for every test.
    """
    mocks = {
        "set_tracer_provider": Mock(),
        "set_global_textmap": Mock(),
        "set_meter_provider": Mock(),
    }
    monkeypatch.setattr(tracing, "_globals_installed", False)
    monkeypatch.setattr(tracing.trace, "set_tracer_provider", mocks["set_tracer_provider"])
    monkeypatch.setattr(tracing.propagate, "set_global_textmap", mocks["set_global_textmap"])
    monkeypatch.setattr(tracing.metrics, "set_meter_provider", mocks["set_meter_provider"])
    return mocks


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    """In-memory exporter collecting finished spans."""
    return InMemorySpanExporter()


@pytest.fixture
def tracer_provider(span_exporter: InMemorySpanExporter) -> TracerProvider:
    """Provider exporting synchronously to ``span_exporter``."""
    provider = TracerProvider(resource=new_resource("test-service", "0.0.1", "test"))
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return provider


def json_lines(output: str) -> list[dict[str, Any]]:
    """Parse the JSON log entries out of captured output, skipping other lines."""
    entries = []
    for line in output.splitlines():
        try:
            entry = json.loads(line)
        except ValueError:
            continue
        if isinstance(entry, dict):
            entries.append(entry)
    return entries


@pytest.fixture
def read_log_entries(capsys: pytest.CaptureFixture[str]):
    """Return a callable reading the JSON log entries written to stdout so far."""

    def read() -> list[dict[str, Any]]:
        return json_lines(capsys.readouterr().out)

    return read
