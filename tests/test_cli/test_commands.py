"""Tests for the puzzle-telemetry CLI."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner
from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from puzzle_telemetry.cli import main


@pytest.fixture
def runner():
    return CliRunner()


class TestResourceCommand:
    """Test the `resource` command."""

    def test_prints_attributes(self, runner: CliRunner) -> None:
        result = runner.invoke(
            main, ["resource", "--service", "checkout", "--version", "1.4.2", "--env", "staging"]
        )

        assert result.exit_code == 0, result.output
        attributes = json.loads(result.output)
        assert attributes["service.name"] == "checkout"
        assert attributes["service.version"] == "1.4.2"
        assert attributes["environment"] == "staging"

    def test_environment_defaults_to_exec_env(self, runner: CliRunner) -> None:
        result = runner.invoke(
            main,
            ["--exec-env", "qa", "resource", "--service", "checkout", "--version", "1.4.2"],
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["environment"] == "qa"

    def test_environment_read_from_env_file(self, runner: CliRunner, tmp_path) -> None:
        (tmp_path / ".env").write_text("EXEC_ENV=prod\n")

        result = runner.invoke(main, ["resource", "--service", "checkout", "--version", "1.4.2"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["environment"] == "prod"

    def test_exec_env_option_wins_over_env_file(self, runner: CliRunner, tmp_path) -> None:
        (tmp_path / ".env").write_text("EXEC_ENV=prod\n")

        result = runner.invoke(
            main,
            ["--exec-env", "", "resource", "--service", "checkout", "--version", "1.4.2"],
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["environment"] == ""

    def test_requires_service(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["resource", "--version", "1.4.2"])

        assert result.exit_code != 0
        assert "--service" in result.output


class TestCheckCommand:
    """Test the `check` command."""

    def test_local_mode_check(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["check", "--service", "checkout", "--version", "1.4.2"])

        assert result.exit_code == 0, result.output
        assert "Telemetry Check Results" in result.output
        assert "logger stage: default_production" in result.output
        assert "export mode: local" in result.output
        assert "span processors drained: True" in result.output

    def test_exec_env_option_keeps_local_mode_over_env_file(self, runner: CliRunner, tmp_path) -> None:
        (tmp_path / ".env").write_text("EXEC_ENV=prod\n")

        with patch("puzzle_telemetry.tracing.new_exporter") as new_exporter:
            result = runner.invoke(
                main,
                ["--exec-env", "", "check", "--service", "checkout", "--version", "1.4.2"],
            )

        assert result.exit_code == 0, result.output
        new_exporter.assert_not_called()
        assert "export mode: local" in result.output
        # Overlay loaded by the group is still replayed by the logger
        assert '"event": "Loaded .env file"' in result.output

    def test_exporter_failure_exits_with_one(self, runner: CliRunner) -> None:
        with patch(
            "opentelemetry.exporter.otlp.proto.grpc.trace_exporter.OTLPSpanExporter",
            side_effect=RuntimeError("collector unreachable"),
        ):
            result = runner.invoke(
                main,
                ["--exec-env", "prod", "check", "--service", "checkout", "--version", "1.4.2"],
            )

        assert result.exit_code == 1
        assert "Failed to init exporter : collector unreachable" in result.output


class TestMetricsCommand:
    """Test the `metrics` command."""

    def test_starts_server_and_shuts_down(self, runner: CliRunner) -> None:
        reader = InMemoryMetricReader()

        with patch("puzzle_telemetry.tracing.new_metric_reader", return_value=reader), \
             patch("prometheus_client.start_http_server") as start_server, \
             patch("puzzle_telemetry.cli._wait_forever", side_effect=KeyboardInterrupt):
            result = runner.invoke(
                main,
                ["metrics", "--service", "checkout", "--version", "1.4.2", "--port", "9999"],
            )

        assert result.exit_code == 0, result.output
        start_server.assert_called_once_with(9999)
        assert "http://localhost:9999/metrics" in result.output

    def test_port_defaults_to_settings(self, runner: CliRunner, monkeypatch) -> None:
        monkeypatch.setenv("METRICS_PORT", "9100")

        with patch("puzzle_telemetry.tracing.new_metric_reader", return_value=InMemoryMetricReader()), \
             patch("prometheus_client.start_http_server") as start_server, \
             patch("puzzle_telemetry.cli._wait_forever", side_effect=KeyboardInterrupt):
            result = runner.invoke(main, ["metrics", "--service", "checkout", "--version", "1.4.2"])

        assert result.exit_code == 0, result.output
        start_server.assert_called_once_with(9100)
