"""
Command-line interface for puzzle-telemetry.

Provides diagnostic commands to inspect what the bootstrap would produce
in the current environment.

Usage:
    puzzle-telemetry resource --service checkout --version 1.4.2
    puzzle-telemetry check --service checkout --version 1.4.2
    puzzle-telemetry metrics --service checkout --version 1.4.2 --port 9464
"""

import json
import os
import threading

import click

from puzzle_telemetry.config.settings import (
    DEFAULT_ENV_FILE,
    TelemetrySettings,
    load_env_overlay,
)
from puzzle_telemetry.waiting import WaitingLogs


@click.group()
@click.option(
    "--env-file",
    default=DEFAULT_ENV_FILE,
    show_default=True,
    help=".env overlay loaded before anything else",
)
@click.option("--exec-env", default=None, help="Override EXEC_ENV (wins over the .env overlay)")
@click.pass_context
def main(ctx: click.Context, env_file: str, exec_env: str | None) -> None:
    """Puzzle Telemetry - logging and tracing bootstrap diagnostics."""
    waiting = WaitingLogs()
    load_env_overlay(waiting, env_file)
    if exec_env is not None:
        os.environ["EXEC_ENV"] = exec_env

    ctx.ensure_object(dict)
    ctx.obj["waiting"] = waiting


@main.command()
@click.option("--service", required=True, help="Service name")
@click.option("--version", "version", required=True, help="Service version")
@click.option("--env", "environment", default=None, help="Deployment environment (defaults to EXEC_ENV)")
def resource(service: str, version: str, environment: str | None) -> None:
    """Print the resource attributes as JSON."""
    from puzzle_telemetry.resource import new_resource

    if environment is None:
        environment = TelemetrySettings().exec_env

    rsc = new_resource(service, version, environment)
    click.echo(json.dumps(dict(rsc.attributes), indent=2, sort_keys=True, default=str))


@main.command()
@click.option("--service", required=True, help="Service name")
@click.option("--version", "version", required=True, help="Service version")
@click.pass_context
def check(ctx: click.Context, service: str, version: str) -> None:
    """Run the full bootstrap and emit one test span and log entry."""
    from puzzle_telemetry.bootstrap import init
    from puzzle_telemetry.tracing import TELEMETRY_KEY, traced

    # Overlay already loaded by the group, before --exec-env was applied
    logger, provider = init(service, version, env_file=None, waiting=ctx.obj["waiting"])

    tracer = provider.get_tracer(TELEMETRY_KEY)
    with traced(tracer, "telemetry/check", {"service.name": service}) as span:
        logger.info("Telemetry check", stage=logger.stage.value)
        trace_id = f"{span.get_span_context().trace_id:032x}"

    # force_flush only reports that the span processors drained, not delivery
    drained = provider.force_flush()
    provider.shutdown()

    click.echo("\nTelemetry Check Results:")
    click.echo("-" * 40)
    click.echo(f"  logger stage: {logger.stage.value}")
    click.echo(f"  trace id: {trace_id}")
    click.echo(f"  export mode: {'remote' if os.environ.get('EXEC_ENV') else 'local'}")
    icon = "✓" if drained else "✗"
    color = "green" if drained else "red"
    click.echo(click.style(f"  {icon} span processors drained: {drained}", fg=color))
    click.echo("-" * 40)


@main.command()
@click.option("--service", required=True, help="Service name")
@click.option("--version", "version", required=True, help="Service version")
@click.option("--port", default=None, type=int, help="Metrics server port (defaults to METRICS_PORT)")
def metrics(service: str, version: str, port: int | None) -> None:
    """Serve Prometheus metrics for this resource until interrupted."""
    from prometheus_client import start_http_server

    from puzzle_telemetry.resource import new_resource
    from puzzle_telemetry.tracing import new_meter_provider, new_metric_reader

    settings = TelemetrySettings()
    port = port or settings.metrics_port

    rsc = new_resource(service, version, settings.exec_env)
    meter_provider = new_meter_provider(new_metric_reader(), rsc, install=True)

    start_http_server(port)
    click.echo(f"Metrics available on http://localhost:{port}/metrics")

    try:
        _wait_forever()
    except KeyboardInterrupt:
        pass
    finally:
        meter_provider.shutdown()


def _wait_forever() -> None:
    threading.Event().wait()


if __name__ == "__main__":
    main()
