"""CLI for the calendar/registry bridge: serve the API and inspect conversions."""

from __future__ import annotations

import logging
import sys

import click

from calbridge.config import ConfigError, load_config
from calbridge.errors import BridgeError
from calbridge.temporal import to_calendar_format, to_display_format

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """Sync registry reservations with calendar events."""


@cli.command()
@click.option("--host", default=None, help="Bind address (default: $HOST or 0.0.0.0)")
@click.option("--port", type=int, default=None, help="Listen port (default: $PORT or 3000)")
def serve(host: str | None, port: int | None) -> None:
    """Run the HTTP bridge."""
    import uvicorn

    from calbridge.api.app import create_app
    from calbridge.core.logging import configure_logging

    try:
        config = load_config()
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    configure_logging(level=config.logging.level, fmt=config.logging.format)
    bind_host = host or config.host
    bind_port = port or config.port
    logger.info("Starting bridge on %s:%d", bind_host, bind_port)
    uvicorn.run(create_app(config), host=bind_host, port=bind_port, log_config=None)


@cli.command("check-config")
def check_config() -> None:
    """Validate environment configuration without printing secrets."""
    try:
        config = load_config()
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    rows = [
        ("Registry", f"{config.registry_base_url} ({config.registry_environment})"),
        ("Tenant", config.registry_tenant),
        ("Fields", f"{config.registry_start_field}, {config.registry_end_field}"),
        ("Calendar", config.calendar_id),
        ("Timezone", config.default_timezone),
        ("Timeout", f"{config.request_timeout_seconds:g}s"),
        ("Listen", f"{config.host}:{config.port}"),
        ("Logging", f"{config.logging.level} ({config.logging.format})"),
    ]
    for label, value in rows:
        click.echo(f"{label:<10} {value}")
    click.echo("Configuration OK")


@cli.group()
def convert() -> None:
    """Convert between display and calendar date-time formats."""


@convert.command("to-calendar")
@click.argument("value")
@click.option("--tz", "time_zone", required=True, help="IANA zone, e.g. America/New_York")
def convert_to_calendar(value: str, time_zone: str) -> None:
    """Display string ('Mar 05 2025 02:30 PM') -> ISO-8601 with offset."""
    try:
        click.echo(to_calendar_format(value, time_zone))
    except BridgeError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@convert.command("to-display")
@click.argument("value")
@click.option("--tz", "time_zone", required=True, help="IANA zone, e.g. America/New_York")
def convert_to_display(value: str, time_zone: str) -> None:
    """ISO-8601 instant -> display string in the zone's wall-clock time."""
    try:
        click.echo(to_display_format(value, time_zone))
    except BridgeError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
