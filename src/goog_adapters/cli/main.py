"""
Typer application for inspecting configuration and checking service connectivity.
"""

from __future__ import annotations

import asyncio
import json
from typing import Optional

import typer

from ..config import Settings, load_settings
from ..core.logging import configure_logging
from .adapters import SERVICE_DESCRIPTIONS, resolve_adapter

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Operator CLI for the Google service adapters.\n\n"
        "Command groups:\n"
        "- services: list the supported services and verify connectivity.\n"
        "- config: show the resolved configuration."
    ),
)
services_app = typer.Typer(help="List supported services and run per-service verification.")
app.add_typer(services_app, name="services")
config_app = typer.Typer(help="Inspect the resolved configuration.")
app.add_typer(config_app, name="config")


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override GOOG_LOG_LEVEL for this run."),
) -> None:
    configure_logging(log_level, force=log_level is not None)
    ctx.obj = load_settings()


def _settings(ctx: typer.Context) -> Settings:
    settings = ctx.obj
    if not isinstance(settings, Settings):
        settings = load_settings()
        ctx.obj = settings
    return settings


@services_app.command("list")
def services_list() -> None:
    """List the supported services."""

    header = f"{'ID':<10} Description"
    typer.echo(header)
    typer.echo("-" * len(header))
    for service_id, description in SERVICE_DESCRIPTIONS.items():
        typer.echo(f"{service_id:<10} {description}")


@services_app.command("verify")
def services_verify(
    ctx: typer.Context,
    service_id: str = typer.Argument(..., help="Service identifier, e.g. calendar."),
) -> None:
    """Run a lightweight authenticated read against a service."""

    try:
        adapter = resolve_adapter(service_id, _settings(ctx))
    except ValueError as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    if adapter is None:
        typer.echo(f"Unknown service '{service_id}'. Choose from: {', '.join(SERVICE_DESCRIPTIONS)}.", err=True)
        raise typer.Exit(code=2)

    result = asyncio.run(adapter.verify())
    status = "OK" if result.success else "FAILED"
    typer.echo(f"[{status}] {service_id}: {result.message}")
    for key, value in (result.details or {}).items():
        typer.echo(f"  {key}: {value}")
    if not result.success:
        raise typer.Exit(code=1)


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    output_json: bool = typer.Option(False, "--json", help="Emit the configuration as JSON."),
) -> None:
    """Show the resolved configuration with the access token redacted."""

    payload = _settings(ctx).as_dict()
    if output_json:
        typer.echo(json.dumps(payload, indent=2))
        return
    typer.echo(f"Source: {payload['source_path'] or '(defaults)'}")
    typer.echo(f"Access token: {'configured' if payload['access_token'] else 'missing'}")
    typer.echo(f"Timeout: {payload['timeout']}s")
    typer.echo(f"Retry: max_attempts={payload['retry']['max_attempts']} base_delay={payload['retry']['base_delay']}s")
    typer.echo(f"Default calendar: {payload['calendar']['default_calendar']}")
    typer.echo(f"Mail user: {payload['mail']['user_id']} (page size {payload['mail']['page_size']})")


if __name__ == "__main__":  # pragma: no cover
    app()
