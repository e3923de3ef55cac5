from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_average, render_observation, render_summary


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the METAR ingest service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Request timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("latest")
def latest_command(
    ctx: typer.Context,
    station_id: str = typer.Argument(..., help="ICAO station identifier, e.g. KJFK."),
) -> None:
    """Show the most recent observation for a station."""
    state = _get_state(ctx)
    render_observation(state.client.get_latest(station_id))


@app.command("average")
def average_command(
    ctx: typer.Context,
    station_id: str = typer.Argument(..., help="ICAO station identifier, e.g. KJFK."),
) -> None:
    """Show the average temperature for a station over the last 24 hours."""
    state = _get_state(ctx)
    render_average(state.client.get_average(station_id))


@app.command("ingest")
def ingest_command(ctx: typer.Context) -> None:
    """Run an ingestion cycle on the server and print its summary."""
    state = _get_state(ctx)
    typer.echo(f"Triggering ingestion on {state.config.base_url} ...")
    render_summary(state.client.trigger_ingestion())
