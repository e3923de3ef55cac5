from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_observation(payload: Dict[str, Any]) -> None:
    echo_heading("Latest Observation")
    echo_key_values(
        [
            ("station_id", payload.get("station_id")),
            ("observation_time", payload.get("observation_time")),
            ("temperature", payload.get("temperature")),
        ]
    )
    typer.echo()
    echo_heading("Raw METAR")
    typer.echo(payload.get("raw_text") or "")


def render_average(payload: Dict[str, Any]) -> None:
    echo_heading("Average Temperature (last 24h)")
    average = payload.get("average_temperature")
    echo_key_values(
        [
            ("station_id", payload.get("station_id")),
            ("average_temperature", f"{average:.2f}" if isinstance(average, (int, float)) else average),
            ("observation_count", payload.get("observation_count")),
            ("window_start", payload.get("window_start")),
            ("window_end", payload.get("window_end")),
        ]
    )


def render_summary(payload: Dict[str, Any]) -> None:
    echo_heading("Ingestion Summary")
    echo_key_values(
        [
            ("started_at", payload.get("started_at")),
            ("finished_at", payload.get("finished_at")),
            ("processing_ms", payload.get("processing_ms")),
        ]
    )

    typer.echo()
    echo_heading("Counts")
    echo_key_values(
        [
            ("fetched_bytes", payload.get("fetched_bytes")),
            ("parsed_count", payload.get("parsed_count")),
            ("skipped_rows", payload.get("skipped_rows")),
            ("batch_duplicates", payload.get("batch_duplicates")),
            ("existing_duplicates", payload.get("existing_duplicates")),
            ("inserted_count", payload.get("inserted_count")),
        ]
    )
    if payload.get("parse_failed"):
        typer.echo()
        typer.secho("The feed could not be parsed; nothing was ingested.", fg=typer.colors.YELLOW)
