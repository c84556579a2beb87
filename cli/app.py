from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient, load_payload
from cli.config import CLIConfig, load_config
from cli.render import render_evaluation, render_logs, render_resolution


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the temperature compliance engine.",
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
        help="Engine API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each API request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("evaluate")
def evaluate_command(
    ctx: typer.Context,
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="JSON evaluation request."
    ),
) -> None:
    """Evaluate one completion record (or a batch under an ``evaluations`` key)."""
    state = _get_state(ctx)
    payload = load_payload(file)
    if "evaluations" in payload:
        response = state.client.evaluate_batch(payload)
        results = response.get("results") or []
        for index, result in enumerate(results):
            if index:
                typer.echo()
            render_evaluation(result)
        return
    render_evaluation(state.client.evaluate(payload))


@app.command("resolve")
def resolve_command(
    ctx: typer.Context,
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="JSON monitoring resolve request."
    ),
) -> None:
    """Match a monitoring task's completion to its original reading."""
    state = _get_state(ctx)
    render_resolution(state.client.resolve_monitoring(load_payload(file)))


@app.command("logs")
def logs_command(
    ctx: typer.Context,
    recorded_by: str = typer.Option(..., "--recorded-by", help="Recorder profile id."),
    at: Optional[datetime] = typer.Option(
        None, "--at", help="Centre of the window (defaults to now, UTC)."
    ),
    window: float = typer.Option(5.0, "--window", help="Minutes either side of --at."),
    site_id: Optional[str] = typer.Option(None, "--site-id", help="Restrict to one site."),
    limit: int = typer.Option(10, "--limit", min=1, max=100),
) -> None:
    """List standalone temperature logs around a point in time."""
    state = _get_state(ctx)
    centre = at or datetime.now(timezone.utc)
    if centre.tzinfo is None:
        centre = centre.replace(tzinfo=timezone.utc)
    delta = timedelta(minutes=window)
    rows = state.client.query_logs(
        recorded_by=recorded_by,
        start=(centre - delta).isoformat(),
        end=(centre + delta).isoformat(),
        site_id=site_id,
        limit=limit,
    )
    render_logs(rows)
