from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

_STATUS_COLORS = {
    "ok": typer.colors.GREEN,
    "warning": typer.colors.YELLOW,
    "failed": typer.colors.RED,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _format_value(value: Any) -> str:
    if value is None:
        return "no reading recorded"
    return f"{value}°C"


def _equipment_label(reading: Dict[str, Any]) -> str:
    name = reading.get("equipment_name") or "Unknown Equipment"
    nickname = reading.get("nickname")
    return f"{name} | {nickname}" if nickname else name


def render_readings(readings: List[Dict[str, Any]]) -> None:
    echo_heading("Readings")
    if not readings:
        typer.echo("No readings resolved.")
        return
    for reading in readings:
        status = reading.get("status", "ok")
        typer.echo(
            f"  - {_equipment_label(reading)} ({reading.get('asset_id') or 'unknown id'}): "
            f"{_format_value(reading.get('value'))} [{reading.get('range_label', 'No range set')}] ",
            nl=False,
        )
        typer.secho(status, fg=_STATUS_COLORS.get(status))


def render_action(action: Dict[str, Any]) -> None:
    echo_heading("Follow-up")
    echo_key_values(
        [
            ("kind", action.get("kind")),
            ("silent", action.get("silent")),
            ("awaiting_choice", action.get("awaiting_choice")),
            ("justification", action.get("justification")),
        ]
    )


def render_evaluation(payload: Dict[str, Any]) -> None:
    echo_heading("Evaluation Result")
    echo_key_values([("record_id", payload.get("record_id"))])
    typer.echo()
    render_readings(payload.get("readings") or [])
    typer.echo()
    render_action(payload.get("action") or {})


def render_resolution(payload: Dict[str, Any]) -> None:
    echo_heading("Monitoring Follow-up")
    context = payload.get("context") or {}
    original = context.get("original_reading") or {}
    new = context.get("new_reading") or {}
    echo_key_values(
        [
            ("state", payload.get("state")),
            ("original_reading", _format_value(original.get("value"))),
            ("new_reading", _format_value(new.get("value")) if new else "pending"),
            ("new_status", payload.get("new_status") or "n/a"),
        ]
    )


def render_logs(rows: List[Dict[str, Any]]) -> None:
    echo_heading("Temperature Logs")
    if not rows:
        typer.echo("No log rows in window.")
        return
    for row in rows:
        typer.echo(
            f"  - {row.get('recorded_at')} {row.get('asset_name') or row.get('asset_id')}: "
            f"{_format_value(row.get('reading'))}"
        )
