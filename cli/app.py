from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from app.schemas import SnapshotRequest
from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import echo_heading, echo_key_values, render_report, render_session
from datastore.session_store import SessionStore
from services.session_service import SessionService
from services.timing import as_utc
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Track a slow roast and get oven advice from the roast timing service.",
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
        help="API base URL (defaults to ROAST_API_BASE_URL env or http://localhost:8000).",
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


@app.command("create")
def create_command(
    ctx: typer.Context,
    target: float = typer.Option(..., "--target", "-t", help="Target internal temperature (°F)."),
    serve_at: Optional[datetime] = typer.Option(
        None, "--serve-at", help="Desired serve time (ISO 8601)."
    ),
    oven: Optional[float] = typer.Option(None, "--oven", help="Initial oven setting (°F)."),
    meat: Optional[str] = typer.Option(None, "--meat", help="Free-form meat description."),
) -> None:
    """Start a new cooking session."""
    state = _get_state(ctx)
    payload = state.client.create_session(target, serve_at, oven, meat)
    typer.secho(f"Session created. session_id={payload.get('session_id')}", fg=typer.colors.GREEN)
    render_session(payload)


@app.command("reading")
def reading_command(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session identifier."),
    temperature: float = typer.Argument(..., help="Internal temperature (°F)."),
    at: Optional[datetime] = typer.Option(None, "--at", help="Reading time (defaults to now)."),
) -> None:
    """Log an internal temperature reading."""
    state = _get_state(ctx)
    payload = state.client.add_reading(session_id, temperature, at)
    typer.echo(f"Logged {temperature:g}°F ({len(payload.get('readings') or [])} readings).")


@app.command("oven")
def oven_command(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session identifier."),
    temperature: float = typer.Argument(..., help="New oven setting (°F)."),
    at: Optional[datetime] = typer.Option(None, "--at", help="Change time (defaults to now)."),
) -> None:
    """Log an oven setting change."""
    state = _get_state(ctx)
    state.client.set_oven(session_id, temperature, at)
    typer.echo(f"Oven set to {temperature:g}°F.")


@app.command("off")
def off_command(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session identifier."),
    at: Optional[datetime] = typer.Option(None, "--at", help="Time the oven was switched off."),
) -> None:
    """Record that the oven was switched off."""
    state = _get_state(ctx)
    state.client.turn_oven_off(session_id, at)
    typer.echo("Oven marked as off.")


@app.command("status")
def status_command(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session identifier."),
) -> None:
    """Show predictions and the current oven recommendation."""
    state = _get_state(ctx)
    render_report(state.client.get_calculations(session_id))


@app.command("apply")
def apply_command(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session identifier."),
) -> None:
    """Log the recommended oven setting as the new oven temperature."""
    state = _get_state(ctx)
    payload = state.client.apply_recommendation(session_id)
    events = payload.get("oven_events") or []
    if events:
        typer.secho(
            f"Oven set to {events[-1].get('set_temperature'):g}°F.", fg=typer.colors.GREEN
        )


@app.command("export")
def export_command(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session identifier."),
    fmt: str = typer.Option("json", "--format", "-f", help="Export format: json or csv."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", dir_okay=False, help="Write to a file instead of stdout."
    ),
) -> None:
    """Export a session as JSON or CSV."""
    if fmt not in {"json", "csv"}:
        raise typer.BadParameter("Format must be 'json' or 'csv'.")
    state = _get_state(ctx)
    content = state.client.export(session_id, fmt)
    if output is None:
        typer.echo(content)
        return
    output.write_text(content)
    typer.echo(f"Wrote {output}.")


def _latest_timestamp(request: SnapshotRequest) -> Optional[datetime]:
    timestamps = [reading.timestamp for reading in request.readings]
    timestamps.extend(event.timestamp for event in request.oven_events)
    return max(timestamps, key=as_utc) if timestamps else None


def load_snapshot(path: Path, now: Optional[datetime] = None) -> SnapshotRequest:
    """Read a snapshot or a session export; evaluation defaults to the last recorded instant."""
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{path} is not valid JSON: {exc}") from exc
    if isinstance(data, dict) and isinstance(data.get("session"), dict):
        data = data["session"]
    try:
        request = SnapshotRequest.model_validate(data)
    except ValidationError as exc:
        raise typer.BadParameter(f"{path} is not a session snapshot: {exc}") from exc
    instant = now or request.now or _latest_timestamp(request)
    return request.model_copy(update={"now": instant, "include_responsiveness": True})


@app.command("analyze")
def analyze_command(
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="Snapshot or export JSON."
    ),
    now: Optional[datetime] = typer.Option(None, "--now", help="Evaluation instant."),
) -> None:
    """Run the engine locally over a saved snapshot, no server needed."""
    request = load_snapshot(file, now)
    service = SessionService(store=SessionStore(name="offline"), engine_defaults=get_settings().engine)
    try:
        response = service.evaluate_snapshot(request)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    render_report(response.model_dump(mode="json"))

    analysis = response.responsiveness
    if analysis is not None:
        typer.echo()
        echo_heading("Oven Responsiveness")
        echo_key_values(
            [
                ("description", analysis.description.value),
                ("correlation", round(analysis.correlation, 3)),
                ("responsiveness", round(analysis.responsiveness, 3)),
                ("segments", len(analysis.segments)),
            ]
        )
