from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_session(payload: Dict[str, Any]) -> None:
    echo_heading("Session")
    config = payload.get("config") or {}
    echo_key_values(
        [
            ("session_id", payload.get("session_id")),
            ("target_temperature", config.get("target_temperature")),
            ("desired_serve_time", config.get("desired_serve_time")),
            ("readings", len(payload.get("readings") or [])),
            ("oven_events", len(payload.get("oven_events") or [])),
        ]
    )


def render_report(payload: Dict[str, Any]) -> None:
    calculation = payload.get("calculation") or {}
    confidence = calculation.get("confidence") or {}
    echo_heading("Calculation")
    echo_key_values(
        [
            ("current_rate", calculation.get("current_rate")),
            ("average_rate", calculation.get("average_rate")),
            ("r2", calculation.get("r2")),
            ("reading_count", calculation.get("reading_count")),
            ("predicted_minutes_to_target", calculation.get("predicted_minutes_to_target")),
            ("predicted_target_time", calculation.get("predicted_target_time")),
            ("schedule_status", calculation.get("schedule_status")),
            ("schedule_variance_minutes", calculation.get("schedule_variance_minutes")),
            ("confidence", f"{confidence.get('level')} ({confidence.get('reason')})"),
        ]
    )

    recommendation = payload.get("recommendation") or {}
    typer.echo()
    echo_heading("Recommendation")
    if not recommendation.get("can_recommend"):
        typer.secho(f"Blocked: {recommendation.get('blocker_reason')}", fg=typer.colors.YELLOW)
        progress = recommendation.get("progress")
        if progress:
            typer.echo(f"  {progress.get('message')}")
        return

    echo_key_values(
        [
            ("action", recommendation.get("action")),
            ("suggested_temperature", recommendation.get("suggested_temperature")),
            ("change_amount", recommendation.get("change_amount")),
            ("severity", recommendation.get("severity")),
        ]
    )
    typer.echo(recommendation.get("message"))
    if recommendation.get("reasoning"):
        typer.echo(recommendation["reasoning"])
    if recommendation.get("alternative_message"):
        typer.echo(f"Alternative: {recommendation['alternative_message']}")
