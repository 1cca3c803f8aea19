"""Session exports for archival and spreadsheet analysis."""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime
from typing import Any, Dict, Optional

from app.schemas import SessionRecord
from services.timing import as_utc, minutes_between, round_to_int

EXPORT_VERSION = "1.0.0"


def summarize_session(record: SessionRecord) -> Dict[str, Any]:
    readings = record.readings
    events = record.oven_events
    if not readings:
        return {
            "total_readings": 0,
            "total_oven_changes": len(events),
            "session_duration_minutes": None,
        }

    first, last = readings[0], readings[-1]
    duration = minutes_between(first.timestamp, last.timestamp)
    interval: Optional[int] = None
    if len(readings) > 1:
        interval = round_to_int(duration / (len(readings) - 1))
    return {
        "total_readings": len(readings),
        "total_oven_changes": len(events),
        "session_duration_minutes": round_to_int(duration),
        "starting_temperature": first.temperature,
        "ending_temperature": last.temperature,
        "total_temperature_change": last.temperature - first.temperature,
        "average_reading_interval_minutes": interval,
    }


def export_to_json(record: SessionRecord, now: datetime) -> str:
    payload = {
        "exported_at": as_utc(now).isoformat(),
        "export_version": EXPORT_VERSION,
        "session": record.model_dump(mode="json"),
        "summary": summarize_session(record),
    }
    return json.dumps(payload, indent=2)


def _fmt(value: Optional[float], digits: int) -> str:
    if value is None:
        return ""
    return f"{value:.{digits}f}"


def export_to_csv(record: SessionRecord) -> str:
    """Render configuration, readings and oven events as sectioned CSV."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    config = record.config

    writer.writerow(["# Session export", record.session_id])
    writer.writerow([])
    writer.writerow(["## Session configuration"])
    writer.writerow(["Target Temperature", _fmt(config.target_temperature, 0), "°F"])
    writer.writerow(["Started", as_utc(record.created_at).isoformat()])
    if config.desired_serve_time is not None:
        writer.writerow(["Target Serve Time", as_utc(config.desired_serve_time).isoformat()])
    if record.meat_type:
        writer.writerow(["Meat Type", record.meat_type])
    if record.notes:
        writer.writerow(["Notes", record.notes])
    writer.writerow([])

    writer.writerow(["## Internal temperature readings"])
    writer.writerow(
        [
            "Timestamp",
            "Temperature (°F)",
            "Delta From Start (°F)",
            "Delta From Previous (°F)",
            "Minutes Elapsed",
        ]
    )
    start = record.readings[0].timestamp if record.readings else None
    for reading in record.readings:
        writer.writerow(
            [
                as_utc(reading.timestamp).isoformat(),
                _fmt(reading.temperature, 1),
                _fmt(reading.delta_from_start, 1),
                _fmt(reading.delta_from_previous, 1),
                round_to_int(minutes_between(start, reading.timestamp)),
            ]
        )
    writer.writerow([])

    writer.writerow(["## Oven temperature events"])
    writer.writerow(
        ["Timestamp", "Set Temperature (°F)", "Previous Temperature (°F)", "Change (°F)", "Oven Off"]
    )
    for event in record.oven_events:
        change = None
        if event.previous_temperature is not None and not event.is_off:
            change = event.set_temperature - event.previous_temperature
        writer.writerow(
            [
                as_utc(event.timestamp).isoformat(),
                "" if event.is_off else _fmt(event.set_temperature, 0),
                _fmt(event.previous_temperature, 0),
                _fmt(change, 0),
                "yes" if event.is_off else "",
            ]
        )
    return buffer.getvalue()
