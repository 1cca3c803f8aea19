from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timedelta, timezone

from app.schemas import SessionRecord
from models.records import (
    OvenEvent,
    Reading,
    SessionConfig,
    recompute_reading_deltas,
    relink_oven_events,
)
from services.export import export_to_csv, export_to_json, summarize_session

START = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _record(readings=None, events=None) -> SessionRecord:
    if readings is None:
        readings = [
            Reading(id="r0", temperature=100, timestamp=START),
            Reading(id="r1", temperature=104.5, timestamp=START + timedelta(minutes=20)),
            Reading(id="r2", temperature=110, timestamp=START + timedelta(minutes=40)),
        ]
    if events is None:
        events = [
            OvenEvent(id="e0", set_temperature=225, timestamp=START),
            OvenEvent(id="e1", set_temperature=250, timestamp=START + timedelta(minutes=30)),
            OvenEvent(id="e2", set_temperature=0, timestamp=START + timedelta(minutes=35), is_off=True),
        ]
    return SessionRecord(
        session_id="session-1",
        config=SessionConfig(target_temperature=130, desired_serve_time=START + timedelta(hours=3)),
        readings=recompute_reading_deltas(readings),
        oven_events=relink_oven_events(events),
        meat_type="ribeye",
        notes='Bone-in, "dry aged"',
        created_at=START,
        updated_at=START,
    )


def test_summary_totals() -> None:
    summary = summarize_session(_record())

    assert summary == {
        "total_readings": 3,
        "total_oven_changes": 3,
        "session_duration_minutes": 40,
        "starting_temperature": 100,
        "ending_temperature": 110,
        "total_temperature_change": 10,
        "average_reading_interval_minutes": 20,
    }


def test_summary_without_readings() -> None:
    summary = summarize_session(_record(readings=[]))

    assert summary["total_readings"] == 0
    assert summary["session_duration_minutes"] is None


def test_json_export_contains_session_and_summary() -> None:
    payload = json.loads(export_to_json(_record(), START + timedelta(hours=1)))

    assert payload["exported_at"] == "2024-01-01T13:00:00+00:00"
    assert payload["session"]["meat_type"] == "ribeye"
    assert len(payload["session"]["readings"]) == 3
    assert payload["summary"]["total_readings"] == 3


def test_csv_export_sections() -> None:
    rows = list(csv.reader(io.StringIO(export_to_csv(_record()))))

    assert ["Target Temperature", "130", "°F"] in rows
    assert ["Notes", 'Bone-in, "dry aged"'] in rows

    readings_at = rows.index(["## Internal temperature readings"])
    assert rows[readings_at + 2][1:] == ["100.0", "0.0", "0.0", "0"]
    assert rows[readings_at + 3][1:] == ["104.5", "4.5", "4.5", "20"]

    events_at = rows.index(["## Oven temperature events"])
    assert rows[events_at + 2][1:] == ["225", "", "", ""]
    assert rows[events_at + 3][1:] == ["250", "225", "25", ""]
    assert rows[events_at + 4][1:] == ["", "250", "", "yes"]
