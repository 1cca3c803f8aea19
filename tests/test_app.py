from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.session_store import SessionStore, build_default_store
from services.session_service import SessionService, build_default_service
from settings import get_settings

START = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _iso(minutes: float) -> str:
    return (START + timedelta(minutes=minutes)).isoformat().replace("+00:00", "Z")


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(START)


@pytest.fixture
def api_client(tmp_path, monkeypatch, clock: FixedClock) -> Iterator[TestClient]:
    service = SessionService(
        store=SessionStore(name="test", persistence_path=tmp_path / "sessions.json"),
        clock=clock,
    )

    def build_test_service() -> SessionService:
        return service

    build_test_service.cache_clear = lambda: None  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_service", build_test_service)
    monkeypatch.setattr("app.api.build_default_service", build_test_service)

    app = create_app()
    with TestClient(app) as client:
        yield client


def _create_session(client: TestClient, serve_minutes: float = 120) -> str:
    response = client.post(
        "/sessions",
        json={
            "target_temperature": 130,
            "desired_serve_time": _iso(serve_minutes),
            "initial_oven_temperature": 225,
            "meat_type": "prime rib",
        },
    )
    assert response.status_code == 201
    return response.json()["session_id"]


def _log_readings(client: TestClient, session_id: str) -> None:
    for minute, temp in ((0, 100), (15, 103), (30, 106), (45, 109)):
        response = client.post(
            f"/sessions/{session_id}/readings",
            json={"temperature": temp, "timestamp": _iso(minute)},
        )
        assert response.status_code == 201


def test_lifespan_clears_service_cache(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("ROAST_STORE_PATH", str(tmp_path / "sessions.json"))
    get_settings.cache_clear()
    build_default_store.cache_clear()
    build_default_service.cache_clear()
    try:
        with TestClient(create_app()):
            during = build_default_service()
            assert during.store.persistence_path == tmp_path / "sessions.json"

        after = build_default_service()
        assert after is not during
    finally:
        build_default_service.cache_clear()
        build_default_store.cache_clear()
        get_settings.cache_clear()


def test_health_endpoints(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert api_client.get("/").json()["status"] == "ok"


def test_session_lifecycle(api_client: TestClient, clock: FixedClock) -> None:
    session_id = _create_session(api_client)
    _log_readings(api_client, session_id)
    clock.now = START + timedelta(minutes=45)

    session = api_client.get(f"/sessions/{session_id}").json()
    assert len(session["readings"]) == 4
    assert session["readings"][-1]["delta_from_start"] == 9
    assert session["oven_events"][0]["set_temperature"] == 225

    report = api_client.get(f"/sessions/{session_id}/calculations").json()
    assert report["calculation"]["schedule_status"] == "late"
    assert report["calculation"]["confidence"]["level"] == "high"
    assert report["recommendation"]["action"] == "raise"
    assert report["recommendation"]["suggested_temperature"] == 240

    applied = api_client.post(f"/sessions/{session_id}/recommendation/apply")
    assert applied.status_code == 200
    assert applied.json()["oven_events"][-1]["set_temperature"] == 240

    listed = api_client.get("/sessions").json()
    assert [item["session_id"] for item in listed] == [session_id]


def test_apply_without_actionable_recommendation_conflicts(api_client: TestClient) -> None:
    session_id = _create_session(api_client)

    response = api_client.post(f"/sessions/{session_id}/recommendation/apply")

    assert response.status_code == 409


def test_blocked_recommendation_explains_progress(api_client: TestClient) -> None:
    session_id = _create_session(api_client)
    api_client.post(f"/sessions/{session_id}/readings", json={"temperature": 100, "timestamp": _iso(0)})

    report = api_client.get(f"/sessions/{session_id}/calculations").json()

    recommendation = report["recommendation"]
    assert recommendation["can_recommend"] is False
    assert recommendation["blocker_type"] == "insufficient_readings"
    assert recommendation["progress"]["message"] == "2 more readings needed"


def test_edit_and_delete_readings(api_client: TestClient) -> None:
    session_id = _create_session(api_client)
    _log_readings(api_client, session_id)
    readings = api_client.get(f"/sessions/{session_id}").json()["readings"]

    updated = api_client.put(
        f"/sessions/{session_id}/readings/{readings[1]['id']}",
        json={"temperature": 104},
    )
    assert updated.status_code == 200
    assert updated.json()["readings"][1]["delta_from_previous"] == 4

    deleted = api_client.delete(f"/sessions/{session_id}/readings/{readings[0]['id']}")
    assert deleted.status_code == 200
    assert len(deleted.json()["readings"]) == 3

    missing = api_client.delete(f"/sessions/{session_id}/readings/{uuid.uuid4()}")
    assert missing.status_code == 404


def test_oven_off_and_event_removal(api_client: TestClient, clock: FixedClock) -> None:
    session_id = _create_session(api_client, serve_minutes=240)
    _log_readings(api_client, session_id)

    off = api_client.post(f"/sessions/{session_id}/oven-events/off", json={"timestamp": _iso(45)})
    assert off.status_code == 201
    clock.now = START + timedelta(minutes=55)

    report = api_client.get(f"/sessions/{session_id}/calculations").json()
    assert report["recommendation"]["action"] == "oven-off"
    assert report["recommendation"]["minutes_until_restart"] == 27

    event_id = off.json()["oven_events"][-1]["id"]
    removed = api_client.delete(f"/sessions/{session_id}/oven-events/{event_id}")
    assert [event["is_off"] for event in removed.json()["oven_events"]] == [False]


def test_validation_errors(api_client: TestClient) -> None:
    session_id = _create_session(api_client)

    too_hot = api_client.post(f"/sessions/{session_id}/readings", json={"temperature": 250})
    bad_oven = api_client.post(f"/sessions/{session_id}/oven-events", json={"set_temperature": 50})
    bad_bounds = api_client.post(
        "/sessions",
        json={"target_temperature": 130, "settings": {"oven_temp_min": 300, "oven_temp_max": 200}},
    )

    assert too_hot.status_code == 422
    assert bad_oven.status_code == 422
    assert bad_bounds.status_code == 422


def test_unknown_session_returns_not_found(api_client: TestClient) -> None:
    missing_id = str(uuid.uuid4())

    response = api_client.get(f"/sessions/{missing_id}/calculations")

    assert response.status_code == 404
    assert missing_id in response.json()["detail"]


def test_calculate_snapshot(api_client: TestClient) -> None:
    response = api_client.post(
        "/calculate",
        json={
            "readings": [
                {"id": f"r{minute}", "temperature": temp, "timestamp": _iso(minute)}
                for minute, temp in ((0, 100), (15, 103), (30, 106), (45, 109))
            ],
            "oven_events": [{"id": "e0", "set_temperature": 225, "timestamp": _iso(0)}],
            "config": {"target_temperature": 130, "desired_serve_time": _iso(200)},
            "now": _iso(45),
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["calculation"]["predicted_minutes_to_target"] == 105
    assert payload["recommendation"]["action"] == "lower"
    assert payload["recommendation"]["change_amount"] == -25
    assert payload["responsiveness"] is None


def test_calculate_snapshot_rejects_inconsistent_settings(api_client: TestClient) -> None:
    response = api_client.post(
        "/calculate",
        json={
            "config": {"target_temperature": 130},
            "settings": {"oven_temp_min": 350},
        },
    )

    assert response.status_code == 400


def test_export_endpoints(api_client: TestClient) -> None:
    session_id = _create_session(api_client)
    _log_readings(api_client, session_id)

    as_json = api_client.get(f"/sessions/{session_id}/export")
    as_csv = api_client.get(f"/sessions/{session_id}/export", params={"format": "csv"})
    bad = api_client.get(f"/sessions/{session_id}/export", params={"format": "xml"})

    assert as_json.status_code == 200
    assert as_json.json()["summary"]["total_readings"] == 4
    assert as_csv.headers["content-type"].startswith("text/csv")
    assert "## Internal temperature readings" in as_csv.text
    assert bad.status_code == 422


def test_one_sided_oven_override_is_rejected(api_client: TestClient) -> None:
    response = api_client.post(
        "/sessions",
        json={"target_temperature": 203, "settings": {"oven_temp_max": 120}},
    )

    assert response.status_code == 400
    assert "oven_temp_min" in response.json()["detail"]
    assert api_client.get("/sessions").json() == []


def test_patch_session_config_and_settings(api_client: TestClient, clock: FixedClock) -> None:
    session_id = _create_session(api_client, serve_minutes=120)
    _log_readings(api_client, session_id)
    clock.now = START + timedelta(minutes=45)

    moved = api_client.patch(f"/sessions/{session_id}", json={"desired_serve_time": _iso(150)})
    assert moved.status_code == 200
    assert moved.json()["meat_type"] == "prime rib"
    report = api_client.get(f"/sessions/{session_id}/calculations").json()
    assert report["calculation"]["schedule_status"] == "on-track"
    assert report["recommendation"]["action"] == "hold"

    cleared = api_client.patch(f"/sessions/{session_id}", json={"desired_serve_time": None})
    assert cleared.json()["config"]["desired_serve_time"] is None
    report = api_client.get(f"/sessions/{session_id}/calculations").json()
    assert report["recommendation"]["blocker_type"] == "no_serve_time"

    rejected = api_client.patch(f"/sessions/{session_id}", json={"settings": {"oven_temp_max": 120}})
    assert rejected.status_code == 400
    assert api_client.get(f"/sessions/{session_id}").json()["settings"]["oven_temp_max"] is None

    tightened = api_client.patch(
        f"/sessions/{session_id}",
        json={"target_temperature": 135, "settings": {"min_readings_for_recommendation": 6}},
    )
    assert tightened.json()["config"]["target_temperature"] == 135
    report = api_client.get(f"/sessions/{session_id}/calculations").json()
    assert report["recommendation"]["progress"]["required"] == 6


def test_update_oven_event_relinks_history(api_client: TestClient) -> None:
    session_id = _create_session(api_client)
    api_client.post(
        f"/sessions/{session_id}/oven-events",
        json={"set_temperature": 250, "timestamp": _iso(30)},
    )
    events = api_client.get(f"/sessions/{session_id}").json()["oven_events"]

    updated = api_client.put(
        f"/sessions/{session_id}/oven-events/{events[0]['id']}",
        json={"set_temperature": 200},
    )

    assert updated.status_code == 200
    assert [event["previous_temperature"] for event in updated.json()["oven_events"]] == [None, 200]

    off = api_client.post(f"/sessions/{session_id}/oven-events/off", json={"timestamp": _iso(45)})
    off_id = off.json()["oven_events"][-1]["id"]
    conflict = api_client.put(
        f"/sessions/{session_id}/oven-events/{off_id}", json={"set_temperature": 225}
    )
    missing = api_client.put(
        f"/sessions/{session_id}/oven-events/{uuid.uuid4()}", json={"set_temperature": 225}
    )

    assert conflict.status_code == 409
    assert missing.status_code == 404


def test_end_session(api_client: TestClient) -> None:
    session_id = _create_session(api_client)

    ended = api_client.delete(f"/sessions/{session_id}")

    assert ended.status_code == 204
    assert api_client.get(f"/sessions/{session_id}").status_code == 404
    assert api_client.delete(f"/sessions/{session_id}").status_code == 404
