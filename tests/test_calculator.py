from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

import pytest

from models.records import OvenEvent, Reading, SessionConfig, recompute_reading_deltas, relink_oven_events
from services.calculator import compute_session_calculations
from services.confidence import ConfidenceLevel, ConfidenceReason
from services.eligibility import BlockerType
from services.predictor import ScheduleStatus
from services.recommendation import RecommendationAction, Severity
from settings import EngineSettings

START = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
SETTINGS = EngineSettings()


def _at(minutes: float) -> datetime:
    return START + timedelta(minutes=minutes)


def _readings(points: Sequence[tuple[float, float]] = ((0, 100), (15, 103), (30, 106), (45, 109))):
    return recompute_reading_deltas(
        Reading(id=f"r{index}", temperature=temp, timestamp=_at(minute))
        for index, (minute, temp) in enumerate(points)
    )


def _events(*points: tuple[float, float]):
    return relink_oven_events(
        OvenEvent(id=f"e{index}", set_temperature=temp, timestamp=_at(minute), is_off=temp == 0)
        for index, (minute, temp) in enumerate(points)
    )


def _run(
    readings=None,
    events=None,
    serve: Optional[float] = 150,
    now: float = 45,
    settings: EngineSettings = SETTINGS,
):
    return compute_session_calculations(
        readings=_readings() if readings is None else readings,
        oven_events=_events((0, 225)) if events is None else events,
        config=SessionConfig(
            target_temperature=130,
            desired_serve_time=None if serve is None else _at(serve),
        ),
        settings=settings,
        now=_at(now),
    )


def test_on_schedule_session_holds() -> None:
    result = _run()

    calculation = result.calculation
    assert calculation.current_rate == pytest.approx(12.0)
    assert calculation.average_rate == pytest.approx(12.0)
    assert calculation.reading_count == 4
    assert calculation.time_span_minutes == pytest.approx(45)
    assert calculation.predicted_minutes_to_target == 105
    assert calculation.predicted_target_time == _at(150)
    assert calculation.schedule_variance_minutes == 0
    assert calculation.schedule_status is ScheduleStatus.ON_TRACK
    assert calculation.confidence.level is ConfidenceLevel.HIGH
    assert calculation.confidence.reason_code is ConfidenceReason.CONSISTENT

    recommendation = result.recommendation
    assert recommendation.can_recommend is True
    assert recommendation.action is RecommendationAction.HOLD
    assert recommendation.suggested_temperature == 225


def test_late_session_recommends_raise() -> None:
    result = _run(serve=120)

    assert result.calculation.schedule_variance_minutes == 30
    assert result.calculation.schedule_status is ScheduleStatus.LATE
    recommendation = result.recommendation
    assert recommendation.action is RecommendationAction.RAISE
    assert recommendation.suggested_temperature == 240
    assert recommendation.change_amount == pytest.approx(15)
    assert recommendation.severity is Severity.MODERATE
    assert recommendation.message == "Consider raising oven to 240°F to speed things up."


def test_early_session_recommends_lower() -> None:
    result = _run(serve=200)

    assert result.calculation.schedule_status is ScheduleStatus.EARLY
    assert result.recommendation.action is RecommendationAction.LOWER
    assert result.recommendation.suggested_temperature == 200


def test_predictions_survive_a_blocked_recommendation() -> None:
    result = _run(serve=None)

    assert result.calculation.predicted_minutes_to_target == 105
    assert result.calculation.schedule_status is ScheduleStatus.UNKNOWN
    assert result.recommendation.can_recommend is False
    assert result.recommendation.action is RecommendationAction.NONE
    assert result.recommendation.blocker_type is BlockerType.NO_SERVE_TIME
    assert result.recommendation.message == result.recommendation.blocker_reason


def test_no_readings() -> None:
    result = _run(readings=[])

    assert result.calculation.reading_count == 0
    assert result.calculation.current_rate is None
    assert result.calculation.confidence.reason_code is ConfidenceReason.NO_READINGS
    assert result.recommendation.blocker_type is BlockerType.INSUFFICIENT_READINGS
    assert result.recommendation.progress.current == 0


def test_stale_oven_setting_blocks() -> None:
    result = _run(events=_events((-30, 225)))

    assert result.recommendation.blocker_type is BlockerType.STALE_OVEN_DATA


def test_fluctuating_readings_block_with_unstable_rate() -> None:
    readings = _readings([(0, 100), (15, 106), (30, 112), (45, 108)])
    # Smoothing window 106, 112, 108 gives a weak fit.
    result = _run(readings=readings)

    assert result.calculation.confidence.reason_code is ConfidenceReason.FLUCTUATING
    assert result.recommendation.blocker_type is BlockerType.UNSTABLE_RATE


def test_oven_off_plans_restart() -> None:
    result = _run(events=_events((0, 225), (45, 0)), serve=240, now=55)

    recommendation = result.recommendation
    assert recommendation.can_recommend is True
    assert recommendation.action is RecommendationAction.OVEN_OFF
    assert recommendation.suggested_temperature == 200
    assert recommendation.minutes_until_restart == 27
    assert recommendation.should_restart_now is False
    assert recommendation.estimated_current_temperature == pytest.approx(101.9)
    assert recommendation.message == (
        "Keep the oven off. Turn it back on at 200°F in about 27 minutes."
    )


def test_oven_off_without_prior_setting_restarts_from_default() -> None:
    result = _run(events=_events((45, 0)), serve=240, now=55)
    reference = _run(events=_events((0, 225), (45, 0)), serve=240, now=55)

    assert result.recommendation.action is RecommendationAction.OVEN_OFF
    assert result.recommendation == reference.recommendation


def test_identical_inputs_give_identical_results() -> None:
    readings = _readings()
    events = _events((0, 225))
    snapshot = list(readings)

    first = _run(readings=readings, events=events, serve=120)
    second = _run(readings=readings, events=events, serve=120)

    assert first.model_dump() == second.model_dump()
    assert readings == snapshot


def test_naive_now_matches_aware_now() -> None:
    aware = _run()
    naive = compute_session_calculations(
        readings=_readings(),
        oven_events=_events((0, 225)),
        config=SessionConfig(target_temperature=130, desired_serve_time=_at(150)),
        settings=SETTINGS,
        now=_at(45).replace(tzinfo=None),
    )

    assert naive.model_dump() == aware.model_dump()
