"""Time-to-target prediction and schedule variance."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from services.confidence import DEFAULT_MIN_RATE_FOR_PREDICTION
from services.timing import add_minutes, as_utc, minutes_between, round_to_int


class ScheduleStatus(str, Enum):
    EARLY = "early"
    LATE = "late"
    ON_TRACK = "on-track"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Prediction:
    minutes: Optional[int]
    target_time: Optional[datetime]


@dataclass(frozen=True)
class ScheduleVariance:
    """Signed minutes between desired and predicted completion (positive = late)."""

    variance_minutes: Optional[int]
    status: ScheduleStatus


UNKNOWN_VARIANCE = ScheduleVariance(variance_minutes=None, status=ScheduleStatus.UNKNOWN)


def predict_time_to_target(
    current_temp: float,
    target_temp: float,
    rate: Optional[float],
    now: datetime,
    min_rate: float = DEFAULT_MIN_RATE_FOR_PREDICTION,
) -> Prediction:
    if rate is None or rate <= min_rate:
        return Prediction(minutes=None, target_time=None)

    remaining = target_temp - current_temp
    if remaining <= 0:
        return Prediction(minutes=0, target_time=as_utc(now))

    minutes = round_to_int(remaining / rate * 60)
    return Prediction(minutes=minutes, target_time=add_minutes(now, minutes))


def calculate_schedule_variance(
    predicted_target_time: Optional[datetime],
    desired_time: Optional[datetime],
    threshold_minutes: float,
) -> ScheduleVariance:
    if predicted_target_time is None or desired_time is None:
        return UNKNOWN_VARIANCE

    variance = minutes_between(desired_time, predicted_target_time)

    if variance < -threshold_minutes:
        status = ScheduleStatus.EARLY
    elif variance > threshold_minutes:
        status = ScheduleStatus.LATE
    else:
        status = ScheduleStatus.ON_TRACK

    return ScheduleVariance(variance_minutes=round_to_int(variance), status=status)
