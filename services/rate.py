"""Heating-rate estimation over reading windows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from models.records import Reading
from services.timing import as_utc, hours_between, minutes_between, round_half_up

MIN_READINGS_FOR_RATE = 2
# Below this the regression denominator is treated as zero (coincident timestamps).
_DENOMINATOR_EPSILON = 1e-4
# Roughly half a minute; shorter sessions give meaningless average rates.
_MIN_AVERAGE_HOURS = 0.01


@dataclass(frozen=True)
class RateEstimate:
    """Least-squares slope over the smoothing window, in degrees per hour."""

    rate: Optional[float]
    r2: float
    sample_count: int


def estimate_heating_rate(readings: Sequence[Reading], window_size: int = 3) -> RateEstimate:
    """Fit ``temperature = slope * hours + intercept`` over the last readings.

    Returns ``rate=None`` with fewer than two readings in the window or when all
    window timestamps coincide.
    """
    if len(readings) < MIN_READINGS_FOR_RATE:
        return RateEstimate(rate=None, r2=0.0, sample_count=len(readings))

    window = list(readings[-max(window_size, MIN_READINGS_FOR_RATE):])
    origin = as_utc(window[0].timestamp)
    points = [
        (hours_between(origin, reading.timestamp), reading.temperature) for reading in window
    ]

    n = len(points)
    sum_x = sum(x for x, _ in points)
    sum_y = sum(y for _, y in points)
    sum_xy = sum(x * y for x, y in points)
    sum_x2 = sum(x * x for x, _ in points)

    denominator = n * sum_x2 - sum_x * sum_x
    if abs(denominator) < _DENOMINATOR_EPSILON:
        return RateEstimate(rate=None, r2=0.0, sample_count=n)

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    mean_y = sum_y / n

    ss_total = 0.0
    ss_residual = 0.0
    for x, y in points:
        predicted = slope * x + intercept
        ss_total += (y - mean_y) ** 2
        ss_residual += (y - predicted) ** 2

    r2 = 1 - ss_residual / ss_total if ss_total > 0 else 0.0

    return RateEstimate(
        rate=round_half_up(slope, 2),
        r2=round_half_up(r2, 3),
        sample_count=n,
    )


def calculate_average_rate(readings: Sequence[Reading]) -> Optional[float]:
    """Secant rate from the first to the last reading of the session."""
    if len(readings) < 2:
        return None

    first = readings[0]
    last = readings[-1]
    hours = hours_between(first.timestamp, last.timestamp)
    if hours < _MIN_AVERAGE_HOURS:
        return None

    return round_half_up((last.temperature - first.temperature) / hours, 2)


def reading_span_minutes(readings: Sequence[Reading]) -> float:
    if len(readings) < 2:
        return 0.0
    return minutes_between(readings[0].timestamp, readings[-1].timestamp)
