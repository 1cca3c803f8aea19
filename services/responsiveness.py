"""Advisory analysis of how heating rate responds to oven set-point changes.

Runs independently of the calculation pipeline; ``None`` means there is not
enough history to say anything.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Sequence

from models.records import OvenEvent, Reading
from services.timing import as_utc, hours_between, minutes_between

MIN_OVEN_EVENTS = 2
MIN_READINGS = 5
MIN_SEGMENT_HOURS = 0.1
MIN_SEGMENTS = 2
LIMITED_CORRELATION = 0.3
HIGH_RESPONSIVENESS = 0.1


class ResponsivenessKind(str, Enum):
    LIMITED = "limited"
    MODERATE = "moderate"
    HIGH = "high"


@dataclass(frozen=True)
class SegmentRate:
    oven_temperature: float
    heating_rate: float
    duration_minutes: float
    reading_count: int


@dataclass(frozen=True)
class ResponsivenessAnalysis:
    segments: List[SegmentRate]
    correlation: float
    # Degrees/hour of rate change per degree of oven change.
    responsiveness: float
    description: ResponsivenessKind


def pearson_correlation(xs: Sequence[float], ys: Sequence[float]) -> float:
    n = len(xs)
    if n < 2 or n != len(ys):
        return 0.0

    sum_x = sum(xs)
    sum_y = sum(ys)
    sum_xy = sum(x * y for x, y in zip(xs, ys))
    sum_x2 = sum(x * x for x in xs)
    sum_y2 = sum(y * y for y in ys)

    numerator = n * sum_xy - sum_x * sum_y
    spread = (n * sum_x2 - sum_x * sum_x) * (n * sum_y2 - sum_y * sum_y)
    if spread <= 0:
        return 0.0
    return numerator / math.sqrt(spread)


def _segment_rate(
    event: OvenEvent,
    segment_end: datetime,
    readings: Sequence[Reading],
    thermal_lag_minutes: float,
) -> Optional[SegmentRate]:
    effective_start = as_utc(event.timestamp) + timedelta(minutes=thermal_lag_minutes)
    inside = [
        reading
        for reading in readings
        if effective_start <= as_utc(reading.timestamp) < segment_end
    ]
    if len(inside) < 2:
        return None

    first, last = inside[0], inside[-1]
    hours = hours_between(first.timestamp, last.timestamp)
    if hours <= MIN_SEGMENT_HOURS:
        return None

    return SegmentRate(
        oven_temperature=event.set_temperature,
        heating_rate=(last.temperature - first.temperature) / hours,
        duration_minutes=minutes_between(event.timestamp, segment_end),
        reading_count=len(inside),
    )


def _describe(responsiveness: float, correlation: float) -> ResponsivenessKind:
    if correlation < LIMITED_CORRELATION:
        return ResponsivenessKind.LIMITED
    if responsiveness > HIGH_RESPONSIVENESS:
        return ResponsivenessKind.HIGH
    return ResponsivenessKind.MODERATE


def analyze_oven_responsiveness(
    readings: Sequence[Reading],
    oven_events: Sequence[OvenEvent],
    now: datetime,
    thermal_lag_minutes: float = 15,
) -> Optional[ResponsivenessAnalysis]:
    """Correlate each oven-setting period with the heating rate observed in it."""
    if len(oven_events) < MIN_OVEN_EVENTS or len(readings) < MIN_READINGS:
        return None

    segments: List[SegmentRate] = []
    for index, event in enumerate(oven_events):
        if index + 1 < len(oven_events):
            segment_end = as_utc(oven_events[index + 1].timestamp)
        else:
            segment_end = as_utc(now)
        segment = _segment_rate(event, segment_end, readings, thermal_lag_minutes)
        if segment is not None:
            segments.append(segment)

    if len(segments) < MIN_SEGMENTS:
        return None

    oven_temps = [segment.oven_temperature for segment in segments]
    rates = [segment.heating_rate for segment in segments]
    correlation = pearson_correlation(oven_temps, rates)

    oven_range = max(oven_temps) - min(oven_temps)
    rate_range = max(rates) - min(rates)
    responsiveness = rate_range / oven_range if oven_range > 0 else 0.0

    return ResponsivenessAnalysis(
        segments=segments,
        correlation=correlation,
        responsiveness=responsiveness,
        description=_describe(responsiveness, correlation),
    )
