"""Time arithmetic and rounding helpers shared by the engine modules."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so aware and naive values compare."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def minutes_between(start: datetime, end: datetime) -> float:
    return (as_utc(end) - as_utc(start)).total_seconds() / 60


def hours_between(start: datetime, end: datetime) -> float:
    return minutes_between(start, end) / 60


def add_minutes(value: datetime, minutes: float) -> datetime:
    return as_utc(value) + timedelta(minutes=minutes)


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves upwards (``round`` would round them to even)."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def round_to_int(value: float) -> int:
    return int(round_half_up(value))
