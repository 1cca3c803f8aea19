"""Domain records shared by the engine, the session store and the API."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable, List, Optional
from uuid import uuid4


@dataclass(frozen=True)
class Reading:
    """An internal-temperature reading in the canonical scale."""

    id: str
    temperature: float
    timestamp: datetime
    delta_from_start: Optional[float] = None
    delta_from_previous: Optional[float] = None


@dataclass(frozen=True)
class OvenEvent:
    """An oven set-point change.

    ``previous_temperature`` mirrors the prior event's setting and is ``None``
    only for the first event. ``is_off`` marks the oven being switched off.
    """

    id: str
    set_temperature: float
    timestamp: datetime
    previous_temperature: Optional[float] = None
    is_off: bool = False


@dataclass(frozen=True)
class SessionConfig:
    target_temperature: float
    desired_serve_time: Optional[datetime] = None


def new_reading(temperature: float, timestamp: Optional[datetime] = None) -> Reading:
    return Reading(
        id=str(uuid4()),
        temperature=temperature,
        timestamp=timestamp or datetime.now(timezone.utc),
    )


def new_oven_event(
    set_temperature: float,
    timestamp: Optional[datetime] = None,
    is_off: bool = False,
) -> OvenEvent:
    return OvenEvent(
        id=str(uuid4()),
        set_temperature=set_temperature,
        timestamp=timestamp or datetime.now(timezone.utc),
        is_off=is_off,
    )


def _sort_key(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp


def recompute_reading_deltas(readings: Iterable[Reading]) -> List[Reading]:
    """Return readings ordered by timestamp with fresh delta fields."""
    ordered = sorted(readings, key=lambda reading: _sort_key(reading.timestamp))
    if not ordered:
        return []

    first = ordered[0]
    result = [replace(first, delta_from_start=0.0, delta_from_previous=0.0)]
    for previous, reading in zip(ordered, ordered[1:]):
        result.append(
            replace(
                reading,
                delta_from_start=reading.temperature - first.temperature,
                delta_from_previous=reading.temperature - previous.temperature,
            )
        )
    return result


def relink_oven_events(events: Iterable[OvenEvent]) -> List[OvenEvent]:
    """Return events ordered by timestamp with ``previous_temperature`` rebuilt."""
    ordered = sorted(events, key=lambda event: _sort_key(event.timestamp))
    result: List[OvenEvent] = []
    previous: Optional[OvenEvent] = None
    for event in ordered:
        result.append(
            replace(
                event,
                previous_temperature=None if previous is None else previous.set_temperature,
            )
        )
        previous = event
    return result
