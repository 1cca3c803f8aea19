"""Ordered preconditions that must hold before a recommendation is produced."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Sequence

from models.records import OvenEvent, Reading
from services.confidence import ConfidenceAssessment, ConfidenceLevel, ConfidenceReason
from services.rate import reading_span_minutes
from services.timing import minutes_between, round_to_int
from settings import EngineSettings


class BlockerType(str, Enum):
    INSUFFICIENT_READINGS = "insufficient_readings"
    INSUFFICIENT_TIME = "insufficient_time"
    NO_OVEN_DATA = "no_oven_data"
    STALE_OVEN_DATA = "stale_oven_data"
    INSUFFICIENT_CONFIDENCE = "insufficient_confidence"
    NO_SERVE_TIME = "no_serve_time"
    BAD_RATE = "bad_rate"
    UNSTABLE_RATE = "unstable_rate"


NO_OVEN_DATA_MESSAGE = "No oven temperature recorded. Please log your current oven setting."
NO_SERVE_TIME_MESSAGE = "Set a desired serve time to get timing recommendations."
RATE_TOO_LOW_MESSAGE = "Heating rate is very slow or negative. Check thermometer placement."
RATE_UNSTABLE_MESSAGE = "Temperature readings are fluctuating. Wait for more stable data."
OVEN_STALE_MESSAGE = (
    "Oven temperature hasn't been updated recently. Please confirm current oven setting."
)


@dataclass(frozen=True)
class Progress:
    current: float
    required: float
    message: str


@dataclass(frozen=True)
class Eligibility:
    can_recommend: bool
    blocker_type: Optional[BlockerType] = None
    blocker_reason: Optional[str] = None
    progress: Optional[Progress] = None


ELIGIBLE = Eligibility(can_recommend=True)


@dataclass(frozen=True)
class _GateInput:
    readings: Sequence[Reading]
    oven_events: Sequence[OvenEvent]
    desired_serve_time: Optional[datetime]
    settings: EngineSettings
    confidence: ConfidenceAssessment
    now: datetime

    @property
    def oven_is_off(self) -> bool:
        return bool(self.oven_events) and self.oven_events[-1].is_off


def _blocked(
    blocker_type: BlockerType, reason: str, progress: Optional[Progress] = None
) -> Eligibility:
    return Eligibility(
        can_recommend=False,
        blocker_type=blocker_type,
        blocker_reason=reason,
        progress=progress,
    )


def _check_reading_count(gate: _GateInput) -> Optional[Eligibility]:
    required = gate.settings.min_readings_for_recommendation
    count = len(gate.readings)
    if count >= required:
        return None
    needed = required - count
    return _blocked(
        BlockerType.INSUFFICIENT_READINGS,
        f"Need at least {required} readings to make recommendations.",
        Progress(
            current=count,
            required=required,
            message=f"{needed} more reading{'s' if needed > 1 else ''} needed",
        ),
    )


def _check_time_span(gate: _GateInput) -> Optional[Eligibility]:
    required = gate.settings.min_time_span_minutes
    span = reading_span_minutes(gate.readings)
    if span >= required:
        return None
    needed = math.ceil(required - span)
    return _blocked(
        BlockerType.INSUFFICIENT_TIME,
        f"Need readings spanning at least {required:g} minutes.",
        Progress(
            current=round_to_int(span),
            required=required,
            message=f"~{needed} more minutes of data needed",
        ),
    )


def _check_oven_data(gate: _GateInput) -> Optional[Eligibility]:
    if gate.oven_events:
        return None
    return _blocked(BlockerType.NO_OVEN_DATA, NO_OVEN_DATA_MESSAGE)


def _check_oven_staleness(gate: _GateInput) -> Optional[Eligibility]:
    # An oven that was switched off is not expected to be re-confirmed.
    if gate.oven_is_off:
        return None
    age = minutes_between(gate.oven_events[-1].timestamp, gate.now)
    limit = gate.settings.oven_temp_stale_minutes
    if age <= limit:
        return None
    return _blocked(
        BlockerType.STALE_OVEN_DATA,
        OVEN_STALE_MESSAGE,
        Progress(
            current=round_to_int(age),
            required=limit,
            message="Please confirm your current oven setting",
        ),
    )


def _check_confidence(gate: _GateInput) -> Optional[Eligibility]:
    if gate.oven_is_off or gate.confidence.level is not ConfidenceLevel.INSUFFICIENT:
        return None
    return _blocked(BlockerType.INSUFFICIENT_CONFIDENCE, gate.confidence.reason)


def _check_serve_time(gate: _GateInput) -> Optional[Eligibility]:
    if gate.desired_serve_time is not None:
        return None
    return _blocked(BlockerType.NO_SERVE_TIME, NO_SERVE_TIME_MESSAGE)


def _check_rate_quality(gate: _GateInput) -> Optional[Eligibility]:
    if gate.oven_is_off:
        return None
    code = gate.confidence.reason_code
    if code is ConfidenceReason.SLOW_OR_NEGATIVE_RATE:
        return _blocked(BlockerType.BAD_RATE, RATE_TOO_LOW_MESSAGE)
    if code is ConfidenceReason.FLUCTUATING:
        return _blocked(BlockerType.UNSTABLE_RATE, RATE_UNSTABLE_MESSAGE)
    return None


_CHECKS: tuple[Callable[[_GateInput], Optional[Eligibility]], ...] = (
    _check_reading_count,
    _check_time_span,
    _check_oven_data,
    _check_oven_staleness,
    _check_confidence,
    _check_serve_time,
    _check_rate_quality,
)


def check_eligibility(
    readings: Sequence[Reading],
    oven_events: Sequence[OvenEvent],
    desired_serve_time: Optional[datetime],
    settings: EngineSettings,
    confidence: ConfidenceAssessment,
    now: datetime,
) -> Eligibility:
    """Run the precondition chain in order; the first failing check is returned."""
    gate = _GateInput(
        readings=readings,
        oven_events=oven_events,
        desired_serve_time=desired_serve_time,
        settings=settings,
        confidence=confidence,
        now=now,
    )
    for check in _CHECKS:
        blocked = check(gate)
        if blocked is not None:
            return blocked
    return ELIGIBLE
