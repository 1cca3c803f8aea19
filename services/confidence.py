"""Confidence classification for rate-based predictions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

DEFAULT_MIN_RATE_FOR_PREDICTION = 0.1

SHORT_SPAN_MINUTES = 15
HIGH_CONFIDENCE_SPAN_MINUTES = 30
HIGH_CONFIDENCE_READINGS = 4
UNSTABLE_R2 = 0.7
HIGH_R2 = 0.9


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INSUFFICIENT = "insufficient"


class ConfidenceReason(str, Enum):
    """Why a confidence level was assigned.

    The eligibility gate branches on these codes, so they are the single source
    of truth for "slow or negative" and "fluctuating" rates.
    """

    NO_READINGS = "no_readings"
    NOT_ENOUGH_READINGS = "not_enough_readings"
    ONLY_TWO_READINGS = "only_two_readings"
    SLOW_OR_NEGATIVE_RATE = "slow_or_negative_rate"
    SHORT_TIME_SPAN = "short_time_span"
    FLUCTUATING = "fluctuating"
    MODERATE_VARIATION = "moderate_variation"
    CONSISTENT = "consistent"
    ADEQUATE = "adequate"


REASON_MESSAGES = {
    ConfidenceReason.NO_READINGS: "No readings recorded yet",
    ConfidenceReason.NOT_ENOUGH_READINGS: "Need at least 2 readings to calculate rate",
    ConfidenceReason.ONLY_TWO_READINGS: (
        "Only 2 readings available; predictions may be inaccurate"
    ),
    ConfidenceReason.SLOW_OR_NEGATIVE_RATE: (
        "Heating rate is very slow or negative; check thermometer placement"
    ),
    ConfidenceReason.SHORT_TIME_SPAN: (
        "Readings span less than 15 minutes; wait for more data"
    ),
    ConfidenceReason.FLUCTUATING: (
        "Temperature readings are fluctuating; predictions may be unstable"
    ),
    ConfidenceReason.MODERATE_VARIATION: "Good data quality with moderate variation",
    ConfidenceReason.CONSISTENT: "Strong data quality with consistent heating pattern",
    ConfidenceReason.ADEQUATE: "Adequate data for reasonable predictions",
}


@dataclass(frozen=True)
class ConfidenceAssessment:
    level: ConfidenceLevel
    reason_code: ConfidenceReason

    @property
    def reason(self) -> str:
        return REASON_MESSAGES[self.reason_code]


def _assessment(level: ConfidenceLevel, code: ConfidenceReason) -> ConfidenceAssessment:
    return ConfidenceAssessment(level=level, reason_code=code)


def assess_confidence(
    reading_count: int,
    time_span_minutes: float,
    r2: float,
    rate: Optional[float],
    min_rate: float = DEFAULT_MIN_RATE_FOR_PREDICTION,
) -> ConfidenceAssessment:
    """Classify how far a prediction can be trusted. The first matching rule wins."""
    if reading_count < 1:
        return _assessment(ConfidenceLevel.INSUFFICIENT, ConfidenceReason.NO_READINGS)

    if reading_count < 2:
        return _assessment(ConfidenceLevel.INSUFFICIENT, ConfidenceReason.NOT_ENOUGH_READINGS)

    if reading_count < 3:
        return _assessment(ConfidenceLevel.LOW, ConfidenceReason.ONLY_TWO_READINGS)

    if rate is not None and rate <= min_rate:
        return _assessment(ConfidenceLevel.LOW, ConfidenceReason.SLOW_OR_NEGATIVE_RATE)

    if time_span_minutes < SHORT_SPAN_MINUTES:
        return _assessment(ConfidenceLevel.LOW, ConfidenceReason.SHORT_TIME_SPAN)

    if r2 < UNSTABLE_R2:
        return _assessment(ConfidenceLevel.LOW, ConfidenceReason.FLUCTUATING)

    if r2 < HIGH_R2:
        return _assessment(ConfidenceLevel.MEDIUM, ConfidenceReason.MODERATE_VARIATION)

    if (
        reading_count >= HIGH_CONFIDENCE_READINGS
        and time_span_minutes >= HIGH_CONFIDENCE_SPAN_MINUTES
        and r2 >= HIGH_R2
    ):
        return _assessment(ConfidenceLevel.HIGH, ConfidenceReason.CONSISTENT)

    return _assessment(ConfidenceLevel.MEDIUM, ConfidenceReason.ADEQUATE)
