from __future__ import annotations

import pytest

from services.confidence import ConfidenceLevel, ConfidenceReason, assess_confidence


@pytest.mark.parametrize(
    ("count", "span", "r2", "rate", "level", "reason"),
    [
        (0, 0.0, 0.0, None, ConfidenceLevel.INSUFFICIENT, ConfidenceReason.NO_READINGS),
        (1, 0.0, 0.0, None, ConfidenceLevel.INSUFFICIENT, ConfidenceReason.NOT_ENOUGH_READINGS),
        (2, 60.0, 1.0, 12.0, ConfidenceLevel.LOW, ConfidenceReason.ONLY_TWO_READINGS),
        (5, 60.0, 1.0, 0.1, ConfidenceLevel.LOW, ConfidenceReason.SLOW_OR_NEGATIVE_RATE),
        (5, 60.0, 1.0, -4.0, ConfidenceLevel.LOW, ConfidenceReason.SLOW_OR_NEGATIVE_RATE),
        (5, 10.0, 1.0, 12.0, ConfidenceLevel.LOW, ConfidenceReason.SHORT_TIME_SPAN),
        (5, 60.0, 0.5, 12.0, ConfidenceLevel.LOW, ConfidenceReason.FLUCTUATING),
        (5, 60.0, 0.8, 12.0, ConfidenceLevel.MEDIUM, ConfidenceReason.MODERATE_VARIATION),
        (4, 30.0, 0.9, 12.0, ConfidenceLevel.HIGH, ConfidenceReason.CONSISTENT),
        (3, 60.0, 0.95, 12.0, ConfidenceLevel.MEDIUM, ConfidenceReason.ADEQUATE),
        (6, 20.0, 0.99, 12.0, ConfidenceLevel.MEDIUM, ConfidenceReason.ADEQUATE),
    ],
)
def test_rules_apply_in_order(count, span, r2, rate, level, reason) -> None:
    assessment = assess_confidence(count, span, r2, rate)

    assert assessment.level is level
    assert assessment.reason_code is reason
    assert assessment.reason


def test_slow_rate_takes_priority_over_short_span() -> None:
    assessment = assess_confidence(4, 5.0, 0.2, 0.05)

    assert assessment.reason_code is ConfidenceReason.SLOW_OR_NEGATIVE_RATE


def test_missing_rate_is_not_treated_as_slow() -> None:
    assessment = assess_confidence(4, 60.0, 0.0, None)

    assert assessment.reason_code is ConfidenceReason.FLUCTUATING


def test_minimum_rate_is_configurable() -> None:
    assessment = assess_confidence(5, 60.0, 1.0, 0.5, min_rate=1.0)

    assert assessment.level is ConfidenceLevel.LOW
    assert "thermometer" in assessment.reason
