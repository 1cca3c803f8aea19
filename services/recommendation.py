"""Oven adjustment heuristic with guardrail clamping."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from services.predictor import ScheduleStatus
from services.timing import round_half_up, round_to_int
from settings import EngineSettings


class RecommendationAction(str, Enum):
    RAISE = "raise"
    LOWER = "lower"
    HOLD = "hold"
    OVEN_OFF = "oven-off"
    NONE = "none"


class Severity(str, Enum):
    INFO = "info"
    NORMAL = "normal"
    MODERATE = "moderate"
    URGENT = "urgent"
    WARNING = "warning"
    UNKNOWN = "unknown"


# (minutes beyond which the tier applies, step multiplier, late severity, early severity)
_STEP_TIERS = (
    (30, 2.5, Severity.URGENT, Severity.MODERATE),
    (15, 1.5, Severity.MODERATE, Severity.NORMAL),
)
_LARGE_VARIANCE_MINUTES = 30

OVEN_OFF_ALTERNATIVE = (
    "Alternatively, turn the oven off for about {minutes} minutes to slow things down."
)


@dataclass(frozen=True)
class Adjustment:
    action: RecommendationAction
    suggested_temperature: Optional[float]
    change_amount: Optional[float]
    message: str
    reasoning: str
    severity: Severity
    alternative_message: Optional[str] = None
    oven_off_minutes: Optional[int] = None


def _format_temp(value: float) -> str:
    return f"{value:g}°F"


def _clamp(value: float, floor: float, ceiling: float) -> float:
    return min(max(value, floor), ceiling)


def _step_for(minutes_off: float, settings: EngineSettings, late: bool) -> tuple[float, Severity]:
    step = settings.recommendation_step
    for threshold, multiplier, late_severity, early_severity in _STEP_TIERS:
        if minutes_off > threshold:
            severity = late_severity if late else early_severity
            return min(settings.recommendation_max_step, step * multiplier), severity
    return min(settings.recommendation_max_step, step), Severity.NORMAL


def calculate_oven_off_duration(
    minutes_early: float,
    predicted_minutes_to_target: Optional[int],
    current_rate: Optional[float],
) -> int:
    """Suggested pause, in minutes, when the oven cannot go any lower."""
    if not predicted_minutes_to_target or not current_rate or current_rate <= 0:
        return max(5, min(30, round_to_int(minutes_early * 0.4)))
    pause_factor = minutes_early / predicted_minutes_to_target
    return max(5, min(45, round_to_int(predicted_minutes_to_target * pause_factor * 0.5)))


def _hold_on_track(current_oven_temp: float, settings: EngineSettings) -> Adjustment:
    suggested = _clamp(current_oven_temp, settings.oven_temp_min, settings.oven_temp_max)
    return Adjustment(
        action=RecommendationAction.HOLD,
        suggested_temperature=suggested,
        change_amount=0,
        message=(
            f"Hold steady at {_format_temp(suggested)}. "
            "You're on track to hit your target."
        ),
        reasoning=(
            f"Predicted to finish within {settings.on_track_threshold_minutes:g} "
            "minutes of your target time."
        ),
        severity=Severity.NORMAL,
    )


def _raise(current_oven_temp: float, minutes_late: float, settings: EngineSettings) -> Adjustment:
    step, severity = _step_for(minutes_late, settings, late=True)
    ceiling = settings.oven_temp_max
    suggested = _clamp(round_to_int(current_oven_temp + step), settings.oven_temp_min, ceiling)
    change = round_half_up(suggested - current_oven_temp, 1)
    late_by = round_to_int(minutes_late)

    if change <= 0:
        return Adjustment(
            action=RecommendationAction.HOLD,
            suggested_temperature=_clamp(current_oven_temp, settings.oven_temp_min, ceiling),
            change_amount=0,
            message=(
                f"Already at maximum recommended temperature ({_format_temp(ceiling)}). "
                "Consider extending your timeline if possible."
            ),
            reasoning=(
                f"Running {late_by} minutes late, but oven is already at the upper "
                "limit for low-and-slow cooking."
            ),
            severity=Severity.WARNING,
        )

    if minutes_late > _LARGE_VARIANCE_MINUTES:
        message = f"Running late. Consider raising oven to {_format_temp(suggested)}."
    else:
        message = f"Consider raising oven to {_format_temp(suggested)} to speed things up."

    return Adjustment(
        action=RecommendationAction.RAISE,
        suggested_temperature=suggested,
        change_amount=change,
        message=message,
        reasoning=(
            f"Running approximately {late_by} minutes late. "
            "Increasing oven temperature will speed up heating."
        ),
        severity=severity,
    )


def _lower(
    current_oven_temp: float,
    minutes_early: float,
    settings: EngineSettings,
    predicted_minutes_to_target: Optional[int],
    current_rate: Optional[float],
) -> Adjustment:
    step, severity = _step_for(minutes_early, settings, late=False)
    if settings.enable_low_temp_recommendations:
        floor = settings.oven_temp_min
    else:
        floor = _clamp(
            settings.oven_temp_practical_min, settings.oven_temp_min, settings.oven_temp_max
        )
    suggested = _clamp(round_to_int(current_oven_temp - step), floor, settings.oven_temp_max)
    change = round_half_up(suggested - current_oven_temp, 1)
    early_by = round_to_int(minutes_early)

    if change >= 0:
        pause = calculate_oven_off_duration(minutes_early, predicted_minutes_to_target, current_rate)
        return Adjustment(
            action=RecommendationAction.HOLD,
            suggested_temperature=_clamp(
                current_oven_temp, settings.oven_temp_min, settings.oven_temp_max
            ),
            change_amount=0,
            message=(
                f"Already at minimum recommended temperature ({_format_temp(floor)}). "
                "You may finish early."
            ),
            reasoning=(
                f"Running {early_by} minutes early, but oven is already at the lower "
                "limit for food safety."
            ),
            severity=Severity.INFO,
            alternative_message=OVEN_OFF_ALTERNATIVE.format(minutes=pause),
            oven_off_minutes=pause,
        )

    if minutes_early > _LARGE_VARIANCE_MINUTES:
        message = (
            f"Running very early. Lower oven to {_format_temp(suggested)} "
            "to avoid overshooting."
        )
    else:
        message = (
            f"Running ahead of schedule. Consider lowering oven to {_format_temp(suggested)}."
        )

    return Adjustment(
        action=RecommendationAction.LOWER,
        suggested_temperature=suggested,
        change_amount=change,
        message=message,
        reasoning=(
            f"Running approximately {early_by} minutes early. "
            "Lowering oven temperature will slow down heating."
        ),
        severity=severity,
    )


def calculate_recommendation(
    current_oven_temp: float,
    schedule_variance_minutes: Optional[float],
    schedule_status: ScheduleStatus,
    settings: EngineSettings,
    predicted_minutes_to_target: Optional[int] = None,
    current_rate: Optional[float] = None,
) -> Adjustment:
    """Translate schedule status into a raise/lower/hold adjustment.

    ``change_amount`` is signed (positive when raising) and always reflects the
    change left after clamping to the guardrails; ``suggested_temperature``
    never leaves ``[oven_temp_min, oven_temp_max]``.
    """
    if schedule_status is ScheduleStatus.ON_TRACK:
        return _hold_on_track(current_oven_temp, settings)

    if schedule_status is ScheduleStatus.LATE and schedule_variance_minutes is not None:
        return _raise(current_oven_temp, abs(schedule_variance_minutes), settings)

    if schedule_status is ScheduleStatus.EARLY and schedule_variance_minutes is not None:
        return _lower(
            current_oven_temp,
            abs(schedule_variance_minutes),
            settings,
            predicted_minutes_to_target,
            current_rate,
        )

    return Adjustment(
        action=RecommendationAction.NONE,
        suggested_temperature=None,
        change_amount=None,
        message="Unable to determine schedule status.",
        reasoning="Insufficient data to calculate timing.",
        severity=Severity.UNKNOWN,
    )
