"""Single entry point that turns a session snapshot into predictions and advice."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from app.schemas import (
    CalculationResult,
    Confidence,
    Progress,
    Recommendation,
    SessionCalculations,
)
from models.records import OvenEvent, Reading, SessionConfig
from services.confidence import ConfidenceAssessment, assess_confidence
from services.eligibility import BlockerType, Eligibility, check_eligibility
from services.predictor import (
    UNKNOWN_VARIANCE,
    ScheduleVariance,
    calculate_schedule_variance,
    predict_time_to_target,
)
from services.rate import calculate_average_rate, estimate_heating_rate, reading_span_minutes
from services.recommendation import RecommendationAction, Severity, calculate_recommendation
from services.restart import plan_oven_restart
from services.timing import as_utc, minutes_between, round_half_up
from settings import EngineSettings

logger = logging.getLogger(__name__)

_DEFAULT_RESTART_OVEN_TEMP = 225.0
OVEN_RESTART_NOW = "Turn the oven back on now at {temp}."
OVEN_RESTART_TIMED = "Keep the oven off. Turn it back on at {temp} in about {minutes} minutes."
OVEN_OFF_COOLING = "The roast is coasting on residual heat and slowly cooling while the oven is off."


def _confidence(assessment: ConfidenceAssessment) -> Confidence:
    return Confidence(
        level=assessment.level,
        reason_code=assessment.reason_code,
        reason=assessment.reason,
    )


def _blocked_recommendation(eligibility: Eligibility) -> Recommendation:
    progress = None
    if eligibility.progress is not None:
        progress = Progress(
            current=eligibility.progress.current,
            required=eligibility.progress.required,
            message=eligibility.progress.message,
        )
    return Recommendation(
        action=RecommendationAction.NONE,
        message=eligibility.blocker_reason or "",
        can_recommend=False,
        blocker_reason=eligibility.blocker_reason,
        blocker_type=eligibility.blocker_type,
        progress=progress,
    )


def _previous_oven_setting(oven_events: Sequence[OvenEvent]) -> float:
    for event in reversed(oven_events):
        if not event.is_off:
            return event.set_temperature
    return _DEFAULT_RESTART_OVEN_TEMP


def _restart_recommendation(
    readings: Sequence[Reading],
    oven_events: Sequence[OvenEvent],
    target_temperature: float,
    desired_serve_time: datetime,
    settings: EngineSettings,
    current_rate: Optional[float],
    now: datetime,
) -> Recommendation:
    off_event = oven_events[-1]
    plan = plan_oven_restart(
        last_internal_temp=readings[-1].temperature,
        target_temp=target_temperature,
        minutes_since_off=minutes_between(off_event.timestamp, now),
        desired_serve_time=desired_serve_time,
        previous_oven_temp=_previous_oven_setting(oven_events),
        current_rate=current_rate,
        settings=settings,
        now=now,
    )
    temp = f"{plan.restart_temperature:g}°F"
    if plan.should_restart_now:
        message = OVEN_RESTART_NOW.format(temp=temp)
    else:
        message = OVEN_RESTART_TIMED.format(temp=temp, minutes=plan.minutes_until_restart)
    return Recommendation(
        action=RecommendationAction.OVEN_OFF,
        suggested_temperature=plan.restart_temperature,
        message=message,
        reasoning=plan.reasoning,
        severity=Severity.MODERATE if plan.should_restart_now else Severity.NORMAL,
        can_recommend=True,
        alternative_message=OVEN_OFF_COOLING,
        restart_time=plan.restart_time,
        minutes_until_restart=plan.minutes_until_restart,
        should_restart_now=plan.should_restart_now,
        estimated_current_temperature=plan.estimated_current_temperature,
    )


def _no_readings_result(
    oven_events: Sequence[OvenEvent],
    config: SessionConfig,
    settings: EngineSettings,
    now: datetime,
) -> SessionCalculations:
    assessment = assess_confidence(0, 0.0, 0.0, None, settings.min_rate_for_prediction)
    eligibility = check_eligibility(
        readings=[],
        oven_events=oven_events,
        desired_serve_time=config.desired_serve_time,
        settings=settings,
        confidence=assessment,
        now=now,
    )
    if eligibility.can_recommend:
        eligibility = Eligibility(
            can_recommend=False,
            blocker_type=BlockerType.INSUFFICIENT_READINGS,
            blocker_reason=assessment.reason,
        )
    return SessionCalculations(
        calculation=CalculationResult(confidence=_confidence(assessment)),
        recommendation=_blocked_recommendation(eligibility),
    )


def compute_session_calculations(
    readings: Sequence[Reading],
    oven_events: Sequence[OvenEvent],
    config: SessionConfig,
    settings: EngineSettings,
    now: datetime,
) -> SessionCalculations:
    """Evaluate one immutable snapshot.

    Readings and oven events must be ordered by timestamp. ``now`` is the only
    notion of the current time used for ETA and staleness, so identical inputs
    always produce identical results. Inputs are never mutated.
    """
    now = as_utc(now)
    readings = tuple(readings)
    oven_events = tuple(oven_events)

    if not readings:
        return _no_readings_result(oven_events, config, settings, now)

    current_temp = readings[-1].temperature
    span = reading_span_minutes(readings)
    rate_estimate = estimate_heating_rate(readings, settings.smoothing_window_readings)
    average_rate = calculate_average_rate(readings)

    assessment = assess_confidence(
        reading_count=len(readings),
        time_span_minutes=span,
        r2=rate_estimate.r2,
        rate=rate_estimate.rate,
        min_rate=settings.min_rate_for_prediction,
    )

    prediction = predict_time_to_target(
        current_temp,
        config.target_temperature,
        rate_estimate.rate,
        now,
        settings.min_rate_for_prediction,
    )

    variance: ScheduleVariance = UNKNOWN_VARIANCE
    if config.desired_serve_time is not None and prediction.target_time is not None:
        variance = calculate_schedule_variance(
            prediction.target_time,
            config.desired_serve_time,
            settings.on_track_threshold_minutes,
        )

    calculation = CalculationResult(
        current_rate=rate_estimate.rate,
        average_rate=average_rate,
        r2=rate_estimate.r2,
        reading_count=len(readings),
        time_span_minutes=round_half_up(span, 2),
        predicted_minutes_to_target=prediction.minutes,
        predicted_target_time=prediction.target_time,
        schedule_variance_minutes=variance.variance_minutes,
        schedule_status=variance.status,
        confidence=_confidence(assessment),
    )

    eligibility = check_eligibility(
        readings=readings,
        oven_events=oven_events,
        desired_serve_time=config.desired_serve_time,
        settings=settings,
        confidence=assessment,
        now=now,
    )
    if not eligibility.can_recommend:
        logger.debug(
            "Recommendation blocked",
            extra={
                "reading_count": len(readings),
                "blocker_type": eligibility.blocker_type.value if eligibility.blocker_type else None,
                "confidence": assessment.level.value,
            },
        )
        return SessionCalculations(
            calculation=calculation,
            recommendation=_blocked_recommendation(eligibility),
        )

    if oven_events[-1].is_off:
        recommendation = _restart_recommendation(
            readings,
            oven_events,
            config.target_temperature,
            config.desired_serve_time,
            settings,
            rate_estimate.rate,
            now,
        )
    else:
        adjustment = calculate_recommendation(
            current_oven_temp=oven_events[-1].set_temperature,
            schedule_variance_minutes=variance.variance_minutes,
            schedule_status=variance.status,
            settings=settings,
            predicted_minutes_to_target=prediction.minutes,
            current_rate=rate_estimate.rate,
        )
        recommendation = Recommendation(
            action=adjustment.action,
            suggested_temperature=adjustment.suggested_temperature,
            change_amount=adjustment.change_amount,
            message=adjustment.message,
            reasoning=adjustment.reasoning,
            severity=adjustment.severity,
            can_recommend=True,
            alternative_message=adjustment.alternative_message,
            oven_off_minutes=adjustment.oven_off_minutes,
        )

    logger.debug(
        "Recommendation computed",
        extra={
            "reading_count": len(readings),
            "schedule_status": variance.status.value,
            "action": recommendation.action.value,
            "confidence": assessment.level.value,
        },
    )
    return SessionCalculations(calculation=calculation, recommendation=recommendation)
