"""Restart planning while the oven is switched off."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from services.timing import as_utc, minutes_between, round_half_up, round_to_int
from settings import EngineSettings

AMBIENT_TEMPERATURE = 70.0
COOLING_CONSTANT_PER_MINUTE = 0.02
URGENT_RESTART_BOOST = 50
RESTART_ADJUSTMENT = 25
# Heating rate assumed when nothing has been observed: about 12 degrees/hour at 225.
_REFERENCE_OVEN_TEMPERATURE = 225.0
_REFERENCE_RATE = 12.0


@dataclass(frozen=True)
class RestartPlan:
    restart_time: datetime
    restart_temperature: float
    minutes_until_restart: int
    should_restart_now: bool
    estimated_current_temperature: float
    reasoning: str


def estimate_cooling(
    initial_temp: float,
    minutes_elapsed: float,
    ambient_temp: float = AMBIENT_TEMPERATURE,
    cooling_constant: float = COOLING_CONSTANT_PER_MINUTE,
) -> float:
    """Newton's law of cooling: ``T(t) = T_amb + (T_0 - T_amb) * e^(-k t)``."""
    elapsed = max(minutes_elapsed, 0.0)
    return ambient_temp + (initial_temp - ambient_temp) * math.exp(-cooling_constant * elapsed)


def _projected_rate(new_oven_temp: float, current_rate: Optional[float], current_oven_temp: float) -> float:
    if not current_rate or current_rate <= 0 or not current_oven_temp:
        return new_oven_temp / _REFERENCE_OVEN_TEMPERATURE * _REFERENCE_RATE
    return current_rate * new_oven_temp / current_oven_temp


def _within_guardrails(temperature: float, settings: EngineSettings) -> float:
    return min(max(temperature, settings.oven_temp_min), settings.oven_temp_max)


def plan_oven_restart(
    last_internal_temp: float,
    target_temp: float,
    minutes_since_off: float,
    desired_serve_time: datetime,
    previous_oven_temp: float,
    current_rate: Optional[float],
    settings: EngineSettings,
    now: datetime,
) -> RestartPlan:
    """Decide when to switch the oven back on and at what setting."""
    now = as_utc(now)
    estimated = round_half_up(estimate_cooling(last_internal_temp, minutes_since_off), 1)
    deficit = target_temp - estimated

    if deficit <= 0:
        return RestartPlan(
            restart_time=now,
            restart_temperature=_within_guardrails(previous_oven_temp, settings),
            minutes_until_restart=0,
            should_restart_now=True,
            estimated_current_temperature=estimated,
            reasoning="Meat is already at or past target temperature.",
        )

    minutes_to_serve = minutes_between(now, desired_serve_time)
    if minutes_to_serve <= 0:
        return RestartPlan(
            restart_time=now,
            restart_temperature=_within_guardrails(
                previous_oven_temp + URGENT_RESTART_BOOST, settings
            ),
            minutes_until_restart=0,
            should_restart_now=True,
            estimated_current_temperature=estimated,
            reasoning="Past desired serve time - restart immediately at higher temperature.",
        )

    required_rate = deficit / minutes_to_serve * 60
    restart_temp = previous_oven_temp
    if current_rate and current_rate > 0:
        if required_rate > current_rate * 1.2:
            restart_temp = previous_oven_temp + RESTART_ADJUSTMENT
        elif required_rate < current_rate * 0.8:
            restart_temp = previous_oven_temp - RESTART_ADJUSTMENT
    restart_temp = _within_guardrails(restart_temp, settings)

    projected_rate = _projected_rate(restart_temp, current_rate, previous_oven_temp)
    minutes_needed = deficit / projected_rate * 60
    restart_time = as_utc(desired_serve_time) - timedelta(minutes=minutes_needed)
    minutes_until = round_to_int(minutes_between(now, restart_time))

    if minutes_until > 0:
        reasoning = f"Wait {minutes_until} minutes to finish on time."
    else:
        reasoning = "Restart now to reach target by desired serve time."

    return RestartPlan(
        restart_time=restart_time,
        restart_temperature=_within_guardrails(float(round_to_int(restart_temp)), settings),
        minutes_until_restart=minutes_until,
        should_restart_now=minutes_until <= 0,
        estimated_current_temperature=estimated,
        reasoning=reasoning,
    )
