from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional


_STORE_NAME_ENV = "ROAST_STORE_NAME"
_STORE_PATH_ENV = "ROAST_STORE_PATH"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_SMOOTHING_WINDOW_ENV = "ROAST_SMOOTHING_WINDOW"
_ON_TRACK_THRESHOLD_ENV = "ROAST_ON_TRACK_THRESHOLD_MINUTES"
_STEP_ENV = "ROAST_RECOMMENDATION_STEP"
_MAX_STEP_ENV = "ROAST_RECOMMENDATION_MAX_STEP"
_OVEN_MIN_ENV = "ROAST_OVEN_TEMP_MIN"
_OVEN_MAX_ENV = "ROAST_OVEN_TEMP_MAX"
_OVEN_PRACTICAL_MIN_ENV = "ROAST_OVEN_TEMP_PRACTICAL_MIN"
_LOW_TEMP_ENV = "ROAST_ENABLE_LOW_TEMP"
_MIN_READINGS_ENV = "ROAST_MIN_READINGS"
_MIN_SPAN_ENV = "ROAST_MIN_TIME_SPAN_MINUTES"
_STALE_ENV = "ROAST_OVEN_STALE_MINUTES"
_THERMAL_LAG_ENV = "ROAST_THERMAL_LAG_MINUTES"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class EngineSettings:
    """Thresholds read by the calculation and recommendation engine.

    All temperatures are in the canonical scale (Fahrenheit); durations are
    in minutes.
    """

    smoothing_window_readings: int = 3
    on_track_threshold_minutes: float = 10
    recommendation_step: float = 10
    recommendation_max_step: float = 25
    oven_temp_min: float = 150
    oven_temp_max: float = 300
    oven_temp_practical_min: float = 175
    enable_low_temp_recommendations: bool = True
    min_readings_for_recommendation: int = 3
    min_time_span_minutes: float = 30
    oven_temp_stale_minutes: float = 60
    thermal_lag_minutes: float = 15
    min_rate_for_prediction: float = 0.1


@dataclass(frozen=True)
class Settings:
    store_name: str
    store_persistence_path: Optional[str]
    log_level: str
    engine: EngineSettings = field(default_factory=EngineSettings)


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUE_VALUES:
        return True
    if candidate in _FALSE_VALUES:
        return False
    return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


def _read_engine_settings() -> EngineSettings:
    defaults = EngineSettings()
    window = _read_positive_int(_SMOOTHING_WINDOW_ENV, defaults.smoothing_window_readings)
    oven_min = _read_positive_float(_OVEN_MIN_ENV, defaults.oven_temp_min)
    oven_max = _read_positive_float(_OVEN_MAX_ENV, defaults.oven_temp_max)
    if oven_min >= oven_max:
        oven_min, oven_max = defaults.oven_temp_min, defaults.oven_temp_max
    practical_min = _read_positive_float(_OVEN_PRACTICAL_MIN_ENV, defaults.oven_temp_practical_min)
    return EngineSettings(
        smoothing_window_readings=window if window >= 2 else defaults.smoothing_window_readings,
        on_track_threshold_minutes=_read_positive_float(
            _ON_TRACK_THRESHOLD_ENV, defaults.on_track_threshold_minutes
        ),
        recommendation_step=_read_positive_float(_STEP_ENV, defaults.recommendation_step),
        recommendation_max_step=_read_positive_float(_MAX_STEP_ENV, defaults.recommendation_max_step),
        oven_temp_min=oven_min,
        oven_temp_max=oven_max,
        oven_temp_practical_min=min(max(practical_min, oven_min), oven_max),
        enable_low_temp_recommendations=_read_bool(
            _LOW_TEMP_ENV, defaults.enable_low_temp_recommendations
        ),
        min_readings_for_recommendation=_read_positive_int(
            _MIN_READINGS_ENV, defaults.min_readings_for_recommendation
        ),
        min_time_span_minutes=_read_positive_float(_MIN_SPAN_ENV, defaults.min_time_span_minutes),
        oven_temp_stale_minutes=_read_positive_float(_STALE_ENV, defaults.oven_temp_stale_minutes),
        thermal_lag_minutes=_read_positive_float(_THERMAL_LAG_ENV, defaults.thermal_lag_minutes),
    )


@lru_cache
def get_settings() -> Settings:
    return Settings(
        store_name=_read_str_env(_STORE_NAME_ENV, "roast_sessions"),
        store_persistence_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/sessions.json"),
        log_level=_read_log_level("INFO"),
        engine=_read_engine_settings(),
    )
