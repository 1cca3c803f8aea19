"""Pydantic schemas for engine results and the HTTP API layer."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from models.records import OvenEvent, Reading, SessionConfig
from services.confidence import ConfidenceLevel, ConfidenceReason
from services.eligibility import BlockerType
from services.predictor import ScheduleStatus
from services.recommendation import RecommendationAction, Severity
from services.responsiveness import ResponsivenessKind
from settings import EngineSettings


class Confidence(BaseModel):
    level: ConfidenceLevel
    reason_code: ConfidenceReason
    reason: str


class CalculationResult(BaseModel):
    """Predictive state derived from one snapshot of readings."""

    current_rate: Optional[float] = Field(
        default=None, description="Degrees per hour over the smoothing window."
    )
    average_rate: Optional[float] = Field(
        default=None, description="Degrees per hour from first to last reading."
    )
    r2: float = 0.0
    reading_count: int = Field(default=0, ge=0)
    time_span_minutes: float = 0.0
    predicted_minutes_to_target: Optional[int] = None
    predicted_target_time: Optional[datetime] = None
    schedule_variance_minutes: Optional[int] = Field(
        default=None, description="Positive when running late, negative when early."
    )
    schedule_status: ScheduleStatus = ScheduleStatus.UNKNOWN
    confidence: Confidence


class Progress(BaseModel):
    current: float
    required: float
    message: str


class Recommendation(BaseModel):
    """Oven adjustment advice, or the reason none can be given."""

    action: RecommendationAction = RecommendationAction.NONE
    suggested_temperature: Optional[float] = None
    change_amount: Optional[float] = Field(
        default=None, description="Signed change applied after guardrail clamping."
    )
    message: str
    reasoning: Optional[str] = None
    severity: Severity = Severity.NORMAL
    can_recommend: bool
    blocker_reason: Optional[str] = None
    blocker_type: Optional[BlockerType] = None
    progress: Optional[Progress] = None
    alternative_message: Optional[str] = None
    oven_off_minutes: Optional[int] = None
    restart_time: Optional[datetime] = None
    minutes_until_restart: Optional[int] = None
    should_restart_now: bool = False
    estimated_current_temperature: Optional[float] = None


class SessionCalculations(BaseModel):
    calculation: CalculationResult
    recommendation: Recommendation


class SegmentRate(BaseModel):
    oven_temperature: float
    heating_rate: float
    duration_minutes: float
    reading_count: int = Field(..., ge=2)


class ResponsivenessAnalysis(BaseModel):
    segments: List[SegmentRate]
    correlation: float
    responsiveness: float
    description: ResponsivenessKind


class SettingsOverrides(BaseModel):
    """Per-session changes to the engine thresholds; unset fields keep defaults."""

    smoothing_window_readings: Optional[int] = Field(default=None, ge=2, le=10)
    on_track_threshold_minutes: Optional[float] = Field(default=None, ge=1, le=60)
    recommendation_step: Optional[float] = Field(default=None, ge=5, le=50)
    recommendation_max_step: Optional[float] = Field(default=None, ge=5, le=100)
    oven_temp_min: Optional[float] = Field(default=None, gt=0)
    oven_temp_max: Optional[float] = Field(default=None, gt=0)
    oven_temp_practical_min: Optional[float] = Field(default=None, gt=0)
    enable_low_temp_recommendations: Optional[bool] = None
    min_readings_for_recommendation: Optional[int] = Field(default=None, ge=2)
    min_time_span_minutes: Optional[float] = Field(default=None, ge=0)
    oven_temp_stale_minutes: Optional[float] = Field(default=None, gt=0)
    thermal_lag_minutes: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_oven_bounds(self) -> "SettingsOverrides":
        if (
            self.oven_temp_min is not None
            and self.oven_temp_max is not None
            and self.oven_temp_min >= self.oven_temp_max
        ):
            raise ValueError("oven_temp_min must be less than oven_temp_max")
        return self

    def merge(self, other: "SettingsOverrides") -> "SettingsOverrides":
        """Overlay the fields ``other`` sets; the result is validated again."""

        return SettingsOverrides.model_validate(
            {**self.model_dump(exclude_none=True), **other.model_dump(exclude_none=True)}
        )

    def apply(self, base: EngineSettings) -> EngineSettings:
        changes = self.model_dump(exclude_none=True)
        if not changes:
            return base
        merged = replace(base, **changes)
        if merged.oven_temp_min >= merged.oven_temp_max:
            raise ValueError("oven_temp_min must be less than oven_temp_max")
        return merged


class SnapshotRequest(BaseModel):
    """A caller-owned snapshot evaluated without touching the session store."""

    readings: List[Reading] = Field(default_factory=list)
    oven_events: List[OvenEvent] = Field(default_factory=list)
    config: SessionConfig
    settings: SettingsOverrides = Field(default_factory=SettingsOverrides)
    now: Optional[datetime] = Field(
        default=None, description="Evaluation instant; defaults to the server clock."
    )
    include_responsiveness: bool = False


class SnapshotResponse(SessionCalculations):
    responsiveness: Optional[ResponsivenessAnalysis] = None


class SessionCreate(BaseModel):
    target_temperature: float = Field(..., ge=32, le=212)
    desired_serve_time: Optional[datetime] = None
    initial_oven_temperature: Optional[float] = Field(default=None, ge=100, le=550)
    meat_type: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=500)
    settings: SettingsOverrides = Field(default_factory=SettingsOverrides)


class SessionUpdate(BaseModel):
    """Partial edit of a session; fields left out of the request stay unchanged.

    Sending ``desired_serve_time: null`` clears the serve time. ``settings``
    is merged over the stored overrides.
    """

    target_temperature: Optional[float] = Field(default=None, ge=32, le=212)
    desired_serve_time: Optional[datetime] = None
    meat_type: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=500)
    settings: Optional[SettingsOverrides] = None


class SessionRecord(BaseModel):
    """Full persisted state of one cooking session."""

    session_id: str
    config: SessionConfig
    readings: List[Reading] = Field(default_factory=list)
    oven_events: List[OvenEvent] = Field(default_factory=list)
    settings: SettingsOverrides = Field(default_factory=SettingsOverrides)
    meat_type: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ReadingIn(BaseModel):
    temperature: float = Field(..., ge=32, le=212)
    timestamp: Optional[datetime] = None


class OvenEventIn(BaseModel):
    set_temperature: float = Field(..., ge=100, le=550)
    timestamp: Optional[datetime] = None


class OvenEventUpdate(BaseModel):
    set_temperature: Optional[float] = Field(default=None, ge=100, le=550)
    timestamp: Optional[datetime] = None


class OvenOffIn(BaseModel):
    timestamp: Optional[datetime] = None


class SessionReport(SessionCalculations):
    session_id: str
    calculated_at: datetime
