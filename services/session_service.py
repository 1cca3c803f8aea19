"""Coordinates the session store, the calculation engine and exports."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable, Dict, Optional

from app.schemas import (
    ResponsivenessAnalysis,
    SessionCreate,
    SessionRecord,
    SessionReport,
    SessionUpdate,
    SnapshotRequest,
    SnapshotResponse,
)
from datastore.session_store import SessionStore, build_default_store
from models.records import (
    SessionConfig,
    new_oven_event,
    new_reading,
    recompute_reading_deltas,
    relink_oven_events,
)
from services.calculator import compute_session_calculations
from services.export import export_to_csv, export_to_json
from services.recommendation import RecommendationAction
from services.responsiveness import analyze_oven_responsiveness
from settings import EngineSettings, get_settings

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_schema(analysis) -> Optional[ResponsivenessAnalysis]:
    if analysis is None:
        return None
    return ResponsivenessAnalysis.model_validate(analysis, from_attributes=True)


class SessionService:
    """Snapshots stored sessions and evaluates them from scratch on every call."""

    def __init__(
        self,
        store: SessionStore,
        engine_defaults: Optional[EngineSettings] = None,
        clock: Clock = _utc_now,
    ) -> None:
        self.store = store
        self.engine_defaults = engine_defaults or EngineSettings()
        self.clock = clock

    def create_session(self, payload: SessionCreate) -> SessionRecord:
        payload.settings.apply(self.engine_defaults)
        record = self.store.create_session(
            SessionConfig(
                target_temperature=payload.target_temperature,
                desired_serve_time=payload.desired_serve_time,
            ),
            settings=payload.settings,
            meat_type=payload.meat_type,
            notes=payload.notes,
            created_at=self.clock(),
        )
        if payload.initial_oven_temperature is not None:
            record = self.store.add_oven_event(
                record.session_id,
                new_oven_event(payload.initial_oven_temperature, timestamp=record.created_at),
            )
        return record

    def fetch_session(self, session_id: str) -> SessionRecord:
        record = self.store.get_session(session_id)
        if record is None:
            raise KeyError(f"Session {session_id!r} not found.")
        return record

    def list_sessions(self) -> list[SessionRecord]:
        return sorted(self.store.scan(), key=lambda record: record.created_at, reverse=True)

    def update_session(self, session_id: str, payload: SessionUpdate) -> SessionRecord:
        """Edit the target, serve time, notes or setting overrides of a session.

        Overrides are merged over the stored ones and must still combine with
        the engine defaults, otherwise ``ValueError`` is raised and nothing is
        stored.
        """
        record = self.fetch_session(session_id)
        provided = payload.model_fields_set
        changes: Dict[str, object] = {}

        config = record.config
        if payload.target_temperature is not None:
            config = replace(config, target_temperature=payload.target_temperature)
        if "desired_serve_time" in provided:
            config = replace(config, desired_serve_time=payload.desired_serve_time)
        if config != record.config:
            changes["config"] = config
        for name in ("meat_type", "notes"):
            if name in provided:
                changes[name] = getattr(payload, name)
        if payload.settings is not None:
            merged = record.settings.merge(payload.settings)
            merged.apply(self.engine_defaults)
            changes["settings"] = merged

        if not changes:
            return record
        logger.info("Session updated", extra={"session_id": session_id})
        return self.store.update_session(session_id, **changes)

    def end_session(self, session_id: str) -> None:
        self.store.delete_session(session_id)
        logger.info("Session ended", extra={"session_id": session_id})

    def add_reading(
        self, session_id: str, temperature: float, timestamp: Optional[datetime] = None
    ) -> SessionRecord:
        reading = new_reading(temperature, timestamp=timestamp or self.clock())
        record = self.store.add_reading(session_id, reading)
        logger.info(
            "Reading logged",
            extra={"session_id": session_id, "reading_count": len(record.readings)},
        )
        return record

    def update_reading(
        self,
        session_id: str,
        reading_id: str,
        temperature: Optional[float] = None,
        timestamp: Optional[datetime] = None,
    ) -> SessionRecord:
        return self.store.update_reading(session_id, reading_id, temperature, timestamp)

    def delete_reading(self, session_id: str, reading_id: str) -> SessionRecord:
        return self.store.delete_reading(session_id, reading_id)

    def set_oven_temperature(
        self, session_id: str, set_temperature: float, timestamp: Optional[datetime] = None
    ) -> SessionRecord:
        event = new_oven_event(set_temperature, timestamp=timestamp or self.clock())
        record = self.store.add_oven_event(session_id, event)
        logger.info(
            "Oven setting logged",
            extra={"session_id": session_id, "event_count": len(record.oven_events)},
        )
        return record

    def turn_oven_off(self, session_id: str, timestamp: Optional[datetime] = None) -> SessionRecord:
        event = new_oven_event(0.0, timestamp=timestamp or self.clock(), is_off=True)
        return self.store.add_oven_event(session_id, event)

    def update_oven_event(
        self,
        session_id: str,
        event_id: str,
        set_temperature: Optional[float] = None,
        timestamp: Optional[datetime] = None,
    ) -> SessionRecord:
        return self.store.update_oven_event(session_id, event_id, set_temperature, timestamp)

    def delete_oven_event(self, session_id: str, event_id: str) -> SessionRecord:
        return self.store.delete_oven_event(session_id, event_id)

    def engine_settings(self, record: SessionRecord) -> EngineSettings:
        return record.settings.apply(self.engine_defaults)

    def calculate(self, session_id: str, now: Optional[datetime] = None) -> SessionReport:
        record = self.fetch_session(session_id)
        instant = now or self.clock()
        result = compute_session_calculations(
            readings=record.readings,
            oven_events=record.oven_events,
            config=record.config,
            settings=self.engine_settings(record),
            now=instant,
        )
        return SessionReport(
            session_id=session_id,
            calculated_at=instant,
            calculation=result.calculation,
            recommendation=result.recommendation,
        )

    def responsiveness(
        self, session_id: str, now: Optional[datetime] = None
    ) -> Optional[ResponsivenessAnalysis]:
        record = self.fetch_session(session_id)
        settings = self.engine_settings(record)
        analysis = analyze_oven_responsiveness(
            record.readings,
            record.oven_events,
            now or self.clock(),
            settings.thermal_lag_minutes,
        )
        return _to_schema(analysis)

    def evaluate_snapshot(self, request: SnapshotRequest) -> SnapshotResponse:
        settings = request.settings.apply(self.engine_defaults)
        instant = request.now or self.clock()
        readings = recompute_reading_deltas(request.readings)
        oven_events = relink_oven_events(request.oven_events)
        result = compute_session_calculations(
            readings=readings,
            oven_events=oven_events,
            config=request.config,
            settings=settings,
            now=instant,
        )
        responsiveness = None
        if request.include_responsiveness:
            responsiveness = _to_schema(
                analyze_oven_responsiveness(
                    readings,
                    oven_events,
                    instant,
                    settings.thermal_lag_minutes,
                )
            )
        return SnapshotResponse(
            calculation=result.calculation,
            recommendation=result.recommendation,
            responsiveness=responsiveness,
        )

    def apply_recommendation(self, session_id: str) -> SessionRecord:
        """Log the currently suggested oven setting as a new oven event."""
        report = self.calculate(session_id)
        recommendation = report.recommendation
        actionable = {RecommendationAction.RAISE, RecommendationAction.LOWER}
        if recommendation.action not in actionable or recommendation.suggested_temperature is None:
            raise ValueError(
                f"No oven change to apply (action={recommendation.action.value})."
            )
        logger.info(
            "Applying recommendation",
            extra={"session_id": session_id, "action": recommendation.action.value},
        )
        return self.set_oven_temperature(session_id, recommendation.suggested_temperature)

    def export(self, session_id: str, fmt: str = "json") -> str:
        record = self.fetch_session(session_id)
        if fmt == "json":
            return export_to_json(record, self.clock())
        if fmt == "csv":
            return export_to_csv(record)
        raise ValueError(f"Unsupported export format {fmt!r}.")


@lru_cache
def build_default_service() -> SessionService:
    """Factory that wires the service with the default store and settings."""
    settings = get_settings()
    return SessionService(store=build_default_store(), engine_defaults=settings.engine)
