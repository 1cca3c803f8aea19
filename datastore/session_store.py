from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from app.schemas import SessionRecord, SettingsOverrides
from models.records import (
    OvenEvent,
    Reading,
    SessionConfig,
    recompute_reading_deltas,
    relink_oven_events,
)
from settings import get_settings

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = frozenset({"config", "settings", "meat_type", "notes"})


class SessionStore:
    """Ordered readings and oven events per session, persisted as JSON.

    Every mutation re-sorts the affected collection and rebuilds its derived
    fields before the record is stored. Callers always receive deep copies.
    """

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._items: Dict[str, SessionRecord] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def create_session(
        self,
        config: SessionConfig,
        settings: Optional[SettingsOverrides] = None,
        meat_type: Optional[str] = None,
        notes: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> SessionRecord:
        timestamp = created_at or datetime.now(timezone.utc)
        record = SessionRecord(
            session_id=str(uuid4()),
            config=config,
            settings=settings or SettingsOverrides(),
            meat_type=meat_type,
            notes=notes,
            created_at=timestamp,
            updated_at=timestamp,
        )
        with self._lock:
            self._items[record.session_id] = record
            self._persist()
        logger.info("Session created", extra={"session_id": record.session_id})
        return record.model_copy(deep=True)

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        with self._lock:
            item = self._items.get(session_id)
            if item is None:
                return None
            return item.model_copy(deep=True)

    def scan(self) -> list[SessionRecord]:
        """Return deep copies of all stored sessions."""

        with self._lock:
            return [item.model_copy(deep=True) for item in self._items.values()]

    def delete_session(self, session_id: str) -> None:
        with self._lock:
            if self._items.pop(session_id, None) is None:
                raise KeyError(f"Session {session_id!r} not found.")
            self._persist()

    def update_session(self, session_id: str, **changes: object) -> SessionRecord:
        """Replace top-level session fields such as ``config`` or ``settings``."""

        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        def mutate(record: SessionRecord) -> SessionRecord:
            return record.model_copy(update=changes)

        return self._update(session_id, mutate)

    def add_reading(self, session_id: str, reading: Reading) -> SessionRecord:
        def mutate(record: SessionRecord) -> SessionRecord:
            readings = recompute_reading_deltas([*record.readings, reading])
            return record.model_copy(update={"readings": readings})

        return self._update(session_id, mutate)

    def update_reading(
        self,
        session_id: str,
        reading_id: str,
        temperature: Optional[float] = None,
        timestamp: Optional[datetime] = None,
    ) -> SessionRecord:
        def mutate(record: SessionRecord) -> SessionRecord:
            readings = _replace_item(
                record.readings,
                reading_id,
                lambda item: replace(
                    item,
                    temperature=item.temperature if temperature is None else temperature,
                    timestamp=item.timestamp if timestamp is None else timestamp,
                ),
            )
            return record.model_copy(update={"readings": recompute_reading_deltas(readings)})

        return self._update(session_id, mutate)

    def delete_reading(self, session_id: str, reading_id: str) -> SessionRecord:
        def mutate(record: SessionRecord) -> SessionRecord:
            readings = _remove_item(record.readings, reading_id)
            return record.model_copy(update={"readings": recompute_reading_deltas(readings)})

        return self._update(session_id, mutate)

    def add_oven_event(self, session_id: str, event: OvenEvent) -> SessionRecord:
        def mutate(record: SessionRecord) -> SessionRecord:
            events = relink_oven_events([*record.oven_events, event])
            return record.model_copy(update={"oven_events": events})

        return self._update(session_id, mutate)

    def update_oven_event(
        self,
        session_id: str,
        event_id: str,
        set_temperature: Optional[float] = None,
        timestamp: Optional[datetime] = None,
    ) -> SessionRecord:
        def change(item: OvenEvent) -> OvenEvent:
            if item.is_off and set_temperature is not None:
                raise ValueError("Oven-off events have no set temperature.")
            return replace(
                item,
                set_temperature=item.set_temperature if set_temperature is None else set_temperature,
                timestamp=item.timestamp if timestamp is None else timestamp,
            )

        def mutate(record: SessionRecord) -> SessionRecord:
            events = _replace_item(record.oven_events, event_id, change)
            return record.model_copy(update={"oven_events": relink_oven_events(events)})

        return self._update(session_id, mutate)

    def delete_oven_event(self, session_id: str, event_id: str) -> SessionRecord:
        def mutate(record: SessionRecord) -> SessionRecord:
            events = _remove_item(record.oven_events, event_id)
            return record.model_copy(update={"oven_events": relink_oven_events(events)})

        return self._update(session_id, mutate)

    def _update(
        self, session_id: str, mutate: Callable[[SessionRecord], SessionRecord]
    ) -> SessionRecord:
        with self._lock:
            current = self._items.get(session_id)
            if current is None:
                raise KeyError(f"Session {session_id!r} not found.")
            updated = mutate(current.model_copy(deep=True))
            updated = updated.model_copy(update={"updated_at": datetime.now(timezone.utc)})
            self._items[session_id] = updated
            self._persist()
            return updated.model_copy(deep=True)

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            session_id: item.model_dump(mode="json") for session_id, item in self._items.items()
        }
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable session store at %s", self.persistence_path)
            data = {}

        for session_id, payload in data.items():
            self._items[session_id] = SessionRecord.model_validate(payload)


def _replace_item(items: List, item_id: str, change: Callable) -> List:
    found = False
    result = []
    for item in items:
        if item.id == item_id:
            result.append(change(item))
            found = True
        else:
            result.append(item)
    if not found:
        raise KeyError(f"Item {item_id!r} not found.")
    return result


def _remove_item(items: List, item_id: str) -> List:
    remaining = [item for item in items if item.id != item_id]
    if len(remaining) == len(items):
        raise KeyError(f"Item {item_id!r} not found.")
    return remaining


@lru_cache
def build_default_store(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> SessionStore:
    settings = get_settings()
    store_name = settings.store_name if name is None else name
    store_path = settings.store_persistence_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return SessionStore(name=store_name, persistence_path=persistence)
