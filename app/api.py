"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.schemas import (
    OvenEventIn,
    OvenEventUpdate,
    OvenOffIn,
    ReadingIn,
    ResponsivenessAnalysis,
    SessionCreate,
    SessionRecord,
    SessionReport,
    SessionUpdate,
    SnapshotRequest,
    SnapshotResponse,
)
from services.session_service import SessionService, build_default_service

router = APIRouter()

_EXPORT_MEDIA_TYPES = {"json": "application/json", "csv": "text/csv"}


def get_service() -> SessionService:
    return build_default_service()


def _not_found(exc: KeyError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc.args[0]))


def _invalid(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _conflict(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


@router.post(
    "/calculate",
    response_model=SnapshotResponse,
    summary="Evaluate a snapshot of readings and oven events without storing it.",
)
async def calculate_snapshot(
    request: SnapshotRequest,
    service: SessionService = Depends(get_service),
) -> SnapshotResponse:
    try:
        return service.evaluate_snapshot(request)
    except ValueError as exc:
        raise _invalid(exc) from exc


@router.post(
    "/sessions",
    status_code=status.HTTP_201_CREATED,
    response_model=SessionRecord,
    summary="Start a new cooking session.",
)
async def create_session(
    payload: SessionCreate,
    service: SessionService = Depends(get_service),
) -> SessionRecord:
    try:
        return service.create_session(payload)
    except ValueError as exc:
        raise _invalid(exc) from exc


@router.get(
    "/sessions",
    response_model=List[SessionRecord],
    summary="List stored sessions, newest first.",
)
async def list_sessions(service: SessionService = Depends(get_service)) -> List[SessionRecord]:
    return service.list_sessions()


@router.get("/sessions/{session_id}", response_model=SessionRecord)
async def get_session(
    session_id: str,
    service: SessionService = Depends(get_service),
) -> SessionRecord:
    try:
        return service.fetch_session(session_id)
    except KeyError as exc:
        raise _not_found(exc) from exc


@router.patch(
    "/sessions/{session_id}",
    response_model=SessionRecord,
    summary="Edit the target, serve time, notes or setting overrides of a session.",
)
async def update_session(
    session_id: str,
    payload: SessionUpdate,
    service: SessionService = Depends(get_service),
) -> SessionRecord:
    try:
        return service.update_session(session_id, payload)
    except KeyError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _invalid(exc) from exc


@router.delete(
    "/sessions/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="End a session and discard its stored data.",
)
async def end_session(
    session_id: str,
    service: SessionService = Depends(get_service),
) -> Response:
    try:
        service.end_session(session_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/sessions/{session_id}/readings",
    status_code=status.HTTP_201_CREATED,
    response_model=SessionRecord,
    summary="Log an internal temperature reading.",
)
async def add_reading(
    session_id: str,
    payload: ReadingIn,
    service: SessionService = Depends(get_service),
) -> SessionRecord:
    try:
        return service.add_reading(session_id, payload.temperature, payload.timestamp)
    except KeyError as exc:
        raise _not_found(exc) from exc


@router.put("/sessions/{session_id}/readings/{reading_id}", response_model=SessionRecord)
async def update_reading(
    session_id: str,
    reading_id: str,
    payload: ReadingIn,
    service: SessionService = Depends(get_service),
) -> SessionRecord:
    try:
        return service.update_reading(
            session_id, reading_id, payload.temperature, payload.timestamp
        )
    except KeyError as exc:
        raise _not_found(exc) from exc


@router.delete("/sessions/{session_id}/readings/{reading_id}", response_model=SessionRecord)
async def delete_reading(
    session_id: str,
    reading_id: str,
    service: SessionService = Depends(get_service),
) -> SessionRecord:
    try:
        return service.delete_reading(session_id, reading_id)
    except KeyError as exc:
        raise _not_found(exc) from exc


@router.post(
    "/sessions/{session_id}/oven-events",
    status_code=status.HTTP_201_CREATED,
    response_model=SessionRecord,
    summary="Log a change to the oven set temperature.",
)
async def add_oven_event(
    session_id: str,
    payload: OvenEventIn,
    service: SessionService = Depends(get_service),
) -> SessionRecord:
    try:
        return service.set_oven_temperature(session_id, payload.set_temperature, payload.timestamp)
    except KeyError as exc:
        raise _not_found(exc) from exc


@router.post(
    "/sessions/{session_id}/oven-events/off",
    status_code=status.HTTP_201_CREATED,
    response_model=SessionRecord,
    summary="Record that the oven was switched off.",
)
async def turn_oven_off(
    session_id: str,
    payload: Optional[OvenOffIn] = None,
    service: SessionService = Depends(get_service),
) -> SessionRecord:
    timestamp = payload.timestamp if payload is not None else None
    try:
        return service.turn_oven_off(session_id, timestamp)
    except KeyError as exc:
        raise _not_found(exc) from exc


@router.put("/sessions/{session_id}/oven-events/{event_id}", response_model=SessionRecord)
async def update_oven_event(
    session_id: str,
    event_id: str,
    payload: OvenEventUpdate,
    service: SessionService = Depends(get_service),
) -> SessionRecord:
    try:
        return service.update_oven_event(
            session_id, event_id, payload.set_temperature, payload.timestamp
        )
    except KeyError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _conflict(exc) from exc


@router.delete("/sessions/{session_id}/oven-events/{event_id}", response_model=SessionRecord)
async def delete_oven_event(
    session_id: str,
    event_id: str,
    service: SessionService = Depends(get_service),
) -> SessionRecord:
    try:
        return service.delete_oven_event(session_id, event_id)
    except KeyError as exc:
        raise _not_found(exc) from exc


@router.get(
    "/sessions/{session_id}/calculations",
    response_model=SessionReport,
    summary="Current predictions and oven recommendation for a session.",
)
async def get_calculations(
    session_id: str,
    service: SessionService = Depends(get_service),
) -> SessionReport:
    try:
        return service.calculate(session_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _conflict(exc) from exc


@router.get(
    "/sessions/{session_id}/responsiveness",
    response_model=Optional[ResponsivenessAnalysis],
    summary="How the heating rate has responded to oven changes; null when unknown.",
)
async def get_responsiveness(
    session_id: str,
    service: SessionService = Depends(get_service),
) -> Optional[ResponsivenessAnalysis]:
    try:
        return service.responsiveness(session_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _conflict(exc) from exc


@router.post(
    "/sessions/{session_id}/recommendation/apply",
    response_model=SessionRecord,
    summary="Log the currently recommended oven setting.",
)
async def apply_recommendation(
    session_id: str,
    service: SessionService = Depends(get_service),
) -> SessionRecord:
    try:
        return service.apply_recommendation(session_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _conflict(exc) from exc


@router.get("/sessions/{session_id}/export", summary="Export a session as JSON or CSV.")
async def export_session(
    session_id: str,
    format: Literal["json", "csv"] = Query("json"),
    service: SessionService = Depends(get_service),
) -> Response:
    try:
        content = service.export(session_id, format)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return Response(content=content, media_type=_EXPORT_MEDIA_TYPES[format])


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
