# app/routers/charging.py
"""Charging sessions — start, stop, listing, and live progress."""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.database import get_db, get_session_factory
from app.routers.deps import Requester, get_requester
from app.schemas.charging_session import (
    ChargingProgressOut, ChargingSessionOut, ChargingSessionPage, ChargingStart, ChargingStop,
)
from app.services import charging_service
from app.services.stream_service import charging_progress_events
from app.services.vehicle_service import get_vehicle_owner
from app.utils.errors import Forbidden

router = APIRouter()

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


@router.post("/charging/sessions", response_model=ChargingSessionOut, status_code=201)
def start_charging(body: ChargingStart, db: Session = Depends(get_db)):
    return charging_service.start_charging(
        db, body.vehicle_id, body.slot_id, body.initial_percent,
        target_percent=body.target_percent,
        charge_rate_percent_per_minute=body.charge_rate_percent_per_minute,
    )


@router.get("/charging/sessions", response_model=ChargingSessionPage, summary="List my charging sessions")
def list_my_sessions(
    status: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
    requester: Requester = Depends(get_requester),
):
    if requester.user_id is None:
        raise Forbidden("User not authenticated")
    return charging_service.list_my_charging_sessions(db, requester.user_id, status=status, page=page, limit=limit)


@router.get("/charging/vehicles/{vehicle_id}/sessions", response_model=ChargingSessionPage,
            summary="List charging sessions of a vehicle")
def list_vehicle_sessions(
    vehicle_id: int,
    status: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
    requester: Requester = Depends(get_requester),
):
    if not requester.is_admin_or_staff and get_vehicle_owner(db, vehicle_id) != requester.user_id:
        raise Forbidden("Not allowed to list sessions of this vehicle")
    return charging_service.list_charging_sessions_by_vehicle(db, vehicle_id, status=status, page=page, limit=limit)


@router.post("/charging/sessions/{session_id}/stop", response_model=ChargingSessionOut)
def stop_charging(session_id: int, body: ChargingStop, db: Session = Depends(get_db)):
    return charging_service.stop_charging(db, session_id, status=body.status)


@router.get("/charging/sessions/{session_id}/progress", response_model=ChargingProgressOut)
def charging_progress(session_id: int, db: Session = Depends(get_db)):
    return charging_service.get_charging_progress(db, session_id)


@router.get("/charging/sessions/{session_id}/stream", summary="Stream charging progress (SSE)")
def stream_charging_progress(session_id: int, session_factory=Depends(get_session_factory)):
    """text/event-stream of progress frames, ending when the session is finished."""
    db = session_factory()
    try:
        initial = charging_service.get_charging_progress(db, session_id)
    finally:
        db.close()
    return StreamingResponse(
        charging_progress_events(session_factory, session_id, initial),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
