# app/routers/reservations.py
"""Reservations — booking, listing, cancel/complete, and staff QR check-in."""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.database import get_db, get_session_factory
from app.routers.deps import Requester, get_requester
from app.schemas.reservation import (
    CheckInOut, QRCheckIn, ReservationCreate, ReservationOut, ReservationPage,
)
from app.services import reservation_service
from app.services.stream_service import reservation_events
from app.services.vehicle_service import get_vehicle_owner
from app.utils.checkin_token import parse_qr_data
from app.utils.errors import Forbidden, InvalidInput

router = APIRouter()


def _require_user(requester: Requester):
    if requester.user_id is None and not requester.is_admin_or_staff:
        raise Forbidden("User not authenticated")


@router.post("/reservations", response_model=ReservationOut, status_code=201, summary="Book slot/time ranges")
def create_reservation(body: ReservationCreate, db: Session = Depends(get_db),
                       requester: Requester = Depends(get_requester)):
    """All items commit together or not at all. Overlaps with active reservations → 409."""
    _require_user(requester)
    if not requester.is_admin_or_staff:
        if get_vehicle_owner(db, body.vehicle_id) != requester.user_id:
            raise Forbidden("Not allowed to book for this vehicle")
    items = [i.model_dump() for i in body.items]
    return reservation_service.create_reservation(db, body.vehicle_id, items, status=body.status or "pending")


@router.get("/reservations", response_model=ReservationPage, summary="List my reservations")
def list_reservations(
    vehicle_id: Optional[int] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
    requester: Requester = Depends(get_requester),
):
    """Filter by vehicle, otherwise every vehicle owned by the requester."""
    _require_user(requester)
    if vehicle_id is not None:
        if not requester.is_admin_or_staff and get_vehicle_owner(db, vehicle_id) != requester.user_id:
            raise Forbidden("Not allowed to list reservations of this vehicle")
        return reservation_service.list_reservations(db, vehicle_id=vehicle_id, status=status, page=page, limit=limit)
    return reservation_service.list_reservations(db, owner_user_id=requester.user_id, status=status,
                                                 page=page, limit=limit)


@router.get("/reservations/{reservation_id}", response_model=ReservationOut)
def get_reservation(reservation_id: int, db: Session = Depends(get_db),
                    requester: Requester = Depends(get_requester)):
    _require_user(requester)
    reservation = reservation_service.get_reservation_by_id(db, reservation_id)
    if not requester.is_admin_or_staff and reservation.vehicle.owner_id != requester.user_id:
        raise Forbidden("Not allowed to access this reservation")
    return reservation


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationOut)
def cancel_reservation(reservation_id: int, db: Session = Depends(get_db),
                       requester: Requester = Depends(get_requester)):
    _require_user(requester)
    return reservation_service.cancel_reservation(db, reservation_id, requester.user_id,
                                                  requester.is_admin_or_staff)


@router.post("/reservations/{reservation_id}/complete", response_model=ReservationOut)
def complete_reservation(reservation_id: int, db: Session = Depends(get_db),
                         requester: Requester = Depends(get_requester)):
    _require_user(requester)
    return reservation_service.complete_reservation(db, reservation_id, requester.user_id,
                                                    requester.is_admin_or_staff)


@router.post("/reservations/qr-check", response_model=CheckInOut, summary="Staff check-in by QR scan")
def qr_check(body: QRCheckIn, db: Session = Depends(get_db),
             requester: Requester = Depends(get_requester)):
    """A re-scan of an already used code returns outcome=already_used with HTTP 200."""
    reservation_id, token = body.reservation_id, body.hash
    if body.qr:
        try:
            reservation_id, token = parse_qr_data(body.qr)
        except ValueError:
            raise InvalidInput("QR payload is malformed")
    if reservation_id is None or not token:
        raise InvalidInput("reservationId and hash are required")
    return reservation_service.qr_check_in(db, reservation_id, token,
                                           requester_user_id=requester.user_id,
                                           requester_role=requester.role)


@router.get("/reservations/{reservation_id}/stream", summary="Stream reservation state (SSE)")
def stream_reservation(reservation_id: int, requester: Requester = Depends(get_requester),
                       session_factory=Depends(get_session_factory)):
    """
    Events: reservation_info (full snapshot with item durations), status_update
    (status / qr_check changes) and stream_end once completed or cancelled.
    """
    _require_user(requester)
    db = session_factory()
    try:
        initial = reservation_service.get_reservation_info(
            db, reservation_id, requester.user_id, requester.is_admin_or_staff
        )
    finally:
        db.close()
    return StreamingResponse(
        reservation_events(session_factory, reservation_id, initial,
                           requester_user_id=requester.user_id,
                           is_admin_or_staff=requester.is_admin_or_staff),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
