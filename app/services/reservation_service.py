# app/services/reservation_service.py
"""
Reservation Engine — booking, overlap detection, lifecycle and QR check-in.

States:  pending → confirmed → completed
         pending/confirmed → cancelled
completed and cancelled are terminal; qr_check only ever goes False → True.

Correctness hinges on create_reservation: the slot rows are locked, the
overlap query runs, and the insert happens, all inside one transaction.
Two overlapping bookings of the same slot can never both commit.
"""

from dataclasses import dataclass
from datetime import datetime
from math import ceil
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from app.config import settings
from app.database import atomic
from app.models.charging_slot import ChargingSlot
from app.models.reservation import (
    Reservation, ReservationItem, ACTIVE_STATUSES, RESERVATION_STATUSES,
)
from app.services.slot_service import lock_slots, mark_slots_booked, release_slots
from app.services.vehicle_service import get_vehicle, list_vehicle_ids_for_owner
from app.utils.checkin_token import generate_qr_data, generate_qr_image, verify_reservation_hash
from app.utils.errors import Conflict, Forbidden, InvalidInput, NotFound
from app.utils.validation import clamp_page, ensure_valid_id, intervals_overlap, parse_instant
from app.utils.logger import get_logger

logger = get_logger(__name__)

CREATE_STATUSES = ("pending", "confirmed")
CHECK_IN_ROLES = ("admin", "staff")


@dataclass
class BookItem:
    slot_id: int
    start_at: datetime
    end_at: datetime


@dataclass
class CheckInResult:
    outcome: str                 # checked_in | already_used
    reservation_id: int
    status: str
    qr_check: bool
    checked_at: Optional[datetime] = None
    checked_by: Optional[dict] = None


def normalize_items(items) -> list:
    """
    Validate the shape of every item and reject overlaps inside the batch.
    Raises InvalidInput naming the first offending item.
    """
    if not isinstance(items, list) or not items:
        raise InvalidInput("items must contain at least one slot/time range")

    normalized = []
    by_slot = {}
    for idx, it in enumerate(items):
        if not isinstance(it, dict):
            raise InvalidInput(f"items[{idx}] must be an object")
        try:
            slot_id = ensure_valid_id(it.get("slot_id"), f"items[{idx}].slotId")
        except InvalidInput:
            raise InvalidInput(f"items[{idx}].slotId is invalid")
        start_at = parse_instant(it.get("start_at"), f"items[{idx}].startAt")
        end_at = parse_instant(it.get("end_at"), f"items[{idx}].endAt")
        if start_at >= end_at:
            raise InvalidInput(f"items[{idx}]: startAt must be earlier than endAt")

        item = BookItem(slot_id=slot_id, start_at=start_at, end_at=end_at)
        for existing in by_slot.get(slot_id, []):
            if intervals_overlap(item.start_at, item.end_at, existing.start_at, existing.end_at):
                raise InvalidInput(f"items[{idx}] overlaps another item for the same slot")
        by_slot.setdefault(slot_id, []).append(item)
        normalized.append(item)
    return normalized


def find_overlapping_reservation(db: Session, slot_id: int, start_at: datetime, end_at: datetime) -> Optional[int]:
    """Id of an active reservation holding `slot_id` somewhere in [start_at, end_at), else None."""
    row = (
        db.query(ReservationItem.reservation_id)
        .join(Reservation, ReservationItem.reservation_id == Reservation.id)
        .filter(
            Reservation.status.in_(ACTIVE_STATUSES),
            ReservationItem.slot_id == slot_id,
            ReservationItem.start_at < end_at,
            ReservationItem.end_at > start_at,
        )
        .first()
    )
    return row[0] if row else None


def create_reservation(db: Session, vehicle_id, items, status: str = "pending") -> Reservation:
    """
    Book one or more slot/time ranges for a vehicle as a single unit.
    The caller has already authorized the requester against this vehicle.
    """
    vid = ensure_valid_id(vehicle_id, "vehicleId")
    if status not in CREATE_STATUSES:
        raise InvalidInput(f"status must be one of {', '.join(CREATE_STATUSES)}")
    normalized = normalize_items(items)
    slot_ids = sorted({i.slot_id for i in normalized})

    with atomic(db):
        get_vehicle(db, vid)

        found = db.query(func.count(ChargingSlot.id)).filter(ChargingSlot.id.in_(slot_ids)).scalar()
        if found != len(slot_ids):
            raise NotFound("One or more slotIds do not exist")

        locked = lock_slots(db, slot_ids)
        if len(locked) != len(slot_ids):
            raise NotFound("One or more slotIds do not exist")
        inactive = [s.id for s in locked if s.status == "inactive"]
        if inactive:
            raise Conflict(f"Slots {inactive} are inactive and cannot be booked")

        for it in normalized:
            holder = find_overlapping_reservation(db, it.slot_id, it.start_at, it.end_at)
            if holder is not None:
                logger.warning(
                    f"[RESERVATION] Overlap on slot {it.slot_id} "
                    f"[{it.start_at.isoformat()}, {it.end_at.isoformat()}) held by reservation {holder}"
                )
                raise Conflict(f"Time range overlaps an existing reservation for slot {it.slot_id}")

        reservation = Reservation(
            vehicle_id=vid,
            status=status,
            qr_check=False,
            items=[
                ReservationItem(position=pos, slot_id=it.slot_id, start_at=it.start_at, end_at=it.end_at)
                for pos, it in enumerate(normalized)
            ],
        )
        db.add(reservation)
        db.flush()
        reservation.qr = generate_qr_data(reservation.id)
        reservation.qr_image = generate_qr_image(reservation.qr)
        mark_slots_booked(db, slot_ids)

    db.refresh(reservation)
    logger.info(
        f"[RESERVATION] Created {reservation.id} for vehicle {vid}: "
        f"{len(normalized)} items on slots {slot_ids} (status={status})"
    )
    return reservation


def list_reservations(db: Session, vehicle_id=None, owner_user_id=None, status: Optional[str] = None,
                      page=1, limit=None) -> dict:
    if status is not None and status not in RESERVATION_STATUSES:
        raise InvalidInput("status invalid")
    safe_page, safe_limit, offset = clamp_page(
        page, limit, max_limit=settings.MAX_PAGE_LIMIT, default_limit=settings.DEFAULT_PAGE_LIMIT
    )

    q = db.query(Reservation)
    if vehicle_id is not None:
        q = q.filter(Reservation.vehicle_id == ensure_valid_id(vehicle_id, "vehicleId"))
    elif owner_user_id is not None:
        owner = ensure_valid_id(owner_user_id, "ownerUserId")
        q = q.filter(Reservation.vehicle_id.in_(list_vehicle_ids_for_owner(db, owner)))
    else:
        raise InvalidInput("Either vehicleId or ownerUserId is required")
    if status:
        q = q.filter(Reservation.status == status)

    total = q.count()
    docs = (
        q.options(selectinload(Reservation.items))
        .order_by(Reservation.created_at.desc(), Reservation.id.desc())
        .offset(offset)
        .limit(safe_limit)
        .all()
    )
    return {
        "items": docs,
        "pagination": {
            "page": safe_page,
            "limit": safe_limit,
            "total": total,
            "pages": ceil(total / safe_limit),
        },
    }


def get_reservation_by_id(db: Session, reservation_id) -> Reservation:
    rid = ensure_valid_id(reservation_id, "id")
    reservation = db.get(Reservation, rid)
    if not reservation:
        raise NotFound("Reservation not found")
    return reservation


def _assert_can_access(reservation: Reservation, requester_user_id, is_admin_or_staff: bool):
    if is_admin_or_staff:
        return
    vehicle = reservation.vehicle
    if vehicle is None or requester_user_id is None or str(vehicle.owner_id) != str(requester_user_id):
        raise Forbidden("Forbidden")


def get_reservation_info(db: Session, reservation_id, requester_user_id=None,
                         is_admin_or_staff: bool = False) -> dict:
    """
    Reservation snapshot for live views: status, qr_check, vehicle, every item
    with its slot/port and duration, and the total booked duration.
    """
    reservation = get_reservation_by_id(db, reservation_id)
    _assert_can_access(reservation, requester_user_id, is_admin_or_staff)

    slots = {}
    if reservation.slot_ids:
        slots = {s.id: s for s in db.query(ChargingSlot).filter(ChargingSlot.id.in_(reservation.slot_ids)).all()}

    items = []
    total_minutes = 0.0
    for it in reservation.items:
        minutes = (it.end_at - it.start_at).total_seconds() / 60
        total_minutes += minutes
        slot = slots.get(it.slot_id)
        port = slot.port if slot else None
        items.append({
            "slot_id": it.slot_id,
            "slot_order": slot.order if slot else None,
            "port": {
                "id": port.id,
                "station_id": port.station_id,
                "type": port.type,
                "power_kw": port.power_kw,
                "speed": port.speed,
                "price": port.price,
            } if port else None,
            "start_at": it.start_at,
            "end_at": it.end_at,
            "duration_minutes": round(minutes, 2),
        })

    vehicle = reservation.vehicle
    return {
        "id": reservation.id,
        "status": reservation.status,
        "qr_check": reservation.qr_check,
        "vehicle": {
            "id": vehicle.id,
            "owner_id": vehicle.owner_id,
            "plate_number": vehicle.plate_number,
        },
        "items": items,
        "total_duration_minutes": round(total_minutes, 2),
        "total_duration_hours": round(total_minutes / 60, 2),
        "created_at": reservation.created_at,
    }


def _load_for_transition(db: Session, reservation_id, requester_user_id, is_admin_or_staff: bool) -> Reservation:
    rid = ensure_valid_id(reservation_id, "id")
    reservation = db.query(Reservation).filter(Reservation.id == rid).with_for_update().first()
    if not reservation:
        raise NotFound("Reservation not found")
    _assert_can_access(reservation, requester_user_id, is_admin_or_staff)
    return reservation


def cancel_reservation(db: Session, reservation_id, requester_user_id=None,
                       is_admin_or_staff: bool = False) -> Reservation:
    """pending/confirmed → cancelled, releasing the slots in the same transaction."""
    with atomic(db):
        reservation = _load_for_transition(db, reservation_id, requester_user_id, is_admin_or_staff)
        if reservation.status not in ACTIVE_STATUSES:
            raise InvalidInput(f"Cannot cancel a {reservation.status} reservation")
        reservation.status = "cancelled"
        released = release_slots(db, reservation.slot_ids)

    db.refresh(reservation)
    logger.info(f"[RESERVATION] Cancelled {reservation.id}; released slots {sorted(released)}")
    return reservation


def complete_reservation(db: Session, reservation_id, requester_user_id=None,
                         is_admin_or_staff: bool = False) -> Reservation:
    """pending/confirmed → completed, releasing the slots in the same transaction."""
    with atomic(db):
        reservation = _load_for_transition(db, reservation_id, requester_user_id, is_admin_or_staff)
        if reservation.status == "cancelled":
            raise InvalidInput("Cannot complete a cancelled reservation")
        if reservation.status == "completed":
            raise InvalidInput("Reservation is already completed")
        reservation.status = "completed"
        released = release_slots(db, reservation.slot_ids)

    db.refresh(reservation)
    logger.info(f"[RESERVATION] Completed {reservation.id}; released slots {sorted(released)}")
    return reservation


def qr_check_in(db: Session, reservation_id, token: str, requester_user_id=None,
                requester_role: Optional[str] = None) -> CheckInResult:
    """
    Staff scan of a reservation QR code. A valid first scan of a pending
    reservation confirms it and latches qr_check. Re-scans report
    "already_used" without touching state.
    """
    if requester_role not in CHECK_IN_ROLES:
        raise Forbidden("Only staff and admin can check in reservations")
    rid = ensure_valid_id(reservation_id, "reservationId")

    with atomic(db):
        reservation = db.query(Reservation).filter(Reservation.id == rid).with_for_update().first()
        if not reservation:
            raise NotFound("Reservation not found")
        if not verify_reservation_hash(reservation.id, token):
            logger.warning(f"[RESERVATION] Rejected QR token for reservation {rid}")
            raise InvalidInput("Invalid QR code")

        if reservation.qr_check:
            return CheckInResult(
                outcome="already_used",
                reservation_id=reservation.id,
                status=reservation.status,
                qr_check=True,
                checked_at=reservation.checked_in_at,
                checked_by={"user_id": reservation.checked_in_by, "role": reservation.checked_in_role},
            )
        if reservation.status != "pending":
            raise InvalidInput(f"Reservation is {reservation.status}; only pending reservations can be checked in")

        now = datetime.utcnow()
        checked_by = ensure_valid_id(requester_user_id, "requesterUserId") if requester_user_id is not None else None
        reservation.status = "confirmed"
        reservation.qr_check = True
        reservation.checked_in_at = now
        reservation.checked_in_by = checked_by
        reservation.checked_in_role = requester_role

    logger.info(f"[RESERVATION] Checked in {rid} by {requester_role} {checked_by}")
    return CheckInResult(
        outcome="checked_in",
        reservation_id=rid,
        status="confirmed",
        qr_check=True,
        checked_at=now,
        checked_by={"user_id": checked_by, "role": requester_role},
    )
