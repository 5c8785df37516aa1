# app/services/slot_service.py
"""
Slot Store — CRUD for charging slots plus the read-side display status.

Stored status is a cache. Reads recompute a display status from active
(pending/confirmed) reservations and never write it back. Every write path
clears next_available_at when the resulting status is available/inactive.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.charging_port import ChargingPort
from app.models.charging_slot import ChargingSlot, SLOT_STATUSES, CLEARED_STATUSES
from app.models.reservation import Reservation, ReservationItem, ACTIVE_STATUSES
from app.database import atomic
from app.utils.errors import Conflict, InvalidInput, NotFound
from app.utils.validation import ensure_valid_id, is_positive_int, parse_optional_instant
from app.utils.logger import get_logger

logger = get_logger(__name__)

SLOT_PATCH_FIELDS = ("order", "status", "next_available_at")


@dataclass
class SlotView:
    """A slot as presented to callers: `status` is the derived display status."""
    id: int
    port_id: int
    order: int
    status: str
    stored_status: str
    next_available_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


def _to_view(slot: ChargingSlot, reserved_ids: set) -> SlotView:
    display = slot.status
    if slot.status != "inactive":
        display = "in_use" if slot.id in reserved_ids else "available"
    return SlotView(
        id=slot.id,
        port_id=slot.port_id,
        order=slot.order,
        status=display,
        stored_status=slot.status,
        next_available_at=slot.next_available_at,
        created_at=slot.created_at,
        updated_at=slot.updated_at,
    )


def _get_port_or_404(db: Session, port_id: int) -> ChargingPort:
    port = db.get(ChargingPort, port_id)
    if not port:
        raise NotFound("Port not found")
    return port


def _get_slot_or_404(db: Session, slot_id: int) -> ChargingSlot:
    slot = db.get(ChargingSlot, slot_id)
    if not slot:
        raise NotFound("Slot not found")
    return slot


def _validate_slot_payload(payload: dict, path: str = "slot"):
    status = payload.get("status")
    if status is not None and status not in SLOT_STATUSES:
        raise InvalidInput(f"{path}.status invalid")
    order = payload.get("order")
    if order is not None and not is_positive_int(order):
        raise InvalidInput(f"{path}.order must be a positive integer")


def _order_taken(db: Session, port_id: int, order: int, exclude_slot_id: Optional[int] = None) -> bool:
    q = db.query(ChargingSlot.id).filter(ChargingSlot.port_id == port_id, ChargingSlot.order == order)
    if exclude_slot_id is not None:
        q = q.filter(ChargingSlot.id != exclude_slot_id)
    return q.first() is not None


def next_order(db: Session, port_id: int) -> int:
    """max(order) + 1 within the port, computed per call."""
    current = db.query(func.max(ChargingSlot.order)).filter(ChargingSlot.port_id == port_id).scalar()
    return (current or 0) + 1


def find_reserved_slot_ids(db: Session, slot_ids: Iterable[int], at: Optional[datetime] = None) -> set:
    """
    Ids among `slot_ids` referenced by any pending/confirmed reservation.
    With `at`, only reservations whose item window covers that instant count.
    """
    ids = list(set(slot_ids))
    if not ids:
        return set()
    q = (
        db.query(ReservationItem.slot_id)
        .join(Reservation, ReservationItem.reservation_id == Reservation.id)
        .filter(
            Reservation.status.in_(ACTIVE_STATUSES),
            ReservationItem.slot_id.in_(ids),
        )
    )
    if at is not None:
        q = q.filter(ReservationItem.start_at <= at, ReservationItem.end_at > at)
    return {row[0] for row in q.distinct().all()}


def find_active_holders(db: Session, slot_id: int, at: datetime) -> set:
    """Vehicle ids whose pending/confirmed reservation holds `slot_id` at instant `at`."""
    rows = (
        db.query(Reservation.vehicle_id)
        .join(ReservationItem, ReservationItem.reservation_id == Reservation.id)
        .filter(
            Reservation.status.in_(ACTIVE_STATUSES),
            ReservationItem.slot_id == slot_id,
            ReservationItem.start_at <= at,
            ReservationItem.end_at > at,
        )
        .distinct()
        .all()
    )
    return {row[0] for row in rows}


def lock_slots(db: Session, slot_ids: Iterable[int]) -> list:
    """
    Row-lock the given slots for the rest of the transaction.
    Ordered by id so concurrent bookings of overlapping slot sets cannot deadlock.
    SQLite ignores FOR UPDATE; there the whole transaction already holds the write lock.
    """
    ids = sorted(set(slot_ids))
    if not ids:
        return []
    return (
        db.query(ChargingSlot)
        .filter(ChargingSlot.id.in_(ids))
        .order_by(ChargingSlot.id)
        .with_for_update()
        .all()
    )


def mark_slots_booked(db: Session, slot_ids: Iterable[int]):
    ids = list(set(slot_ids))
    if not ids:
        return
    db.query(ChargingSlot).filter(
        ChargingSlot.id.in_(ids), ChargingSlot.status != "inactive"
    ).update({ChargingSlot.status: "booked"}, synchronize_session=False)


def release_slots(db: Session, slot_ids: Iterable[int]) -> set:
    """
    Return slots to available unless another active reservation still holds them.
    Call after the owning reservation's status change is flushed. Returns the released ids.
    """
    ids = set(i for i in slot_ids if i is not None)
    if not ids:
        return set()
    db.flush()
    still_held = find_reserved_slot_ids(db, ids)
    to_release = ids - still_held
    if to_release:
        db.query(ChargingSlot).filter(
            ChargingSlot.id.in_(to_release), ChargingSlot.status != "inactive"
        ).update(
            {ChargingSlot.status: "available", ChargingSlot.next_available_at: None},
            synchronize_session=False,
        )
    return to_release


def detach_reservation_history(db: Session, slot_ids: Iterable[int]):
    """Null out item references to slots about to be hard-deleted."""
    ids = list(set(slot_ids))
    if not ids:
        return
    db.query(ReservationItem).filter(ReservationItem.slot_id.in_(ids)).update(
        {ReservationItem.slot_id: None}, synchronize_session=False
    )


# ── CRUD ─────────────────────────────────────────────────────────────────────

def add_slot_to_port(db: Session, port_id, order=None, status=None, next_available_at=None) -> ChargingSlot:
    pid = ensure_valid_id(port_id, "portId")
    _validate_slot_payload({"order": order, "status": status})
    _get_port_or_404(db, pid)

    final_status = status or "available"
    final_next = None if final_status in CLEARED_STATUSES else parse_optional_instant(next_available_at, "slot.nextAvailableAt")

    if order is not None:
        if _order_taken(db, pid, order):
            raise Conflict("Slot order already exists in this port")
        final_order = order
    else:
        final_order = next_order(db, pid)

    slot = ChargingSlot(port_id=pid, order=final_order, status=final_status, next_available_at=final_next)
    db.add(slot)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Slot order already exists in this port")
    db.refresh(slot)
    logger.info(f"[SLOT] Created slot {slot.id} on port {pid} (order={final_order}, status={final_status})")
    return slot


def get_slot(db: Session, slot_id, at: Optional[datetime] = None) -> SlotView:
    """Fetch one slot with its display status (reservation windows covering `at` only, if given)."""
    sid = ensure_valid_id(slot_id, "slotId")
    at = parse_optional_instant(at, "at")
    slot = _get_slot_or_404(db, sid)
    return _to_view(slot, find_reserved_slot_ids(db, [sid], at=at))


def list_slots_by_port(db: Session, port_id) -> list:
    pid = ensure_valid_id(port_id, "portId")
    _get_port_or_404(db, pid)
    slots = (
        db.query(ChargingSlot)
        .filter(ChargingSlot.port_id == pid)
        .order_by(ChargingSlot.order, ChargingSlot.id)
        .all()
    )
    reserved = find_reserved_slot_ids(db, [s.id for s in slots])
    return [_to_view(s, reserved) for s in slots]


def update_slot(db: Session, slot_id, patch: dict) -> ChargingSlot:
    """
    Apply a partial patch. The next_available_at rule is checked against the
    merged status, so switching to available clears a previously set hint
    even if the patch does not mention it.
    """
    sid = ensure_valid_id(slot_id, "slotId")
    if not patch or not any(k in patch for k in SLOT_PATCH_FIELDS):
        raise InvalidInput("slot: no fields provided")
    unknown = set(patch) - set(SLOT_PATCH_FIELDS)
    if unknown:
        raise InvalidInput(f"slot: unknown fields {sorted(unknown)}")
    if "order" in patch and patch["order"] is None:
        raise InvalidInput("slot.order must be a positive integer")
    if "status" in patch and patch["status"] is None:
        raise InvalidInput("slot.status invalid")
    _validate_slot_payload(patch)

    slot = _get_slot_or_404(db, sid)

    if "order" in patch and patch["order"] != slot.order:
        if _order_taken(db, slot.port_id, patch["order"], exclude_slot_id=slot.id):
            raise Conflict("Slot order already exists in this port")
        slot.order = patch["order"]
    if "status" in patch:
        slot.status = patch["status"]
    if "next_available_at" in patch:
        slot.next_available_at = parse_optional_instant(patch["next_available_at"], "slot.nextAvailableAt")

    if slot.status in CLEARED_STATUSES:
        slot.next_available_at = None

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Slot order already exists in this port")
    db.refresh(slot)
    logger.info(f"[SLOT] Updated slot {sid}: {sorted(patch)} → status={slot.status}")
    return slot


def delete_slot(db: Session, slot_id) -> SlotView:
    """
    Hard delete. Refused while an active reservation holds the slot;
    historical reservation items lose their slot reference in the same transaction.
    The slot row stays locked from the check to the delete, as bookings lock it too.
    """
    sid = ensure_valid_id(slot_id, "slotId")
    with atomic(db):
        locked = lock_slots(db, [sid])
        if not locked:
            raise NotFound("Slot not found")
        slot = locked[0]
        if find_reserved_slot_ids(db, [sid]):
            logger.warning(f"[SLOT] Refused delete of slot {sid}: active reservations reference it")
            raise Conflict("Slot is referenced by an active reservation")

        snapshot = _to_view(slot, set())
        detach_reservation_history(db, [sid])
        db.delete(slot)
    logger.info(f"[SLOT] Deleted slot {sid}")
    return snapshot


def reset_all_slots_to_available(db: Session) -> dict:
    """Maintenance: every non-inactive slot back to available with the hint cleared."""
    matched = db.query(func.count(ChargingSlot.id)).filter(ChargingSlot.status != "inactive").scalar()
    modified = db.query(ChargingSlot).filter(
        ChargingSlot.status != "inactive",
        or_(ChargingSlot.status != "available", ChargingSlot.next_available_at.isnot(None)),
    ).update(
        {ChargingSlot.status: "available", ChargingSlot.next_available_at: None},
        synchronize_session=False,
    )
    db.commit()
    logger.warning(f"[SLOT] Reset {modified}/{matched} slots to available")
    return {"matched": matched, "modified": modified}
