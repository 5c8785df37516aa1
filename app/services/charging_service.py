# app/services/charging_service.py
"""
Charging Session Tracker — time-based percent-progress simulation.

Independent from the reservation transaction boundary: a session only needs
the slot to exist and a point-in-time read of who holds it right now.
"""

from datetime import datetime
from math import ceil
from typing import Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.models.charging_session import ChargingSession, SESSION_STATUSES
from app.models.charging_slot import ChargingSlot
from app.services.slot_service import find_active_holders
from app.services.vehicle_service import get_vehicle, list_vehicle_ids_for_owner
from app.utils.errors import Conflict, InvalidInput, NotFound
from app.utils.validation import clamp_page, ensure_valid_id, is_number
from app.utils.logger import get_logger

logger = get_logger(__name__)

STOP_STATUSES = ("completed", "cancelled")


def start_charging(db: Session, vehicle_id, slot_id, initial_percent,
                   target_percent=None, charge_rate_percent_per_minute=None) -> ChargingSession:
    """
    Start charging on a slot. Refused while another active session uses the slot,
    or while a reservation of a different vehicle covers the current instant.
    A future booking does not block the slot now.
    """
    vid = ensure_valid_id(vehicle_id, "vehicleId")
    sid = ensure_valid_id(slot_id, "slotId")
    rate = settings.DEFAULT_CHARGE_RATE if charge_rate_percent_per_minute is None else charge_rate_percent_per_minute

    if not is_number(initial_percent) or not 0 <= initial_percent <= 100:
        raise InvalidInput("initialPercent must be 0..100")
    if target_percent is not None and (not is_number(target_percent) or not 0 < target_percent <= 100):
        raise InvalidInput("targetPercent must be 1..100")
    if not is_number(rate) or rate <= 0:
        raise InvalidInput("chargeRatePercentPerMinute must be > 0")

    get_vehicle(db, vid)
    slot = db.get(ChargingSlot, sid)
    if not slot:
        raise NotFound("Slot not found")
    if slot.status == "inactive":
        raise InvalidInput("Slot is inactive")

    now = datetime.utcnow()
    busy = db.query(ChargingSession.id).filter(
        ChargingSession.slot_id == sid, ChargingSession.status == "active"
    ).first()
    if busy:
        raise Conflict("Slot is already in use")
    holders = find_active_holders(db, sid, now)
    if holders and vid not in holders:
        logger.warning(f"[CHARGING] Slot {sid} is reserved by another vehicle at {now.isoformat()}")
        raise Conflict("Slot is booked by another vehicle right now")

    session = ChargingSession(
        vehicle_id=vid,
        slot_id=sid,
        started_at=now,
        ended_at=None,
        initial_percent=initial_percent,
        target_percent=target_percent,
        charge_rate_percent_per_minute=rate,
        status="active",
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info(f"[CHARGING] Session {session.id} started: vehicle={vid} slot={sid} from {initial_percent}%")
    return session


def get_session(db: Session, session_id) -> ChargingSession:
    cid = ensure_valid_id(session_id, "sessionId")
    session = db.get(ChargingSession, cid)
    if not session:
        raise NotFound("Session not found")
    return session


def _page_sessions(db: Session, vehicle_ids: list, status: Optional[str], page, limit) -> dict:
    if status is not None and status not in SESSION_STATUSES:
        raise InvalidInput("status invalid")
    safe_page, safe_limit, offset = clamp_page(
        page, limit, max_limit=settings.MAX_PAGE_LIMIT, default_limit=settings.DEFAULT_PAGE_LIMIT
    )

    q = db.query(ChargingSession).filter(ChargingSession.vehicle_id.in_(vehicle_ids))
    if status:
        q = q.filter(ChargingSession.status == status)

    total = q.count()
    docs = (
        q.order_by(ChargingSession.started_at.desc(), ChargingSession.id.desc())
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


def list_my_charging_sessions(db: Session, owner_user_id, status: Optional[str] = None,
                              page=1, limit=None) -> dict:
    """Sessions of every vehicle the user owns, newest first."""
    owner = ensure_valid_id(owner_user_id, "userId")
    return _page_sessions(db, list_vehicle_ids_for_owner(db, owner), status, page, limit)


def list_charging_sessions_by_vehicle(db: Session, vehicle_id, status: Optional[str] = None,
                                      page=1, limit=None) -> dict:
    vehicle = get_vehicle(db, vehicle_id)
    return _page_sessions(db, [vehicle.id], status, page, limit)


def stop_charging(db: Session, session_id, status: str = "completed") -> ChargingSession:
    """End an active session. Sessions that already ended are returned unchanged."""
    if status not in STOP_STATUSES:
        raise InvalidInput("status must be completed or cancelled")
    session = get_session(db, session_id)
    if session.status != "active":
        return session
    session.status = status
    session.ended_at = datetime.utcnow()
    db.commit()
    db.refresh(session)
    logger.info(f"[CHARGING] Session {session.id} {status}")
    return session


def get_charging_progress(db: Session, session_id, now: Optional[datetime] = None) -> dict:
    """
    percent = initial + elapsed_minutes * rate, capped at the target (or 100).
    Ended sessions are measured up to ended_at.
    """
    session = get_session(db, session_id)
    now = now or datetime.utcnow()

    end = session.ended_at or now
    minutes = max((end - session.started_at).total_seconds(), 0) / 60
    raw_percent = session.initial_percent + minutes * session.charge_rate_percent_per_minute
    cap = session.target_percent if session.target_percent is not None else 100
    percent = max(0.0, min(cap, 100, raw_percent))

    return {
        "session_id": session.id,
        "percent": round(percent, 2),
        "finished": percent >= cap or session.status != "active",
        "target": cap,
        "rate_percent_per_minute": session.charge_rate_percent_per_minute,
        "started_at": session.started_at,
        "ended_at": session.ended_at,
        "status": session.status,
    }
