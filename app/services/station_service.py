# app/services/station_service.py
"""
Port/Station hierarchy: station and port CRUD, nested port sync, and the
cascading soft delete (station → ports → slots) as one transaction.
"""

from math import ceil
from typing import Optional

from sqlalchemy import func, text
from sqlalchemy.orm import Session

from app.config import settings
from app.database import atomic
from app.models.charging_station import ChargingStation, STATION_STATUSES
from app.models.charging_port import ChargingPort, PORT_TYPES, PORT_STATUSES, CHARGE_SPEEDS
from app.models.charging_slot import ChargingSlot
from app.services.slot_service import find_reserved_slot_ids, detach_reservation_history, lock_slots
from app.utils.errors import Conflict, InvalidInput, NotFound
from app.utils.validation import clamp_page, ensure_valid_id, is_number
from app.utils.logger import get_logger

logger = get_logger(__name__)

STATION_FIELDS = ("name", "longitude", "latitude", "status", "address", "provider")
PORT_FIELDS = ("type", "status", "power_kw", "speed", "price")
# pg_advisory_xact_lock key guarding the station count
STATION_CAP_LOCK_KEY = 72_001


# ── Validation ───────────────────────────────────────────────────────────────

def _assert_coords(longitude=None, latitude=None):
    if longitude is not None and (not is_number(longitude) or not -180 <= longitude <= 180):
        raise InvalidInput("longitude must be between -180 and 180")
    if latitude is not None and (not is_number(latitude) or not -90 <= latitude <= 90):
        raise InvalidInput("latitude must be between -90 and 90")


def _clean_text(value) -> Optional[str]:
    """None or blank clears the field."""
    if value is None or str(value).strip() == "":
        return None
    return str(value).strip()


def _validate_port_fields(p: dict, path: str, partial: bool = False) -> dict:
    """
    Check a port definition and return only the recognised fields.
    Full definitions need type, power_kw, speed and price; status defaults to available.
    """
    if not isinstance(p, dict):
        raise InvalidInput(f"{path} must be an object")
    if partial and not any(k in p for k in PORT_FIELDS):
        raise InvalidInput(f"{path}: no fields provided")

    if not partial or "type" in p:
        if p.get("type") not in PORT_TYPES:
            raise InvalidInput(f"{path}.type invalid")
    if p.get("status") is not None and p["status"] not in PORT_STATUSES:
        raise InvalidInput(f"{path}.status invalid")
    if not partial or "power_kw" in p:
        if not is_number(p.get("power_kw")) or p["power_kw"] < 1:
            raise InvalidInput(f"{path}.power_kw must be >= 1")
    if not partial or "speed" in p:
        if p.get("speed") not in CHARGE_SPEEDS:
            raise InvalidInput(f"{path}.speed invalid")
    if not partial or "price" in p:
        if not is_number(p.get("price")) or p["price"] < 0:
            raise InvalidInput(f"{path}.price must be >= 0")

    if partial:
        return {k: p[k] for k in PORT_FIELDS if k in p and p[k] is not None}
    return {
        "type": p["type"],
        "status": p.get("status") or "available",
        "power_kw": p["power_kw"],
        "speed": p["speed"],
        "price": p["price"],
    }


def _sanitize_ports_create(ports) -> list:
    if ports is None:
        return []
    if not isinstance(ports, list):
        raise InvalidInput("ports must be an array")
    return [_validate_port_fields(p, f"ports[{idx}]") for idx, p in enumerate(ports)]


def _sanitize_ports_upsert(ports) -> list:
    if not isinstance(ports, list):
        raise InvalidInput("ports must be an array")
    result = []
    for idx, p in enumerate(ports):
        clean = _validate_port_fields(p, f"ports[{idx}]")
        if p.get("id") is not None:
            clean["id"] = ensure_valid_id(p["id"], f"ports[{idx}].id")
        result.append(clean)
    return result


def _get_station_or_404(db: Session, station_id: int, lock: bool = False) -> ChargingStation:
    q = db.query(ChargingStation).filter(ChargingStation.id == station_id)
    if lock:
        q = q.with_for_update()
    station = q.first()
    if not station:
        raise NotFound("Charging station not found")
    return station


def _remove_ports(db: Session, ports: list):
    """Delete ports and their slots, unless an active reservation holds one of the slots."""
    slot_ids = [s.id for p in ports for s in p.slots]
    lock_slots(db, slot_ids)
    held = find_reserved_slot_ids(db, slot_ids)
    if held:
        raise Conflict(f"Cannot remove ports: slots {sorted(held)} have active reservations")
    detach_reservation_history(db, slot_ids)
    for port in ports:
        db.delete(port)


def _lock_station_cap(db: Session):
    """
    Serialize station creation for the rest of the transaction so the cap count
    cannot go stale. SQLite transactions already hold the database write lock.
    """
    if db.get_bind().dialect.name == "postgresql":
        db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": STATION_CAP_LOCK_KEY})


# ── Station CRUD ─────────────────────────────────────────────────────────────

def create_station(db: Session, name, longitude, latitude, status=None, address=None,
                   provider=None, ports=None) -> ChargingStation:
    """Create a station and its initial ports atomically. Any invalid port definition persists nothing."""
    if not name or not isinstance(name, str) or not name.strip():
        raise InvalidInput("name is required")
    if not is_number(longitude) or not is_number(latitude):
        raise InvalidInput("longitude and latitude are required numbers")
    _assert_coords(longitude, latitude)
    if status is not None and status not in STATION_STATUSES:
        raise InvalidInput("status invalid")
    ports_clean = _sanitize_ports_create(ports)

    with atomic(db):
        _lock_station_cap(db)
        total = db.query(func.count(ChargingStation.id)).scalar()
        if total >= settings.MAX_STATION_COUNT:
            logger.warning(f"[STATION] Station cap {settings.MAX_STATION_COUNT} reached")
            raise Conflict(f"Cannot create more stations: limit {settings.MAX_STATION_COUNT} reached")

        station = ChargingStation(
            name=name.strip(),
            longitude=longitude,
            latitude=latitude,
            status=status or "active",
            address=_clean_text(address),
            provider=_clean_text(provider),
        )
        db.add(station)
        db.flush()
        for p in ports_clean:
            db.add(ChargingPort(station_id=station.id, **p))

    db.refresh(station)
    logger.info(f"[STATION] Created station {station.id} '{station.name}' with {len(ports_clean)} ports")
    return station


def get_station(db: Session, station_id) -> ChargingStation:
    return _get_station_or_404(db, ensure_valid_id(station_id, "id"))


def list_stations(db: Session, status=None, name=None, address=None, provider=None,
                  page=1, limit=None) -> dict:
    safe_page, safe_limit, offset = clamp_page(
        page, limit if limit is not None else settings.MAX_PAGE_LIMIT, max_limit=settings.MAX_PAGE_LIMIT
    )

    q = db.query(ChargingStation)
    if status:
        q = q.filter(ChargingStation.status == status)
    if name:
        q = q.filter(ChargingStation.name.ilike(f"%{name.strip()}%"))
    if address:
        q = q.filter(ChargingStation.address.ilike(f"%{address.strip()}%"))
    if provider:
        q = q.filter(ChargingStation.provider.ilike(f"%{provider.strip()}%"))

    total = q.count()
    docs = (
        q.order_by(ChargingStation.created_at.desc(), ChargingStation.id.desc())
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
            "max_limit": settings.MAX_PAGE_LIMIT,
        },
    }


def update_station(db: Session, station_id, changes: Optional[dict] = None, ports=None,
                   remove_missing_ports: bool = True) -> ChargingStation:
    """
    Patch station fields and optionally sync its ports in one transaction.

    Port entries with an id update that port (it must belong to this station);
    entries without one create a port. With remove_missing_ports, existing
    ports not named in `ports` are deleted.
    """
    sid = ensure_valid_id(station_id, "id")
    changes = {k: v for k, v in (changes or {}).items() if k in STATION_FIELDS}
    if not changes and ports is None:
        raise InvalidInput("No fields to update")

    if "name" in changes and (not changes["name"] or not str(changes["name"]).strip()):
        raise InvalidInput("name cannot be empty")
    if "longitude" in changes or "latitude" in changes:
        _assert_coords(changes.get("longitude"), changes.get("latitude"))
    if changes.get("status") is not None and changes["status"] not in STATION_STATUSES:
        raise InvalidInput("status invalid")
    ports_clean = _sanitize_ports_upsert(ports) if ports is not None else None

    with atomic(db):
        station = _get_station_or_404(db, sid, lock=True)

        for key, value in changes.items():
            if key in ("address", "provider"):
                setattr(station, key, _clean_text(value))
            elif key == "name":
                station.name = str(value).strip()
            elif value is not None:
                setattr(station, key, value)

        if ports_clean is not None:
            existing = {p.id: p for p in station.ports}
            submitted = set()
            for p in ports_clean:
                port_id = p.pop("id", None)
                if port_id is not None:
                    port = existing.get(port_id)
                    if port is None:
                        raise InvalidInput(f"Port {port_id} not found in this station")
                    for key, value in p.items():
                        setattr(port, key, value)
                    submitted.add(port_id)
                else:
                    db.add(ChargingPort(station_id=sid, **p))

            if remove_missing_ports:
                missing = [port for pid, port in existing.items() if pid not in submitted]
                if missing:
                    _remove_ports(db, missing)

    db.refresh(station)
    logger.info(f"[STATION] Updated station {sid}: fields={sorted(changes)} ports_synced={ports is not None}")
    return station


def soft_delete_station(db: Session, station_id) -> ChargingStation:
    """
    Station → inactive, all its ports → inactive, all their slots → inactive with
    next_available_at cleared. One transaction of bulk updates; idempotent.
    """
    sid = ensure_valid_id(station_id, "id")

    with atomic(db):
        station = _get_station_or_404(db, sid, lock=True)
        if station.status != "inactive":
            station.status = "inactive"

        port_ids = [row[0] for row in db.query(ChargingPort.id).filter(ChargingPort.station_id == sid).all()]

        ports_changed = db.query(ChargingPort).filter(
            ChargingPort.station_id == sid, ChargingPort.status != "inactive"
        ).update({ChargingPort.status: "inactive"}, synchronize_session=False)

        slots_changed = 0
        if port_ids:
            slots_changed = db.query(ChargingSlot).filter(
                ChargingSlot.port_id.in_(port_ids), ChargingSlot.status != "inactive"
            ).update(
                {ChargingSlot.status: "inactive", ChargingSlot.next_available_at: None},
                synchronize_session=False,
            )

    db.refresh(station)
    logger.info(f"[STATION] Soft-deleted station {sid} (ports changed={ports_changed}, slots changed={slots_changed})")
    return station


def delete_station(db: Session, station_id) -> int:
    """Hard delete. Refused while the station still owns ports."""
    sid = ensure_valid_id(station_id, "id")
    station = _get_station_or_404(db, sid)
    port_count = db.query(func.count(ChargingPort.id)).filter(ChargingPort.station_id == sid).scalar()
    if port_count:
        raise Conflict(f"Station still owns {port_count} ports; delete them first")
    db.delete(station)
    db.commit()
    logger.info(f"[STATION] Hard-deleted station {sid}")
    return sid


# ── Port operations ──────────────────────────────────────────────────────────

def create_port(db: Session, station_id, payload: dict) -> ChargingPort:
    sid = ensure_valid_id(station_id, "stationId")
    clean = _validate_port_fields(payload, "port")
    _get_station_or_404(db, sid)

    port = ChargingPort(station_id=sid, **clean)
    db.add(port)
    db.commit()
    db.refresh(port)
    logger.info(f"[STATION] Added port {port.id} ({port.type}) to station {sid}")
    return port


def get_port(db: Session, port_id) -> ChargingPort:
    pid = ensure_valid_id(port_id, "portId")
    port = db.get(ChargingPort, pid)
    if not port:
        raise NotFound("Port not found")
    return port


def update_port(db: Session, port_id, patch: dict) -> ChargingPort:
    pid = ensure_valid_id(port_id, "portId")
    clean = _validate_port_fields(patch or {}, "port", partial=True)
    port = get_port(db, pid)
    for key, value in clean.items():
        setattr(port, key, value)
    db.commit()
    db.refresh(port)
    logger.info(f"[STATION] Updated port {pid}: {sorted(clean)}")
    return port


def delete_port(db: Session, port_id) -> int:
    pid = ensure_valid_id(port_id, "portId")
    with atomic(db):
        port = get_port(db, pid)
        _remove_ports(db, [port])
    logger.info(f"[STATION] Deleted port {pid} and its slots")
    return pid
