# app/services/vehicle_service.py
"""
Vehicle lookup and registration helpers.
The reservation engine uses get_vehicle / get_vehicle_owner as its ownership source.
"""

from datetime import datetime
from sqlalchemy.orm import Session
from app.models.vehicle import Vehicle
from app.utils.errors import Conflict, InvalidInput, NotFound
from app.utils.validation import ensure_valid_id
from app.utils.logger import get_logger

logger = get_logger(__name__)


def get_vehicle(db: Session, vehicle_id) -> Vehicle:
    vid = ensure_valid_id(vehicle_id, "vehicleId")
    vehicle = db.get(Vehicle, vid)
    if not vehicle:
        raise NotFound("Vehicle not found")
    return vehicle


def get_vehicle_owner(db: Session, vehicle_id) -> int:
    """Return the owning user id of a vehicle. Raises NotFound if the vehicle is absent."""
    return get_vehicle(db, vehicle_id).owner_id


def list_vehicle_ids_for_owner(db: Session, owner_user_id: int) -> list:
    rows = db.query(Vehicle.id).filter(Vehicle.owner_id == owner_user_id).all()
    return [r[0] for r in rows]


def lookup_vehicle_by_plate(db: Session, plate_number: str):
    """Find a registered vehicle by plate number. Returns None if not found."""
    return db.query(Vehicle).filter(Vehicle.plate_number == plate_number.strip().upper()).first()


def register_vehicle(db: Session, owner_id, plate_number: str, make=None, model=None,
                     connector_type=None) -> Vehicle:
    owner = ensure_valid_id(owner_id, "ownerId")
    if not plate_number or not plate_number.strip():
        raise InvalidInput("plateNumber is required")
    plate = plate_number.strip().upper()
    if lookup_vehicle_by_plate(db, plate):
        raise Conflict(f"Plate {plate} already registered")

    vehicle = Vehicle(
        owner_id=owner,
        plate_number=plate,
        make=make,
        model=model,
        connector_type=connector_type,
        status="active",
        registered_at=datetime.utcnow(),
    )
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    logger.info(f"[VEHICLE] Registered {plate} for owner {owner}")
    return vehicle
