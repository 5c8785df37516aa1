# app/routers/vehicles.py
"""Registered vehicles — the ownership source for reservations."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.vehicle import Vehicle
from app.schemas.vehicle import VehicleCreate, VehicleOut
from app.services import vehicle_service

router = APIRouter()


@router.get("/vehicles", response_model=list[VehicleOut], summary="List registered vehicles")
def list_vehicles(owner_id: int = None, db: Session = Depends(get_db)):
    q = db.query(Vehicle)
    if owner_id is not None:
        q = q.filter(Vehicle.owner_id == owner_id)
    return q.order_by(Vehicle.id).all()


@router.post("/vehicles", response_model=VehicleOut, status_code=201, summary="Register a vehicle")
def register_vehicle(body: VehicleCreate, db: Session = Depends(get_db)):
    return vehicle_service.register_vehicle(
        db, owner_id=body.owner_id, plate_number=body.plate_number,
        make=body.make, model=body.model, connector_type=body.connector_type,
    )


@router.get("/vehicles/{vehicle_id}", response_model=VehicleOut)
def get_vehicle(vehicle_id: int, db: Session = Depends(get_db)):
    return vehicle_service.get_vehicle(db, vehicle_id)
