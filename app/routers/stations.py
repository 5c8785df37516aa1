# app/routers/stations.py
"""Charging stations and their ports — CRUD, port sync, and cascading soft delete."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.charging_station import (
    PortIn, PortOut, PortPatch, StationCreate, StationOut, StationPage, StationUpdate,
)
from app.services import station_service

router = APIRouter()


@router.post("/stations", response_model=StationOut, status_code=201, summary="Create a station with optional ports")
def create_station(body: StationCreate, db: Session = Depends(get_db)):
    ports = [p.model_dump() for p in body.ports] if body.ports is not None else None
    return station_service.create_station(
        db, name=body.name, longitude=body.longitude, latitude=body.latitude,
        status=body.status, address=body.address, provider=body.provider, ports=ports,
    )


@router.get("/stations", response_model=StationPage, summary="List stations")
def list_stations(
    status: Optional[str] = None,
    name: Optional[str] = None,
    address: Optional[str] = None,
    provider: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
):
    return station_service.list_stations(db, status=status, name=name, address=address,
                                         provider=provider, page=page, limit=limit)


@router.get("/stations/{station_id}", response_model=StationOut)
def get_station(station_id: int, db: Session = Depends(get_db)):
    return station_service.get_station(db, station_id)


@router.put("/stations/{station_id}", response_model=StationOut, summary="Update a station and sync its ports")
def update_station(station_id: int, body: StationUpdate, db: Session = Depends(get_db)):
    changes = body.model_dump(exclude_unset=True, exclude={"ports", "remove_missing_ports"})
    ports = [p.model_dump() for p in body.ports] if body.ports is not None else None
    return station_service.update_station(db, station_id, changes=changes, ports=ports,
                                          remove_missing_ports=body.remove_missing_ports)


@router.delete("/stations/{station_id}", response_model=StationOut,
               summary="Soft delete — station, ports and slots become inactive")
def soft_delete_station(station_id: int, db: Session = Depends(get_db)):
    return station_service.soft_delete_station(db, station_id)


@router.delete("/stations/{station_id}/purge", summary="Hard delete a station without ports")
def purge_station(station_id: int, db: Session = Depends(get_db)):
    deleted_id = station_service.delete_station(db, station_id)
    return {"id": deleted_id, "status": "deleted"}


# ── Ports ────────────────────────────────────────────────────────────────────

@router.post("/stations/{station_id}/ports", response_model=PortOut, status_code=201)
def create_port(station_id: int, body: PortIn, db: Session = Depends(get_db)):
    return station_service.create_port(db, station_id, body.model_dump())


@router.get("/ports/{port_id}", response_model=PortOut)
def get_port(port_id: int, db: Session = Depends(get_db)):
    return station_service.get_port(db, port_id)


@router.patch("/ports/{port_id}", response_model=PortOut)
def update_port(port_id: int, body: PortPatch, db: Session = Depends(get_db)):
    return station_service.update_port(db, port_id, body.model_dump(exclude_unset=True))


@router.delete("/ports/{port_id}", summary="Delete a port and its slots")
def delete_port(port_id: int, db: Session = Depends(get_db)):
    deleted_id = station_service.delete_port(db, port_id)
    return {"id": deleted_id, "status": "deleted"}
