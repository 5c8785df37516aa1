# app/schemas/charging_station.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class PortIn(BaseModel):
    type: str                      # AC | DC | Ultra
    status: Optional[str] = None   # available | in_use | inactive
    power_kw: float
    speed: str                     # slow | fast | super_fast
    price: float


class PortUpsert(PortIn):
    id: Optional[int] = None       # present → update that port, absent → create


class PortPatch(BaseModel):
    type: Optional[str] = None
    status: Optional[str] = None
    power_kw: Optional[float] = None
    speed: Optional[str] = None
    price: Optional[float] = None


class PortOut(BaseModel):
    id: int
    station_id: int
    type: str
    status: str
    power_kw: float
    speed: str
    price: float
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class StationCreate(BaseModel):
    name: str
    longitude: float
    latitude: float
    status: Optional[str] = None
    address: Optional[str] = None
    provider: Optional[str] = None
    ports: Optional[list[PortIn]] = None


class StationUpdate(BaseModel):
    name: Optional[str] = None
    longitude: Optional[float] = None
    latitude: Optional[float] = None
    status: Optional[str] = None
    address: Optional[str] = None
    provider: Optional[str] = None
    ports: Optional[list[PortUpsert]] = None
    remove_missing_ports: bool = True


class StationOut(BaseModel):
    id: int
    name: str
    longitude: float
    latitude: float
    address: Optional[str]
    provider: Optional[str]
    status: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    ports: list[PortOut] = []

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
    max_limit: Optional[int] = None


class StationPage(BaseModel):
    items: list[StationOut]
    pagination: Pagination
