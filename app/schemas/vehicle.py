# app/schemas/vehicle.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class VehicleCreate(BaseModel):
    owner_id: int
    plate_number: str
    make: Optional[str] = None
    model: Optional[str] = None
    connector_type: Optional[str] = None


class VehicleOut(BaseModel):
    id: int
    owner_id: int
    plate_number: str
    make: Optional[str]
    model: Optional[str]
    connector_type: Optional[str]
    status: str
    registered_at: Optional[datetime]

    class Config:
        from_attributes = True
