# app/schemas/charging_session.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from app.schemas.charging_station import Pagination


class ChargingStart(BaseModel):
    vehicle_id: int
    slot_id: int
    initial_percent: float
    target_percent: Optional[float] = None
    charge_rate_percent_per_minute: Optional[float] = None


class ChargingStop(BaseModel):
    status: str = "completed"        # completed | cancelled


class ChargingSessionOut(BaseModel):
    id: int
    vehicle_id: int
    slot_id: Optional[int]
    started_at: datetime
    ended_at: Optional[datetime]
    initial_percent: float
    target_percent: Optional[float]
    charge_rate_percent_per_minute: float
    status: str

    class Config:
        from_attributes = True


class ChargingProgressOut(BaseModel):
    session_id: int
    percent: float
    finished: bool
    target: float
    rate_percent_per_minute: float
    started_at: datetime
    ended_at: Optional[datetime]
    status: str


class ChargingSessionPage(BaseModel):
    items: list[ChargingSessionOut]
    pagination: Pagination
