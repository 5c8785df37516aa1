# app/schemas/reservation.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from app.schemas.charging_station import Pagination


class ReservationItemIn(BaseModel):
    slot_id: int
    start_at: datetime
    end_at: datetime


class ReservationCreate(BaseModel):
    vehicle_id: int
    items: list[ReservationItemIn]
    status: Optional[str] = None     # pending (default) | confirmed


class ReservationItemOut(BaseModel):
    slot_id: Optional[int]           # None once the slot was hard-deleted
    start_at: datetime
    end_at: datetime

    class Config:
        from_attributes = True


class ReservationOut(BaseModel):
    id: int
    vehicle_id: int
    status: str
    qr_check: bool
    qr: Optional[str]
    qr_image: Optional[str] = None
    checked_in_at: Optional[datetime]
    checked_in_by: Optional[int]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    items: list[ReservationItemOut]

    class Config:
        from_attributes = True


class ReservationPage(BaseModel):
    items: list[ReservationOut]
    pagination: Pagination


class QRCheckIn(BaseModel):
    """Either the raw scanned payload, or reservation_id + hash."""
    qr: Optional[str] = None
    reservation_id: Optional[int] = None
    hash: Optional[str] = None


class CheckInOut(BaseModel):
    outcome: str                     # checked_in | already_used
    reservation_id: int
    status: str
    qr_check: bool
    checked_at: Optional[datetime]
    checked_by: Optional[dict]

    class Config:
        from_attributes = True
