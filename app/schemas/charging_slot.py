# app/schemas/charging_slot.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class SlotCreate(BaseModel):
    order: Optional[int] = None          # omitted → max(order in port) + 1
    status: Optional[str] = None
    next_available_at: Optional[datetime] = None


class SlotUpdate(BaseModel):
    order: Optional[int] = None
    status: Optional[str] = None
    next_available_at: Optional[datetime] = None


class SlotOut(BaseModel):
    id: int
    port_id: int
    order: int
    status: str                          # display status on reads
    stored_status: Optional[str] = None
    next_available_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class SlotResetOut(BaseModel):
    matched: int
    modified: int
