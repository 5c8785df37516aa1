# app/routers/slots.py
"""Charging slots — per-port listing with display status, CRUD, and maintenance reset."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.charging_slot import SlotCreate, SlotOut, SlotResetOut, SlotUpdate
from app.services import slot_service

router = APIRouter()


@router.get("/ports/{port_id}/slots", response_model=list[SlotOut], summary="List slots of a port")
def list_slots(port_id: int, db: Session = Depends(get_db)):
    """Status is derived from active reservations, except for inactive slots."""
    return slot_service.list_slots_by_port(db, port_id)


@router.post("/ports/{port_id}/slots", response_model=SlotOut, status_code=201)
def add_slot(port_id: int, body: SlotCreate, db: Session = Depends(get_db)):
    return slot_service.add_slot_to_port(db, port_id, order=body.order, status=body.status,
                                         next_available_at=body.next_available_at)


@router.get("/slots/{slot_id}", response_model=SlotOut)
def get_slot(slot_id: int, db: Session = Depends(get_db)):
    return slot_service.get_slot(db, slot_id)


@router.patch("/slots/{slot_id}", response_model=SlotOut)
def update_slot(slot_id: int, body: SlotUpdate, db: Session = Depends(get_db)):
    return slot_service.update_slot(db, slot_id, body.model_dump(exclude_unset=True))


@router.delete("/slots/{slot_id}", response_model=SlotOut)
def delete_slot(slot_id: int, db: Session = Depends(get_db)):
    return slot_service.delete_slot(db, slot_id)


@router.post("/slots/reset", response_model=SlotResetOut, summary="Reset every non-inactive slot to available")
def reset_slots(db: Session = Depends(get_db)):
    return slot_service.reset_all_slots_to_available(db)
