# app/models/reservation.py
"""
Reservations and their slot/time-range items.

A reservation belongs to one vehicle and holds an ordered list of items.
Items are written once at creation; after cancel/complete only the reservation
status changes. Times are naive UTC, intervals are half-open [start_at, end_at).
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, ForeignKey, Index
from sqlalchemy.orm import relationship
from app.database import Base

RESERVATION_STATUSES = ("pending", "confirmed", "cancelled", "completed")
ACTIVE_STATUSES = ("pending", "confirmed")
TERMINAL_STATUSES = ("cancelled", "completed")


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    qr_check = Column(Boolean, nullable=False, default=False)
    qr = Column(Text)                                   # opaque check-in payload
    qr_image = Column(Text)                             # data:image/png;base64 rendering of qr
    checked_in_at = Column(DateTime)
    checked_in_by = Column(Integer)
    checked_in_role = Column(String(20))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vehicle = relationship("Vehicle")
    items = relationship(
        "ReservationItem",
        back_populates="reservation",
        order_by="ReservationItem.position",
        cascade="all, delete-orphan",
    )

    @property
    def slot_ids(self) -> list:
        return [i.slot_id for i in self.items if i.slot_id is not None]

    def __repr__(self):
        return f"<Reservation {self.id} vehicle={self.vehicle_id} status={self.status} qr_check={self.qr_check}>"


class ReservationItem(Base):
    __tablename__ = "reservation_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    # NULL once the slot is hard-deleted; only historical items can lose their slot
    slot_id = Column(Integer, ForeignKey("charging_slots.id", ondelete="SET NULL"), nullable=True)
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)

    reservation = relationship("Reservation", back_populates="items")

    __table_args__ = (
        Index("ix_reservation_items_slot_start", "slot_id", "start_at"),
    )

    def __repr__(self):
        return f"<ReservationItem slot={self.slot_id} [{self.start_at}, {self.end_at})>"
