# app/models/charging_slot.py
"""
Charging slots — the smallest bookable unit, owned by a port.

Invariant: status "available" or "inactive" means next_available_at is NULL.
The services enforce it on every write path, bulk updates included, so there is
no model-level hook for it here.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database import Base

SLOT_STATUSES = ("available", "booked", "in_use", "inactive")
# Statuses that never carry a next_available_at hint
CLEARED_STATUSES = ("available", "inactive")


class ChargingSlot(Base):
    __tablename__ = "charging_slots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    port_id = Column(Integer, ForeignKey("charging_ports.id", ondelete="CASCADE"), nullable=False, index=True)
    order = Column(Integer, nullable=False)            # 1-based, unique within a port
    status = Column(String(20), nullable=False, default="available", index=True)
    next_available_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    port = relationship("ChargingPort", back_populates="slots")

    __table_args__ = (
        UniqueConstraint("port_id", "order", name="uq_charging_slots_port_order"),
        Index("ix_charging_slots_port_next_available", "port_id", "next_available_at"),
    )

    def __repr__(self):
        return f"<ChargingSlot {self.id} port={self.port_id} order={self.order} status={self.status}>"
