# app/models/charging_session.py
"""
Charging sessions — time-based percent-progress tracking per vehicle and slot.
Independent of reservations; only reads slot status when a session starts.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey
from app.database import Base

SESSION_STATUSES = ("active", "completed", "cancelled")


class ChargingSession(Base):
    __tablename__ = "charging_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False, index=True)
    slot_id = Column(Integer, ForeignKey("charging_slots.id", ondelete="SET NULL"), nullable=True, index=True)
    started_at = Column(DateTime, nullable=False, index=True)
    ended_at = Column(DateTime)
    initial_percent = Column(Float, nullable=False)
    target_percent = Column(Float)
    charge_rate_percent_per_minute = Column(Float, nullable=False, default=1.0)
    status = Column(String(20), nullable=False, default="active", index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<ChargingSession {self.id} vehicle={self.vehicle_id} slot={self.slot_id} status={self.status}>"
