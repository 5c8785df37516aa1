# app/models/charging_port.py
"""
Charging ports — a connector group inside a station. Each port owns its slots;
deleting a port deletes its slots with it.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, Index
from sqlalchemy.orm import relationship
from app.database import Base

PORT_TYPES = ("AC", "DC", "Ultra")
PORT_STATUSES = ("available", "in_use", "inactive")
CHARGE_SPEEDS = ("slow", "fast", "super_fast")


class ChargingPort(Base):
    __tablename__ = "charging_ports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    station_id = Column(Integer, ForeignKey("charging_stations.id"), nullable=False, index=True)
    type = Column(String(10), nullable=False)          # AC | DC | Ultra
    status = Column(String(20), nullable=False, default="available")
    power_kw = Column(Float, nullable=False)
    speed = Column(String(20), nullable=False)         # slow | fast | super_fast
    price = Column(Float, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    station = relationship("ChargingStation", back_populates="ports")
    slots = relationship(
        "ChargingSlot",
        back_populates="port",
        order_by="ChargingSlot.order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_charging_ports_station_status", "station_id", "status"),
    )

    def __repr__(self):
        return f"<ChargingPort {self.id} station={self.station_id} type={self.type} status={self.status}>"
