# app/models/charging_station.py
"""
Charging stations — physical sites that own ports.
Soft-deleted by flipping status to "inactive", which cascades to ports and slots
(see station_service.soft_delete_station).
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Float, Index
from sqlalchemy.orm import relationship
from app.database import Base

STATION_STATUSES = ("active", "inactive", "maintenance")


class ChargingStation(Base):
    __tablename__ = "charging_stations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False, index=True)
    longitude = Column(Float, nullable=False)
    latitude = Column(Float, nullable=False)
    address = Column(String(500))
    provider = Column(String(200))
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    ports = relationship("ChargingPort", back_populates="station", order_by="ChargingPort.id")

    __table_args__ = (
        Index("ix_charging_stations_coords", "longitude", "latitude"),
    )

    def __repr__(self):
        return f"<ChargingStation {self.id} name={self.name} status={self.status}>"
