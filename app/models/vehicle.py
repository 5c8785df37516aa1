# app/models/vehicle.py
"""
Registered vehicles.
Owner accounts live in the external identity service; owner_id is that service's user id.
Used by the reservation engine as the ownership-authorization source.
"""

from sqlalchemy import Column, Integer, String, DateTime
from app.database import Base


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(Integer, nullable=False, index=True)
    plate_number = Column(String(50), unique=True, nullable=False, index=True)
    make = Column(String(100))
    model = Column(String(100))
    connector_type = Column(String(50))        # AC | DC | Ultra | Type2 ...
    status = Column(String(20), default="active", nullable=False)   # active | inactive
    registered_at = Column(DateTime)

    def __repr__(self):
        return f"<Vehicle {self.plate_number} owner={self.owner_id}>"
