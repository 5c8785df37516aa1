# tests/conftest.py
"""
Shared fixtures. Every test gets its own file-backed SQLite database with the
same connection hooks production SQLite uses (foreign keys, BEGIN IMMEDIATE).
"""

import os
import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("RESERVATION_HASH_KEY", "test-secret")
os.environ["API_KEY"] = ""

from datetime import datetime
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import sessionmaker

from app.database import build_engine, create_tables
from app.services import slot_service, station_service, vehicle_service

AC_PORT = {"type": "AC", "power_kw": 22, "speed": "slow", "price": 3500}
DC_PORT = {"type": "DC", "power_kw": 60, "speed": "fast", "price": 5500}


def at(hour, minute=0, day=1):
    """A UTC instant on 2025-10-<day>."""
    return datetime(2025, 10, day, hour, minute)


@pytest.fixture
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'booking.db'}")
    create_tables(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def world(db):
    """One active station with 2 ports and 3 slots (2 + 1), plus two owners' vehicles."""
    station = station_service.create_station(
        db, name="Central Hub", longitude=106.70, latitude=10.77,
        address="1 Le Loi", provider="VoltGrid", ports=[AC_PORT, DC_PORT],
    )
    port_a, port_b = station.ports
    slots = [
        slot_service.add_slot_to_port(db, port_a.id),
        slot_service.add_slot_to_port(db, port_a.id),
        slot_service.add_slot_to_port(db, port_b.id),
    ]
    vehicle = vehicle_service.register_vehicle(db, owner_id=1, plate_number="51a-12345", make="VinFast")
    other_vehicle = vehicle_service.register_vehicle(db, owner_id=2, plate_number="30B-67890")
    return SimpleNamespace(
        station_id=station.id,
        port_ids=[port_a.id, port_b.id],
        slot_ids=[s.id for s in slots],
        vehicle_id=vehicle.id,
        other_vehicle_id=other_vehicle.id,
    )
