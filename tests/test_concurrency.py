# tests/test_concurrency.py
"""
Many bookings racing for the same slot from separate sessions.
Exactly one overlapping booking may win; disjoint bookings all succeed.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import pytest
from app.config import settings
from app.models.charging_station import ChargingStation
from app.models.reservation import Reservation
from app.services import reservation_service, station_service
from app.utils.errors import Conflict
from conftest import AC_PORT, at

ATTEMPTS = 8


def _attempt(session_factory, vehicle_id, slot_id, start, end):
    session = session_factory()
    try:
        reservation_service.create_reservation(
            session, vehicle_id, [{"slot_id": slot_id, "start_at": start, "end_at": end}]
        )
        return "ok"
    except Conflict:
        return "conflict"
    finally:
        session.close()


class TestConcurrentBooking:
    @pytest.mark.asyncio
    async def test_overlapping_bookings_only_one_wins(self, db, world, session_factory):
        db.close()
        slot = world.slot_ids[0]

        results = await asyncio.gather(*[
            asyncio.to_thread(_attempt, session_factory, world.vehicle_id, slot, at(10, minute), at(11, minute))
            for minute in range(ATTEMPTS)
        ])

        assert results.count("ok") == 1
        assert results.count("conflict") == ATTEMPTS - 1
        assert db.query(Reservation).count() == 1

    @pytest.mark.asyncio
    async def test_disjoint_bookings_all_succeed(self, db, world, session_factory):
        db.close()
        slot = world.slot_ids[0]

        results = await asyncio.gather(*[
            asyncio.to_thread(_attempt, session_factory, world.vehicle_id, slot, at(hour), at(hour + 1))
            for hour in range(ATTEMPTS)
        ])

        assert results == ["ok"] * ATTEMPTS
        assert db.query(Reservation).count() == ATTEMPTS


def _create_station(session_factory, name):
    session = session_factory()
    try:
        station_service.create_station(session, name=name, longitude=106.7, latitude=10.8, ports=[AC_PORT])
        return "ok"
    except Conflict:
        return "conflict"
    finally:
        session.close()


class TestConcurrentStationCap:
    @pytest.mark.asyncio
    async def test_cap_holds_under_parallel_creates(self, db, session_factory, monkeypatch):
        monkeypatch.setattr(settings, "MAX_STATION_COUNT", 1)
        db.close()

        results = await asyncio.gather(*[
            asyncio.to_thread(_create_station, session_factory, f"Hub {n}") for n in range(4)
        ])

        assert results.count("ok") == 1
        assert results.count("conflict") == 3
        assert db.query(ChargingStation).count() == 1
