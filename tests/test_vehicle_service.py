# tests/test_vehicle_service.py
"""Unit tests for vehicle lookup and registration."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import MagicMock
from app.models.vehicle import Vehicle
from app.services import vehicle_service
from app.utils.errors import Conflict, InvalidInput, NotFound


class TestVehicleService:
    def test_plate_is_normalised_on_lookup(self):
        db = MagicMock()
        vehicle_service.lookup_vehicle_by_plate(db, "  51a-12345 ")
        db.query.assert_called_once_with(Vehicle)

    def test_register_normalises_plate(self, db):
        vehicle = vehicle_service.register_vehicle(db, owner_id="7", plate_number=" 29c-55555 ")
        assert vehicle.plate_number == "29C-55555"
        assert vehicle.owner_id == 7
        assert vehicle.status == "active"

    def test_duplicate_plate_conflicts(self, db):
        vehicle_service.register_vehicle(db, owner_id=1, plate_number="29C-55555")
        with pytest.raises(Conflict):
            vehicle_service.register_vehicle(db, owner_id=2, plate_number="29c-55555")

    def test_plate_required(self, db):
        with pytest.raises(InvalidInput):
            vehicle_service.register_vehicle(db, owner_id=1, plate_number="  ")

    def test_owner_lookup(self, db, world):
        assert vehicle_service.get_vehicle_owner(db, world.vehicle_id) == 1
        assert vehicle_service.list_vehicle_ids_for_owner(db, 2) == [world.other_vehicle_id]

    def test_missing_vehicle(self):
        db = MagicMock()
        db.get.return_value = None
        with pytest.raises(NotFound):
            vehicle_service.get_vehicle(db, 5)
