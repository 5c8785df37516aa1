# tests/test_api.py
"""HTTP surface: routing, error-kind → status mapping, and requester headers."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from fastapi.testclient import TestClient
from app.database import get_db, get_session_factory
from app.main import app
from conftest import AC_PORT, DC_PORT

OWNER = {"X-User-Id": "1", "X-User-Role": "user"}
STRANGER = {"X-User-Id": "2", "X-User-Role": "user"}
STAFF = {"X-User-Id": "50", "X-User-Role": "staff"}


@pytest.fixture
def client(db, session_factory):
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


def booking(world, slot_index=0, start="2025-10-01T10:00:00Z", end="2025-10-01T11:00:00Z"):
    return {
        "vehicle_id": world.vehicle_id,
        "items": [{"slot_id": world.slot_ids[slot_index], "start_at": start, "end_at": end}],
    }


class TestHealth:
    def test_health_reports_slot_counts(self, client, world):
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["database"] == "ok"
        assert body["slots"] == {"available": 3}


class TestStationRoutes:
    def test_station_lifecycle(self, client):
        resp = client.post("/api/v1/stations", json={
            "name": "Harbour", "longitude": 106.7, "latitude": 10.8, "ports": [AC_PORT, DC_PORT],
        })
        assert resp.status_code == 201
        station = resp.json()
        assert len(station["ports"]) == 2
        port_id = station["ports"][0]["id"]

        resp = client.post(f"/api/v1/ports/{port_id}/slots", json={})
        assert resp.status_code == 201
        assert resp.json()["order"] == 1

        resp = client.delete(f"/api/v1/stations/{station['id']}/purge")
        assert resp.status_code == 409
        assert resp.json()["error"] == "Conflict"

        resp = client.delete(f"/api/v1/stations/{station['id']}")
        assert resp.status_code == 200
        assert resp.json()["status"] == "inactive"

        slots = client.get(f"/api/v1/ports/{port_id}/slots").json()
        assert [s["status"] for s in slots] == ["inactive"]

    def test_invalid_port_type_is_400(self, client):
        resp = client.post("/api/v1/stations", json={
            "name": "Bad", "longitude": 0, "latitude": 0, "ports": [dict(AC_PORT, type="Plasma")],
        })
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "InvalidInput", "message": "ports[0].type invalid"}

    def test_missing_station_is_404(self, client):
        resp = client.get("/api/v1/stations/999")
        assert resp.status_code == 404
        assert resp.json()["error"] == "NotFound"

    def test_slot_patch_clears_hint(self, client, world):
        sid = world.slot_ids[0]
        resp = client.patch(f"/api/v1/slots/{sid}", json={"status": "booked", "next_available_at": "2025-10-01T12:00:00Z"})
        assert resp.json()["next_available_at"] == "2025-10-01T12:00:00"

        resp = client.patch(f"/api/v1/slots/{sid}", json={"status": "available"})
        assert resp.status_code == 200
        assert resp.json()["next_available_at"] is None


class TestReservationRoutes:
    def test_booking_flow(self, client, world):
        resp = client.post("/api/v1/reservations", json=booking(world), headers=OWNER)
        assert resp.status_code == 201
        reservation = resp.json()
        assert reservation["status"] == "pending"
        assert reservation["items"][0]["start_at"] == "2025-10-01T10:00:00"
        assert reservation["qr_image"].startswith("data:image/png;base64,")

        resp = client.post("/api/v1/reservations", json=booking(world, start="2025-10-01T10:30:00Z",
                                                               end="2025-10-01T10:45:00Z"), headers=OWNER)
        assert resp.status_code == 409

        slots = client.get(f"/api/v1/ports/{world.port_ids[0]}/slots").json()
        assert [s["status"] for s in slots] == ["in_use", "available"]

        resp = client.post(f"/api/v1/reservations/{reservation['id']}/cancel", headers=STRANGER)
        assert resp.status_code == 403

        resp = client.post(f"/api/v1/reservations/{reservation['id']}/cancel", headers=OWNER)
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"

    def test_cannot_book_someone_elses_vehicle(self, client, world):
        resp = client.post("/api/v1/reservations", json=booking(world), headers=STRANGER)
        assert resp.status_code == 403

    def test_anonymous_requests_rejected(self, client, world):
        resp = client.post("/api/v1/reservations", json=booking(world))
        assert resp.status_code == 403

    def test_reversed_range_is_400(self, client, world):
        resp = client.post("/api/v1/reservations", json=booking(world, start="2025-10-01T11:00:00Z",
                                                               end="2025-10-01T10:00:00Z"), headers=OWNER)
        assert resp.status_code == 400
        assert resp.json()["error"] == "InvalidInput"

    def test_list_my_reservations(self, client, world):
        client.post("/api/v1/reservations", json=booking(world), headers=OWNER)
        resp = client.get("/api/v1/reservations", headers=OWNER)
        assert resp.status_code == 200
        assert resp.json()["pagination"]["total"] == 1

        resp = client.get("/api/v1/reservations", headers=STRANGER)
        assert resp.json()["pagination"]["total"] == 0

    def test_qr_check_in_by_staff(self, client, world):
        reservation = client.post("/api/v1/reservations", json=booking(world), headers=OWNER).json()

        resp = client.post("/api/v1/reservations/qr-check", json={"qr": reservation["qr"]}, headers=OWNER)
        assert resp.status_code == 403

        resp = client.post("/api/v1/reservations/qr-check", json={"qr": reservation["qr"]}, headers=STAFF)
        assert resp.status_code == 200
        assert resp.json()["outcome"] == "checked_in"
        assert resp.json()["status"] == "confirmed"

        resp = client.post("/api/v1/reservations/qr-check", json={"qr": reservation["qr"]}, headers=STAFF)
        assert resp.status_code == 200
        assert resp.json()["outcome"] == "already_used"

    def test_qr_check_in_with_bad_hash(self, client, world):
        reservation = client.post("/api/v1/reservations", json=booking(world), headers=OWNER).json()
        resp = client.post("/api/v1/reservations/qr-check",
                           json={"reservation_id": reservation["id"], "hash": "deadbeef"}, headers=STAFF)
        assert resp.status_code == 400

    def test_malformed_qr_payload(self, client, world):
        resp = client.post("/api/v1/reservations/qr-check", json={"qr": "{oops"}, headers=STAFF)
        assert resp.status_code == 400


class TestChargingRoutes:
    def test_start_and_stop(self, client, world):
        resp = client.post("/api/v1/charging/sessions", json={
            "vehicle_id": world.vehicle_id, "slot_id": world.slot_ids[1], "initial_percent": 35,
        })
        assert resp.status_code == 201
        session_id = resp.json()["id"]

        progress = client.get(f"/api/v1/charging/sessions/{session_id}/progress").json()
        assert progress["percent"] >= 35

        resp = client.post(f"/api/v1/charging/sessions/{session_id}/stop", json={})
        assert resp.json()["status"] == "completed"

    def test_list_sessions_for_me_and_by_vehicle(self, client, world):
        client.post("/api/v1/charging/sessions", json={
            "vehicle_id": world.vehicle_id, "slot_id": world.slot_ids[1], "initial_percent": 10,
        })

        resp = client.get("/api/v1/charging/sessions", headers=OWNER)
        assert resp.status_code == 200
        assert resp.json()["pagination"]["total"] == 1
        assert client.get("/api/v1/charging/sessions", headers=STRANGER).json()["items"] == []
        assert client.get("/api/v1/charging/sessions").status_code == 403

        path = f"/api/v1/charging/vehicles/{world.vehicle_id}/sessions"
        assert client.get(path, headers=STRANGER).status_code == 403
        resp = client.get(path, params={"status": "active"}, headers=STAFF)
        assert resp.status_code == 200
        assert resp.json()["items"][0]["initial_percent"] == 10

    def test_progress_stream_after_stop(self, client, db, world):
        session_id = client.post("/api/v1/charging/sessions", json={
            "vehicle_id": world.vehicle_id, "slot_id": world.slot_ids[1], "initial_percent": 35,
        }).json()["id"]
        client.post(f"/api/v1/charging/sessions/{session_id}/stop", json={})
        db.close()

        resp = client.get(f"/api/v1/charging/sessions/{session_id}/stream")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert '"finished": true' in resp.text


class TestReservationStreamRoutes:
    def test_stream_of_cancelled_reservation(self, client, db, world):
        reservation = client.post("/api/v1/reservations", json=booking(world), headers=OWNER).json()
        client.post(f"/api/v1/reservations/{reservation['id']}/cancel", headers=OWNER)
        db.close()

        resp = client.get(f"/api/v1/reservations/{reservation['id']}/stream", headers=OWNER)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert "event: reservation_info" in resp.text
        assert "event: stream_end" in resp.text

    def test_stranger_cannot_stream(self, client, db, world):
        reservation = client.post("/api/v1/reservations", json=booking(world), headers=OWNER).json()
        db.close()

        resp = client.get(f"/api/v1/reservations/{reservation['id']}/stream", headers=STRANGER)
        assert resp.status_code == 403

    def test_missing_reservation_stream_is_404(self, client, db, world):
        db.close()
        resp = client.get("/api/v1/reservations/999/stream", headers=STAFF)
        assert resp.status_code == 404
