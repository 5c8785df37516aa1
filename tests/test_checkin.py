# tests/test_checkin.py
"""Staff QR check-in and the HMAC tokens behind it."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import base64
import json
import pytest
from unittest.mock import MagicMock
from app.services import reservation_service
from app.utils.checkin_token import (
    generate_qr_data, generate_qr_image, hash_reservation_id, parse_qr_data, verify_reservation_hash,
)
from app.utils.errors import Forbidden, InvalidInput, NotFound
from conftest import at


def book(db, world, slot_index=0, hour=10):
    return reservation_service.create_reservation(
        db, world.vehicle_id,
        [{"slot_id": world.slot_ids[slot_index], "start_at": at(hour), "end_at": at(hour + 1)}],
    )


class TestCheckinToken:
    def test_hash_is_deterministic(self):
        assert hash_reservation_id(42) == hash_reservation_id("42")

    def test_hash_depends_on_secret(self):
        assert hash_reservation_id(42, secret="a") != hash_reservation_id(42, secret="b")

    def test_verify_rejects_other_reservation(self):
        assert verify_reservation_hash(42, hash_reservation_id(42))
        assert not verify_reservation_hash(43, hash_reservation_id(42))

    def test_verify_rejects_missing_token(self):
        assert not verify_reservation_hash(42, None)
        assert not verify_reservation_hash(42, "")

    def test_qr_payload_round_trip(self):
        rid, token = parse_qr_data(generate_qr_data(7))
        assert rid == "7"
        assert verify_reservation_hash(rid, token)

    def test_malformed_payload(self):
        with pytest.raises(ValueError):
            parse_qr_data(json.dumps({"reservationId": "7"}))
        with pytest.raises(ValueError):
            parse_qr_data("not json")

    def test_qr_image_is_png_data_url(self):
        prefix = "data:image/png;base64,"
        url = generate_qr_image(generate_qr_data(7))
        assert url.startswith(prefix)
        assert base64.b64decode(url[len(prefix):]).startswith(b"\x89PNG")

    def test_new_reservation_carries_qr_image(self, db, world):
        r = book(db, world)
        assert r.qr_image.startswith("data:image/png;base64,")
        assert r.qr == generate_qr_data(r.id)


class TestQRCheckIn:
    def test_first_scan_confirms_reservation(self, db, world):
        r = book(db, world)
        result = reservation_service.qr_check_in(db, r.id, hash_reservation_id(r.id), 50, "staff")

        assert result.outcome == "checked_in"
        assert result.status == "confirmed"
        assert result.qr_check is True
        assert result.checked_by == {"user_id": 50, "role": "staff"}

        stored = reservation_service.get_reservation_by_id(db, r.id)
        assert stored.status == "confirmed"
        assert stored.qr_check is True
        assert stored.checked_in_by == 50

    def test_second_scan_reports_already_used(self, db, world):
        r = book(db, world)
        token = hash_reservation_id(r.id)
        first = reservation_service.qr_check_in(db, r.id, token, 50, "staff")

        second = reservation_service.qr_check_in(db, r.id, token, 51, "admin")
        assert second.outcome == "already_used"
        assert second.status == "confirmed"
        assert second.checked_at == first.checked_at
        assert second.checked_by == {"user_id": 50, "role": "staff"}

    def test_tampered_token_changes_nothing(self, db, world):
        r = book(db, world)
        bad = hash_reservation_id(r.id, secret="someone-elses-key")

        with pytest.raises(InvalidInput):
            reservation_service.qr_check_in(db, r.id, bad, 50, "staff")

        stored = reservation_service.get_reservation_by_id(db, r.id)
        assert stored.status == "pending"
        assert stored.qr_check is False

    def test_token_for_other_reservation_rejected(self, db, world):
        r1 = book(db, world, hour=10)
        r2 = book(db, world, hour=12)
        with pytest.raises(InvalidInput):
            reservation_service.qr_check_in(db, r2.id, hash_reservation_id(r1.id), 50, "staff")

    def test_regular_user_cannot_check_in(self, db, world):
        r = book(db, world)
        with pytest.raises(Forbidden):
            reservation_service.qr_check_in(db, r.id, hash_reservation_id(r.id), 1, "user")
        with pytest.raises(Forbidden):
            reservation_service.qr_check_in(db, r.id, hash_reservation_id(r.id), 1, None)

    def test_cancelled_reservation_cannot_check_in(self, db, world):
        r = book(db, world)
        reservation_service.cancel_reservation(db, r.id, requester_user_id=1)

        with pytest.raises(InvalidInput) as exc:
            reservation_service.qr_check_in(db, r.id, hash_reservation_id(r.id), 50, "staff")
        assert "cancelled" in exc.value.message

    def test_missing_reservation(self):
        db = MagicMock()
        db.query.return_value.filter.return_value.with_for_update.return_value.first.return_value = None

        with pytest.raises(NotFound):
            reservation_service.qr_check_in(db, 123, hash_reservation_id(123), 50, "staff")

        db.rollback.assert_called_once()
        db.commit.assert_not_called()
